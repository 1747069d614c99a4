# /app/routers/classrooms_router.py

from fastapi import APIRouter, Depends, HTTPException, status, Response
from fastapi.responses import StreamingResponse
from typing import List, Optional

from ..models import classroom_model, classroom_run_model, lifecycle_model, user_model, whatsapp_model
from ..services import classroom_service, user_service, database_service, whatsapp_service
from ..services.database_service import DocumentNotFoundError

router = APIRouter()


def _require_client(client: Optional[whatsapp_service.WhatsappClient]) -> whatsapp_service.WhatsappClient:
    if client is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="WhatsApp gateway is not configured")
    return client

# --- CLASSROOM COLLECTION ENDPOINTS (/api/classrooms) ---

@router.get("", response_model=List[classroom_model.Classroom], summary="List Classrooms")
def list_classrooms(
    teacher_id: Optional[str] = None,
    is_admin: bool = False,
    active: bool = False,
    db: database_service.DatabaseService = Depends(database_service.get_db_service),
):
    if teacher_id:
        return classroom_service.get_classrooms_by_teacher(teacher_id, db, is_admin=is_admin)
    if active:
        return classroom_service.get_active_classrooms(db)
    return classroom_service.get_all_classrooms(db)

@router.post("", response_model=classroom_model.Classroom, status_code=status.HTTP_201_CREATED, summary="Create a Classroom")
def create_classroom(classroom_create: classroom_model.ClassroomCreate, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return classroom_service.create_classroom(classroom_create, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.post("/finalize/batch", response_model=List[lifecycle_model.FinalizationResult], summary="Finalize Several Classrooms")
def batch_finalize(request: lifecycle_model.BatchFinalizeRequest, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.batch_finalize(request.classroomIds, db, request.options)

# --- RUN ENDPOINTS (/api/classrooms/runs/{run_id}) ---

@router.get("/runs/{run_id}", response_model=classroom_run_model.ClassroomRun, summary="Get a Past Run")
def get_run(run_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    run = classroom_service.get_run_by_id(run_id, db)
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Run with ID {run_id} not found")
    return run

@router.get("/runs/{run_id}/export", summary="Export a Run's Roster as CSV", response_class=StreamingResponse)
def export_run_csv(run_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        csv_string = classroom_service.export_run_as_csv(run_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    run = classroom_service.get_run_by_id(run_id, db)
    file_name = f"run_{run.runNumber}_{run.classroomName.replace(' ', '_').lower()}.csv"
    return StreamingResponse(iter([csv_string]), media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={file_name}"})

@router.delete("/runs/{run_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a Past Run")
def delete_run(run_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    if not classroom_service.delete_run(run_id, db):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Run with ID {run_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/teachers/{teacher_id}/runs", response_model=List[classroom_run_model.ClassroomRun], summary="List a Teacher's Past Runs")
def list_teacher_runs(teacher_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.get_teacher_runs(teacher_id, db)

# --- INDIVIDUAL CLASSROOM ENDPOINTS (/api/classrooms/{classroom_id}) ---

@router.get("/{classroom_id}", response_model=classroom_model.Classroom, summary="Get a Single Classroom")
def get_classroom(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    classroom = classroom_service.get_classroom_by_id(classroom_id, db)
    if classroom is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Classroom with ID {classroom_id} not found")
    return classroom

@router.put("/{classroom_id}", response_model=classroom_model.Classroom, summary="Update a Classroom")
def update_classroom(classroom_id: str, classroom_update: classroom_model.ClassroomUpdate, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return classroom_service.update_classroom(classroom_id, classroom_update, db)
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Classroom with ID {classroom_id} not found")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.delete("/{classroom_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a Classroom")
def delete_classroom(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    if not classroom_service.delete_classroom(classroom_id, db):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Classroom with ID {classroom_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/{classroom_id}/statistics", response_model=classroom_model.ClassroomStatistics, summary="Get Classroom Statistics")
def get_statistics(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.get_classroom_statistics(classroom_id, db)

@router.post("/{classroom_id}/toggle-status", response_model=classroom_model.Classroom, summary="Activate or Deactivate a Classroom")
def toggle_status(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return classroom_service.toggle_classroom_status(classroom_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

# --- STUDENT SUB-RESOURCE ENDPOINTS ---

@router.get("/{classroom_id}/students", response_model=List[user_model.User], summary="List Enrolled Students")
def list_students(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return user_service.get_users_by_classroom(classroom_id, db)

@router.post("/{classroom_id}/students/{student_id}", response_model=classroom_model.Classroom, summary="Enroll a Student")
def add_student(classroom_id: str, student_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return classroom_service.add_student_to_classroom(classroom_id, student_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.delete("/{classroom_id}/students/{student_id}", response_model=classroom_model.Classroom, summary="Unenroll a Student")
def remove_student(classroom_id: str, student_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return classroom_service.remove_student_from_classroom(classroom_id, student_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

# --- MODULE SUB-RESOURCE ENDPOINTS ---

@router.put("/{classroom_id}/current-module/{module_id}", response_model=classroom_model.Classroom, summary="Set the Current Module")
def set_current_module(classroom_id: str, module_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return classroom_service.update_current_module(classroom_id, module_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.post("/{classroom_id}/modules/{module_id}/complete", response_model=classroom_model.Classroom, summary="Mark a Module Completed")
def complete_module(classroom_id: str, module_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return classroom_service.mark_module_completed(classroom_id, module_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

# --- LIFECYCLE ENDPOINTS ---
# Lifecycle operations report problems inside their result body, so they
# answer 200 even when `success` is false.

@router.get("/{classroom_id}/finalization/validate", response_model=lifecycle_model.ValidationResult, summary="Check Whether a Classroom Can Be Finalized")
def validate_finalization(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.validate_finalization(classroom_id, db)

@router.post("/{classroom_id}/finalize", response_model=lifecycle_model.FinalizationResult, summary="Finalize a Classroom")
async def finalize_classroom(
    classroom_id: str,
    options: Optional[lifecycle_model.FinalizationOptions] = None,
    db: database_service.DatabaseService = Depends(database_service.get_db_service),
    client: Optional[whatsapp_service.WhatsappClient] = Depends(whatsapp_service.get_whatsapp_client),
):
    return await classroom_service.finalize_classroom_and_notify(classroom_id, db, options, client)

@router.get("/{classroom_id}/finalization/stats", response_model=lifecycle_model.FinalizationStats, summary="Get Finalization Statistics")
def get_finalization_stats(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return classroom_service.get_finalization_stats(classroom_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.get("/{classroom_id}/finalization/history", response_model=List[lifecycle_model.FinalizationSnapshot], summary="List Finalization Snapshots")
def get_finalization_history(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.get_finalization_history(classroom_id, db)

@router.post("/{classroom_id}/finalization/cleanup", summary="Delete Old Finalization Snapshots")
def cleanup_snapshots(classroom_id: str, keep: int = 5, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return {"deleted": classroom_service.cleanup_old_snapshots(classroom_id, db, keep=keep)}

@router.post("/{classroom_id}/revert", response_model=lifecycle_model.FinalizationResult, summary="Revert a Finalization")
def revert_finalization(classroom_id: str, request: Optional[lifecycle_model.RevertRequest] = None, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    snapshot_id = request.snapshotId if request else None
    return classroom_service.revert_finalization(classroom_id, db, snapshot_id=snapshot_id)

@router.get("/{classroom_id}/restart/validate", response_model=lifecycle_model.ValidationResult, summary="Check Whether a Classroom Can Be Restarted")
def validate_restart(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.validate_restart(classroom_id, db)

@router.post("/{classroom_id}/restart", response_model=lifecycle_model.RestartResult, summary="Restart a Finalized Classroom")
def restart_classroom(classroom_id: str, request: lifecycle_model.RestartRequest, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.restart_classroom(classroom_id, request.userId, db, notes=request.notes)

@router.get("/{classroom_id}/runs", response_model=List[classroom_run_model.ClassroomRun], summary="List a Classroom's Past Runs")
def list_runs(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.get_classroom_runs(classroom_id, db)

@router.get("/{classroom_id}/runs/stats", response_model=classroom_run_model.AggregatedRunStats, summary="Aggregate Statistics Across Runs")
def get_run_stats(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.get_aggregated_run_stats(classroom_id, db)

# --- WHATSAPP ENDPOINTS ---

@router.post("/{classroom_id}/whatsapp/group", response_model=whatsapp_model.WhatsappGroup, status_code=status.HTTP_201_CREATED, summary="Create the Classroom's WhatsApp Group")
async def create_group(
    classroom_id: str,
    db: database_service.DatabaseService = Depends(database_service.get_db_service),
    client: Optional[whatsapp_service.WhatsappClient] = Depends(whatsapp_service.get_whatsapp_client),
):
    try:
        return await classroom_service.create_whatsapp_group(classroom_id, db, _require_client(client))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.post("/{classroom_id}/whatsapp/sync", summary="Sync the WhatsApp Group with the Roster")
async def sync_group(
    classroom_id: str,
    db: database_service.DatabaseService = Depends(database_service.get_db_service),
    client: Optional[whatsapp_service.WhatsappClient] = Depends(whatsapp_service.get_whatsapp_client),
):
    try:
        created = await classroom_service.sync_whatsapp_group(classroom_id, db, _require_client(client))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"createdStudentIds": created}

@router.post("/{classroom_id}/whatsapp/message", response_model=whatsapp_model.WhatsappResponse, summary="Message the Classroom's WhatsApp Group")
async def send_message(
    classroom_id: str,
    request: whatsapp_model.ClassroomMessageRequest,
    db: database_service.DatabaseService = Depends(database_service.get_db_service),
    client: Optional[whatsapp_service.WhatsappClient] = Depends(whatsapp_service.get_whatsapp_client),
):
    try:
        return await classroom_service.send_whatsapp_message(
            classroom_id, request.message, db, _require_client(client), include_header=request.includeHeader,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
