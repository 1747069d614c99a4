# /app/routers/programs_router.py

from fastapi import APIRouter, Depends, HTTPException, status, Response
from typing import List, Optional

from ..models import program_model, classroom_model, classroom_run_model
from ..services import program_service, classroom_service, database_service
from ..services.database_service import DocumentNotFoundError

router = APIRouter()

# --- PROGRAM COLLECTION ENDPOINTS (/api/programs) ---

@router.get("", response_model=List[program_model.Program], summary="List Programs")
def list_programs(
    active: bool = False,
    category: Optional[program_model.ProgramCategory] = None,
    q: Optional[str] = None,
    db: database_service.DatabaseService = Depends(database_service.get_db_service),
):
    if q:
        return program_service.search_programs(q, db)
    if category:
        return program_service.get_programs_by_category(category, db)
    if active:
        return program_service.get_active_programs(db)
    return program_service.get_all_programs(db)

@router.post("", response_model=program_model.Program, status_code=status.HTTP_201_CREATED, summary="Create a Program")
def create_program(program_create: program_model.ProgramCreate, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return program_service.create_program(program_create, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

# --- INDIVIDUAL PROGRAM ENDPOINTS (/api/programs/{program_id}) ---

@router.get("/{program_id}", response_model=program_model.Program, summary="Get a Single Program")
def get_program(program_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    program = program_service.get_program_by_id(program_id, db)
    if program is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Program with ID {program_id} not found")
    return program

@router.put("/{program_id}", response_model=program_model.Program, summary="Update a Program")
def update_program(program_id: str, program_update: program_model.ProgramUpdate, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return program_service.update_program(program_id, program_update, db)
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Program with ID {program_id} not found")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.post("/{program_id}/toggle-status", response_model=program_model.Program, summary="Activate or Deactivate a Program")
def toggle_status(program_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return program_service.toggle_program_status(program_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.delete("/{program_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a Program")
def delete_program(program_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        was_deleted = program_service.delete_program(program_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if not was_deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Program with ID {program_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/{program_id}/statistics", response_model=program_model.ProgramStatistics, summary="Get Program Statistics")
def get_statistics(program_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return program_service.get_program_statistics(program_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.get("/{program_id}/classrooms", response_model=List[classroom_model.Classroom], summary="List the Program's Classrooms")
def list_program_classrooms(program_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.get_classrooms_by_program(program_id, db)

@router.get("/{program_id}/runs", response_model=List[classroom_run_model.ClassroomRun], summary="List Past Runs Across the Program")
def list_program_runs(program_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return classroom_service.get_program_runs(program_id, db)
