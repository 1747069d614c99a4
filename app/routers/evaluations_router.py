# /app/routers/evaluations_router.py

from fastapi import APIRouter, Depends, HTTPException, status
from typing import List

from ..models import evaluation_model
from ..services import evaluation_service, classroom_service, database_service
from ..services.database_service import DocumentNotFoundError

router = APIRouter()

# --- LOOKUPS ---

@router.get("/classroom/{classroom_id}", response_model=List[evaluation_model.StudentEvaluation], summary="List a Classroom's Evaluations")
def list_classroom_evaluations(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return evaluation_service.get_classroom_evaluations(classroom_id, db)

@router.get("/classroom/{classroom_id}/statistics", response_model=evaluation_model.EvaluationStatistics, summary="Get a Classroom's Grade Statistics")
def get_classroom_statistics(classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return evaluation_service.get_classroom_statistics(classroom_id, db)

@router.get("/student/{student_id}", response_model=List[evaluation_model.StudentEvaluation], summary="List a Student's Evaluations")
def list_student_evaluations(student_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return evaluation_service.get_student_evaluations(student_id, db)

@router.get("/student/{student_id}/classroom/{classroom_id}", response_model=evaluation_model.StudentEvaluation, summary="Get a Student's Evaluation in a Classroom")
def get_student_classroom_evaluation(student_id: str, classroom_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    evaluation = evaluation_service.get_student_classroom_evaluation(student_id, classroom_id, db)
    if evaluation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evaluation not found")
    return evaluation

# --- WRITES ---

@router.post("", response_model=evaluation_model.StudentEvaluation, summary="Create or Update an Evaluation")
def save_evaluation(evaluation: evaluation_model.EvaluationCreate, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        evaluation_id = evaluation_service.save_evaluation(evaluation, db)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return evaluation_service.get_evaluation_by_id(evaluation_id, db)

@router.post("/attendance", status_code=status.HTTP_204_NO_CONTENT, summary="Mark Attendance for a Module")
def record_attendance(request: evaluation_model.AttendanceRequest, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    evaluation_service.record_attendance(
        request.studentId, request.classroomId, request.moduleId, request.isPresent, request.teacherId, db,
    )

@router.post("/participation", status_code=status.HTTP_204_NO_CONTENT, summary="Add Participation Points")
def record_participation(request: evaluation_model.ParticipationRequest, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    evaluation_service.record_participation(request.studentId, request.classroomId, request.points, db, module_id=request.moduleId)

@router.get("/{evaluation_id}", response_model=evaluation_model.StudentEvaluation, summary="Get a Single Evaluation")
def get_evaluation(evaluation_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    evaluation = evaluation_service.get_evaluation_by_id(evaluation_id, db)
    if evaluation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Evaluation with ID {evaluation_id} not found")
    return evaluation

@router.patch("/{evaluation_id}/scores", response_model=evaluation_model.StudentEvaluation, summary="Update Raw Scores")
def update_scores(evaluation_id: str, scores: evaluation_model.ScoresUpdate, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        evaluation_service.update_scores(evaluation_id, scores, db)
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Evaluation with ID {evaluation_id} not found")
    return evaluation_service.get_evaluation_by_id(evaluation_id, db)

@router.post("/{evaluation_id}/calculate", response_model=evaluation_model.StudentEvaluation, summary="Calculate the Final Grade")
def calculate_final_grade(evaluation_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    """Grades the evaluation against its classroom's criteria and module count."""
    evaluation = evaluation_service.get_evaluation_by_id(evaluation_id, db)
    if evaluation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Evaluation with ID {evaluation_id} not found")
    classroom = classroom_service.get_classroom_by_id(evaluation.classroomId, db)
    if classroom is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Classroom with ID {evaluation.classroomId} not found")

    total_modules = len(classroom.modules) or evaluation_service.DEFAULT_TOTAL_MODULES
    return evaluation_service.calculate_final_grade_and_save(evaluation_id, classroom.evaluationCriteria, db, total_modules)
