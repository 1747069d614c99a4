# /app/services/evaluation_service.py

"""
Evaluation tracking: attendance, participation, raw scores and the weighted
final grade of a student in a classroom.

There is at most one evaluation per (student, classroom) pair. Writes that
find no evaluation for the pair create one, so callers never have to
initialise records up front.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from ..models.classroom_model import EvaluationCriteria
from ..models.evaluation_model import (
    DEFAULT_GRADE_SCALE, AttendanceRecord, EvaluationCreate, EvaluationStatistics,
    EvaluationStatus, ParticipationRecord, ScoresUpdate, StudentEvaluation,
)
from .database_service import Collections, DatabaseService

logger = logging.getLogger(__name__)

PASSING_GRADE = 70
DEFAULT_TOTAL_MODULES = 8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_evaluation(document: Optional[Dict[str, Any]]) -> Optional[StudentEvaluation]:
    return StudentEvaluation.model_validate(document) if document else None


# --- Pure helpers ---

def validate_criteria(criteria: EvaluationCriteria) -> bool:
    """True when the criteria's point allocations add up to exactly 100."""
    return criteria.total_points() == 100


def calculate_attendance_score(records: List[Union[AttendanceRecord, Dict[str, Any]]]) -> float:
    """Percentage (0-100) of the records marked present. No records scores 0."""
    if not records:
        return 0
    present = 0
    for record in records:
        is_present = record.get("isPresent") if isinstance(record, dict) else record.isPresent
        if is_present:
            present += 1
    return present / len(records) * 100


def get_letter_grade(percentage: float) -> str:
    for scale in DEFAULT_GRADE_SCALE:
        if percentage >= scale.min:
            return scale.letter
    return "F"


def calculate_final_grade(
    evaluation: StudentEvaluation,
    criteria: EvaluationCriteria,
    total_modules: int = DEFAULT_TOTAL_MODULES,
) -> StudentEvaluation:
    """
    Computes the weighted grade without touching the database.

    Questionnaire, final exam and custom scores are already expressed in
    criterion points. Attendance is the present ratio scaled to its weight.
    Participation compares accumulated points with the points required over
    the whole classroom (`total_modules * participationPointsPerModule`) and
    never exceeds its weight. The total is capped at 100.
    """
    scores = evaluation.scores
    total = 0.0

    if criteria.questionnaires:
        total += scores.questionnaires

    attendance_score = calculate_attendance_score(evaluation.attendanceRecords) / 100 * criteria.attendance
    total += attendance_score

    required_points = total_modules * (criteria.participationPointsPerModule or 1)
    ratio = (evaluation.participationPoints or 0) / required_points if required_points > 0 else 0
    participation_score = min(ratio * criteria.participation, criteria.participation)
    total += participation_score

    if criteria.finalExam:
        total += scores.finalExam

    custom_scores = {cs.criterionId: cs.score for cs in scores.customScores}
    for criterion in criteria.customCriteria:
        if criterion.id in custom_scores and criterion.points:
            total += custom_scores[criterion.id]

    total = min(total, 100)

    return evaluation.model_copy(update={
        "scores": scores.model_copy(update={
            "attendance": attendance_score,
            "participation": participation_score,
        }),
        "totalScore": total,
        "percentage": total,
        "letterGrade": get_letter_grade(total),
        "status": EvaluationStatus.EVALUATED.value,
        "evaluatedAt": _utcnow(),
    })


# --- Reads ---

def get_evaluation_by_id(evaluation_id: str, db: DatabaseService) -> Optional[StudentEvaluation]:
    return _to_evaluation(db.get_document(Collections.EVALUATIONS, evaluation_id))


def get_student_evaluations(student_id: str, db: DatabaseService) -> List[StudentEvaluation]:
    return [_to_evaluation(d) for d in db.query_documents(Collections.EVALUATIONS, "studentId", "==", student_id)]


def get_classroom_evaluations(classroom_id: str, db: DatabaseService) -> List[StudentEvaluation]:
    return [_to_evaluation(d) for d in db.query_documents(Collections.EVALUATIONS, "classroomId", "==", classroom_id)]


def get_student_classroom_evaluation(student_id: str, classroom_id: str, db: DatabaseService) -> Optional[StudentEvaluation]:
    documents = db.query_documents_multi(Collections.EVALUATIONS, [
        ("studentId", "==", student_id),
        ("classroomId", "==", classroom_id),
    ])
    return _to_evaluation(documents[0]) if documents else None


# --- Writes ---

def save_evaluation(evaluation: Union[EvaluationCreate, StudentEvaluation], db: DatabaseService) -> str:
    """
    Upserts an evaluation and returns its id. An explicit id updates that
    document; otherwise an existing evaluation for the same student and
    classroom is updated; otherwise a new one is created.
    """
    data = evaluation.model_dump(exclude_none=True)
    evaluation_id = data.pop("id", None)
    for key in ("createdAt", "updatedAt"):
        data.pop(key, None)

    if evaluation_id:
        db.update_document(Collections.EVALUATIONS, evaluation_id, data)
        return evaluation_id

    existing = get_student_classroom_evaluation(evaluation.studentId, evaluation.classroomId, db)
    if existing:
        db.update_document(Collections.EVALUATIONS, existing.id, data)
        return existing.id

    new_id = db.create_document(Collections.EVALUATIONS, data)
    logger.info("Created evaluation %s for student %s in classroom %s", new_id, evaluation.studentId, evaluation.classroomId)
    return new_id


def record_attendance(
    student_id: str,
    classroom_id: str,
    module_id: str,
    is_present: bool,
    teacher_id: str,
    db: DatabaseService,
) -> None:
    """
    Marks a student present or absent for a module. A second mark for the
    same module replaces the first, and the attendance score is recomputed.
    """
    now = _utcnow()
    record = AttendanceRecord(
        moduleId=module_id,
        studentId=student_id,
        isPresent=is_present,
        date=now,
        markedBy=teacher_id,
        markedAt=now,
    )

    evaluation = get_student_classroom_evaluation(student_id, classroom_id, db)
    if evaluation is None:
        save_evaluation(EvaluationCreate(
            studentId=student_id,
            classroomId=classroom_id,
            moduleId=module_id,
            attendanceRecords=[record],
        ), db)
        return

    records = list(evaluation.attendanceRecords)
    index = next((i for i, r in enumerate(records) if r.moduleId == module_id), None)
    if index is None:
        records.append(record)
    else:
        records[index] = record

    db.update_document(Collections.EVALUATIONS, evaluation.id, {
        "attendanceRecords": [r.model_dump(exclude_none=True) for r in records],
        "scores.attendance": calculate_attendance_score(records),
    })


def record_participation(
    student_id: str,
    classroom_id: str,
    points: float,
    db: DatabaseService,
    module_id: Optional[str] = None,
) -> None:
    """Adds (or, with negative points, subtracts) participation points."""
    entry = ParticipationRecord(studentId=student_id, moduleId=module_id, points=points, timestamp=_utcnow())

    evaluation = get_student_classroom_evaluation(student_id, classroom_id, db)
    if evaluation is None:
        save_evaluation(EvaluationCreate(
            studentId=student_id,
            classroomId=classroom_id,
            participationPoints=points,
            participationRecords=[entry],
        ), db)
        return

    db.update_document(Collections.EVALUATIONS, evaluation.id, {
        "participationPoints": (evaluation.participationPoints or 0) + points,
        "participationRecords": [
            r.model_dump(exclude_none=True) for r in [*evaluation.participationRecords, entry]
        ],
    })


def update_scores(evaluation_id: str, scores: ScoresUpdate, db: DatabaseService) -> None:
    updates: Dict[str, Any] = {}
    if scores.questionnaires is not None:
        updates["scores.questionnaires"] = scores.questionnaires
    if scores.finalExam is not None:
        updates["scores.finalExam"] = scores.finalExam
    if scores.customScores is not None:
        updates["scores.customScores"] = [cs.model_dump() for cs in scores.customScores]
    db.update_document(Collections.EVALUATIONS, evaluation_id, updates)


def calculate_final_grade_and_save(
    evaluation_id: str,
    criteria: EvaluationCriteria,
    db: DatabaseService,
    total_modules: int = DEFAULT_TOTAL_MODULES,
) -> StudentEvaluation:
    evaluation = get_evaluation_by_id(evaluation_id, db)
    if evaluation is None:
        raise ValueError("Evaluación no encontrada")

    graded = calculate_final_grade(evaluation, criteria, total_modules)
    db.update_document(Collections.EVALUATIONS, evaluation_id, {
        "scores": graded.scores.model_dump(),
        "totalScore": graded.totalScore,
        "percentage": graded.percentage,
        "letterGrade": graded.letterGrade,
        "status": graded.status,
        "evaluatedAt": graded.evaluatedAt,
    })
    return get_evaluation_by_id(evaluation_id, db)


# --- Statistics ---

def get_classroom_statistics(classroom_id: str, db: DatabaseService) -> EvaluationStatistics:
    evaluations = get_classroom_evaluations(classroom_id, db)
    if not evaluations:
        return EvaluationStatistics()

    evaluated = [e for e in evaluations if e.status == EvaluationStatus.EVALUATED.value]
    passing = [e for e in evaluations if e.percentage >= PASSING_GRADE]
    attendance_rates = [calculate_attendance_score(e.attendanceRecords) for e in evaluations]

    return EvaluationStatistics(
        totalStudents=len(evaluations),
        evaluatedStudents=len(evaluated),
        averageGrade=sum(e.percentage for e in evaluated) / len(evaluated) if evaluated else 0,
        passRate=len(passing) / len(evaluated) * 100 if evaluated else 0,
        attendanceRate=sum(attendance_rates) / len(attendance_rates),
    )
