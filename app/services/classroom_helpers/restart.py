# /app/services/classroom_helpers/restart.py

"""
Restart turns a finalized classroom into a fresh one for the next cohort.

The outgoing cohort is preserved as an immutable `ClassroomRun`: program and
teacher names are resolved now and copied in, so the run still reads
correctly after either is renamed or deleted.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ...models.classroom_run_model import (
    ClassroomRunCreate, RunCustomCriterion, RunEvaluationCriteria, StudentRunRecord,
)
from ...models.lifecycle_model import RestartResult, ValidationResult
from ..database_service import DELETE_FIELD, Collections, DatabaseService
from .run_statistics import calculate_attendance_rate, calculate_run_statistics, determine_status

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_restart(classroom_id: str, db: DatabaseService) -> ValidationResult:
    try:
        classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
        if not classroom:
            return ValidationResult(isValid=False, errors=["Clase no encontrada"])
        if classroom.get("isActive", True):
            return ValidationResult(isValid=False, errors=["La clase debe estar finalizada para poder reiniciarla"])
        if not classroom.get("endDate"):
            return ValidationResult(isValid=False, errors=["La clase no ha sido finalizada correctamente"])

        warnings: List[str] = []
        teacher = db.get_document(Collections.USERS, classroom.get("teacherId"))
        if not teacher:
            warnings.append("El profesor asignado ya no existe en el sistema")
        elif not teacher.get("isActive", True):
            warnings.append("El profesor asignado está inactivo")

        return ValidationResult(isValid=True, warnings=warnings)
    except Exception as e:
        logger.exception("Error validating restart of classroom %s: %s", classroom_id, e)
        return ValidationResult(isValid=False, errors=["Error al validar el reinicio"])


def get_next_run_number(classroom_id: str, db: DatabaseService) -> int:
    runs = db.query_documents(Collections.CLASSROOM_RUNS, "classroomId", "==", classroom_id)
    return max((r.get("runNumber") or 0 for r in runs), default=0) + 1


def _run_criteria(classroom: Dict[str, Any]) -> RunEvaluationCriteria:
    criteria = classroom.get("evaluationCriteria") or {}
    return RunEvaluationCriteria(
        questionnaires=criteria.get("questionnaires", 0),
        attendance=criteria.get("attendance", 0),
        participation=criteria.get("participation", 0),
        finalExam=criteria.get("finalExam", 0),
        customCriteria=[
            RunCustomCriterion(name=c["name"], points=c["points"])
            for c in criteria.get("customCriteria") or []
        ],
    )


def build_classroom_run(
    classroom: Dict[str, Any],
    run_number: int,
    created_by: str,
    db: DatabaseService,
    notes: Optional[str] = None,
) -> ClassroomRunCreate:
    now = _utcnow()
    start_date = classroom.get("startDate") or now
    end_date = classroom.get("endDate") or now

    program = db.get_document(Collections.PROGRAMS, classroom.get("programId"))
    teacher = db.get_document(Collections.USERS, classroom.get("teacherId"))
    teacher_name = (
        f"{teacher.get('firstName', '')} {teacher.get('lastName', '')}".strip()
        if teacher else "Profesor desconocido"
    )

    evaluations = {
        e.get("studentId"): e
        for e in db.query_documents(Collections.EVALUATIONS, "classroomId", "==", classroom["id"])
    }

    students = []
    for student_id in classroom.get("studentIds") or []:
        student = db.get_document(Collections.USERS, student_id)
        if not student:
            continue
        evaluation = evaluations.get(student_id)
        final_grade = evaluation.get("percentage") if evaluation else None
        students.append(StudentRunRecord(
            studentId=student_id,
            studentName=f"{student.get('firstName', '')} {student.get('lastName', '')}".strip(),
            studentPhone=student.get("phone") or "",
            studentEmail=student.get("email"),
            finalGrade=final_grade,
            status=determine_status(final_grade or 0),
            attendanceRate=calculate_attendance_rate(evaluation),
            participationPoints=(evaluation or {}).get("participationPoints") or 0,
            enrollmentDate=start_date,
            completionDate=end_date,
        ))

    modules = classroom.get("modules") or []
    return ClassroomRunCreate(
        classroomId=classroom["id"],
        classroomName=classroom.get("name", ""),
        classroomSubject=classroom.get("subject", ""),
        programId=classroom.get("programId", ""),
        programName=(program or {}).get("name") or "Programa sin nombre",
        teacherId=classroom.get("teacherId", ""),
        teacherName=teacher_name,
        evaluationCriteria=_run_criteria(classroom),
        schedule=classroom.get("schedule"),
        room=classroom.get("room"),
        location=classroom.get("location"),
        materialPrice=classroom.get("materialPrice") or 0,
        totalModules=len(modules),
        completedModules=len([m for m in modules if m.get("isCompleted")]),
        moduleNames=[m.get("name", "") for m in modules],
        students=students,
        totalStudents=len(students),
        statistics=calculate_run_statistics(students),
        startDate=start_date,
        endDate=end_date,
        runNumber=run_number,
        createdBy=created_by,
        notes=notes or None,
    )


def reset_classroom(classroom: Dict[str, Any], db: DatabaseService) -> None:
    """
    Empties the roster, reopens every module and starts a new term. Teacher,
    criteria, schedule and room are kept; `endDate` is removed outright.
    """
    modules = [{**m, "isCompleted": False} for m in classroom.get("modules") or []]
    db.update_document(Collections.CLASSROOMS, classroom["id"], {
        "studentIds": [],
        "modules": modules,
        "currentModule": modules[0] if modules else DELETE_FIELD,
        "isActive": True,
        "startDate": _utcnow(),
        "endDate": DELETE_FIELD,
    })


def restart_classroom(
    classroom_id: str,
    user_id: str,
    db: DatabaseService,
    notes: Optional[str] = None,
) -> RestartResult:
    result = RestartResult(classroomId=classroom_id)

    try:
        validation = validate_restart(classroom_id, db)
        result.warnings = validation.warnings
        if not validation.isValid:
            result.errors = validation.errors
            return result

        classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
        if not classroom:
            result.errors.append("Clase no encontrada")
            return result

        result.runNumber = get_next_run_number(classroom_id, db)
        run = build_classroom_run(classroom, result.runNumber, user_id, db, notes=notes)
        result.runId = db.create_document(Collections.CLASSROOM_RUNS, run.model_dump(exclude_none=True))

        reset_classroom(classroom, db)

        result.success = True
        logger.info("Restarted classroom %s as run #%d (%s)", classroom_id, result.runNumber, result.runId)
        return result
    except Exception as e:
        logger.exception("Error restarting classroom %s", classroom_id)
        result.errors.append(str(e) or "Error desconocido al reiniciar")
        return result
