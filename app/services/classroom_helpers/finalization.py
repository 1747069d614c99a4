# /app/services/classroom_helpers/finalization.py

"""
Finalization moves a classroom's cohort into history and closes the classroom.

Before anything is mutated, the classroom and the list fields of every
affected user are copied into a snapshot document. `revert_finalization`
restores those fields verbatim, so a finalize followed by a revert leaves the
users exactly as they were.

The classroom itself is only closed once every student and the teacher have
been migrated. When some migrations fail the result is reported as
partially finalized: the classroom stays active, the snapshot allows a revert,
and finalizing again is safe because history records are upserted.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ...models.lifecycle_model import (
    FinalizationOptions, FinalizationResult, FinalizationSnapshot, FinalizationStats,
    SnapshotStudent, SnapshotTeacher, ValidationResult,
)
from ...models.user_model import ClassroomHistory, CompletionStatus, HistoryRole
from .. import user_service
from ..database_service import DELETE_FIELD, Collections, DatabaseService
from .run_statistics import PASSING_GRADE, determine_status

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOTS_KEPT = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _evaluations_by_student(classroom_id: str, db: DatabaseService) -> Dict[str, Dict[str, Any]]:
    evaluations = db.query_documents(Collections.EVALUATIONS, "classroomId", "==", classroom_id)
    return {e.get("studentId"): e for e in evaluations}


def validate_finalization(classroom_id: str, db: DatabaseService) -> ValidationResult:
    """
    Only a missing classroom blocks finalization. Everything else is a
    warning for a human to confirm (or override with `force`).
    """
    try:
        classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
        if not classroom:
            return ValidationResult(isValid=False, errors=["Clase no encontrada"])

        warnings: List[str] = []
        if not classroom.get("isActive", True):
            warnings.append("La clase ya está marcada como inactiva")

        student_ids = classroom.get("studentIds") or []
        if not student_ids:
            warnings.append("No hay estudiantes inscritos en la clase")

        evaluations = _evaluations_by_student(classroom_id, db)
        unevaluated = [
            sid for sid in student_ids
            if sid not in evaluations or evaluations[sid].get("status") != "evaluated"
        ]
        if unevaluated:
            warnings.append(f"{len(unevaluated)} estudiante(s) sin evaluación final")

        pending_modules = [m for m in classroom.get("modules") or [] if not m.get("isCompleted")]
        if pending_modules:
            warnings.append(f"{len(pending_modules)} módulo(s) sin completar")

        return ValidationResult(isValid=True, warnings=warnings)
    except Exception as e:
        logger.exception("Error validating finalization of classroom %s: %s", classroom_id, e)
        return ValidationResult(isValid=False, errors=["Error al validar la finalización"])


def create_snapshot(classroom_id: str, db: DatabaseService) -> FinalizationSnapshot:
    """
    Persists the pre-finalization state. Students that no longer exist are
    skipped; a missing classroom or teacher raises ValueError.
    """
    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    if not classroom:
        raise ValueError("Clase no encontrada")

    students = []
    for student_id in classroom.get("studentIds") or []:
        user = db.get_document(Collections.USERS, student_id)
        if not user:
            continue
        students.append(SnapshotStudent(
            userId=student_id,
            enrolledClassrooms=list(user.get("enrolledClassrooms") or []),
            completedClassrooms=list(user.get("completedClassrooms") or []),
        ))

    teacher = db.get_document(Collections.USERS, classroom.get("teacherId"))
    if not teacher:
        raise ValueError("Profesor no encontrado")

    snapshot = FinalizationSnapshot(
        classroomId=classroom_id,
        classroom=classroom,
        students=students,
        teacher=SnapshotTeacher(
            userId=teacher["id"],
            teachingClassrooms=list(teacher.get("teachingClassrooms") or []),
            taughtClassrooms=list(teacher.get("taughtClassrooms") or []),
        ),
        timestamp=_utcnow(),
    )
    snapshot_id = db.create_document(
        Collections.FINALIZATION_SNAPSHOTS,
        snapshot.model_dump(exclude={"id"}),
    )
    return snapshot.model_copy(update={"id": snapshot_id})


def _history_record(
    classroom: Dict[str, Any],
    program_name: str,
    role: HistoryRole,
    completion_date: datetime,
    status: str,
    final_grade: Optional[float] = None,
) -> ClassroomHistory:
    grade = final_grade if isinstance(final_grade, (int, float)) and math.isfinite(final_grade) else None
    return ClassroomHistory(
        classroomId=classroom["id"],
        classroomName=classroom.get("subject") or "Clase sin nombre",
        programId=classroom.get("programId") or "unknown",
        programName=program_name or "Programa sin nombre",
        role=role,
        enrollmentDate=classroom.get("startDate") or completion_date,
        completionDate=completion_date,
        status=status,
        finalGrade=grade if role == HistoryRole.STUDENT else None,
    )


def _archive_whatsapp_group(classroom: Dict[str, Any]) -> Dict[str, Any]:
    # The gateway has no archive call; the group is only retired on our side.
    return {**classroom["whatsappGroup"], "isActive": False, "archivedAt": _utcnow()}


def finalize_classroom(
    classroom_id: str,
    db: DatabaseService,
    options: Optional[FinalizationOptions] = None,
) -> FinalizationResult:
    options = options or FinalizationOptions()
    result = FinalizationResult(classroomId=classroom_id)

    try:
        validation = validate_finalization(classroom_id, db)
        if not validation.isValid and not options.force:
            result.errors = validation.errors
            return result

        snapshot = create_snapshot(classroom_id, db)
        result.snapshotId = snapshot.id
        result.canRevert = True

        classroom = snapshot.classroom
        program = db.get_document(Collections.PROGRAMS, classroom.get("programId"))
        program_name = (program or {}).get("name") or "Programa sin nombre"

        evaluations = _evaluations_by_student(classroom_id, db)
        completion_date = options.customCompletionDate or _utcnow()

        snapshot_students = {s.userId for s in snapshot.students}
        for student_id in classroom.get("studentIds") or []:
            if student_id not in snapshot_students:
                logger.warning("Skipping student %s of classroom %s: user no longer exists", student_id, classroom_id)
                continue
            try:
                evaluation = evaluations.get(student_id) or {}
                final_grade = evaluation.get("percentage") or 0
                record = _history_record(
                    classroom, program_name, HistoryRole.STUDENT, completion_date,
                    status=determine_status(final_grade),
                    final_grade=final_grade,
                )
                user_service.mark_classroom_completed(student_id, record, db)
                result.studentsProcessed += 1
            except Exception as e:
                logger.error("Error processing student %s while finalizing %s: %s", student_id, classroom_id, e)
                result.errors.append(f"Error procesando estudiante {student_id}")

        try:
            record = _history_record(
                classroom, program_name, HistoryRole.TEACHER, completion_date,
                status=CompletionStatus.COMPLETED.value,
            )
            user_service.mark_classroom_completed(classroom["teacherId"], record, db)
            result.teacherProcessed = True
        except Exception as e:
            logger.error("Error processing teacher while finalizing %s: %s", classroom_id, e)
            result.errors.append("Error procesando profesor")

        if result.errors:
            result.partiallyFinalized = True
            logger.warning(
                "Classroom %s left active: %d migration error(s)", classroom_id, len(result.errors)
            )
            return result

        updates: Dict[str, Any] = {"isActive": False, "endDate": completion_date}
        if options.archiveWhatsappGroup and classroom.get("whatsappGroup"):
            updates["whatsappGroup"] = _archive_whatsapp_group(classroom)
        db.update_document(Collections.CLASSROOMS, classroom_id, updates)

        result.success = True
        logger.info(
            "Finalized classroom %s: %d student(s), snapshot %s",
            classroom_id, result.studentsProcessed, result.snapshotId,
        )
        return result
    except Exception as e:
        logger.exception("Error finalizing classroom %s", classroom_id)
        result.errors.append(str(e) or "Error desconocido")
        return result


def _select_snapshot(classroom_id: str, db: DatabaseService, snapshot_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if snapshot_id:
        snapshot = db.get_document(Collections.FINALIZATION_SNAPSHOTS, snapshot_id)
        if snapshot and snapshot.get("classroomId") == classroom_id:
            return snapshot
        return None
    history = get_finalization_history(classroom_id, db)
    return history[0] if history else None


def revert_finalization(
    classroom_id: str,
    db: DatabaseService,
    snapshot_id: Optional[str] = None,
) -> FinalizationResult:
    """
    Restores the users' list fields from a snapshot and reopens the
    classroom. Without `snapshot_id` the most recent snapshot is used.
    """
    result = FinalizationResult(classroomId=classroom_id)

    try:
        snapshot = _select_snapshot(classroom_id, db, snapshot_id)
        if not snapshot:
            result.errors.append("No se encontró snapshot para revertir")
            return result
        result.snapshotId = snapshot["id"]

        for student in snapshot.get("students") or []:
            try:
                db.update_document(Collections.USERS, student["userId"], {
                    "enrolledClassrooms": student.get("enrolledClassrooms") or [],
                    "completedClassrooms": student.get("completedClassrooms") or [],
                })
                result.studentsProcessed += 1
            except Exception as e:
                logger.error("Error restoring student %s: %s", student.get("userId"), e)
                result.errors.append(f"Error restaurando estudiante {student.get('userId')}")

        teacher = snapshot.get("teacher") or {}
        try:
            db.update_document(Collections.USERS, teacher["userId"], {
                "teachingClassrooms": teacher.get("teachingClassrooms") or [],
                "taughtClassrooms": teacher.get("taughtClassrooms") or [],
            })
            result.teacherProcessed = True
        except Exception as e:
            logger.error("Error restoring teacher of classroom %s: %s", classroom_id, e)
            result.errors.append("Error restaurando profesor")

        if db.document_exists(Collections.CLASSROOMS, classroom_id):
            saved_group = (snapshot.get("classroom") or {}).get("whatsappGroup")
            updates: Dict[str, Any] = {"isActive": True, "endDate": DELETE_FIELD}
            if saved_group:
                updates["whatsappGroup"] = saved_group
            db.update_document(Collections.CLASSROOMS, classroom_id, updates)

        result.success = not result.errors
        result.canRevert = True
        logger.info("Reverted finalization of classroom %s from snapshot %s", classroom_id, snapshot["id"])
        return result
    except Exception as e:
        logger.exception("Error reverting finalization of classroom %s", classroom_id)
        result.errors.append(str(e) or "Error desconocido al revertir")
        return result


def get_finalization_history(classroom_id: str, db: DatabaseService) -> List[Dict[str, Any]]:
    """Snapshots of a classroom, newest first."""
    snapshots = db.query_documents(Collections.FINALIZATION_SNAPSHOTS, "classroomId", "==", classroom_id)
    return sorted(
        snapshots,
        key=lambda s: s.get("timestamp") or datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )


def is_finalized(classroom_id: str, db: DatabaseService) -> bool:
    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    return bool(classroom) and not classroom.get("isActive", True) and bool(classroom.get("endDate"))


def get_finalization_stats(classroom_id: str, db: DatabaseService) -> FinalizationStats:
    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    if not classroom:
        raise ValueError("Clase no encontrada")

    evaluated = [e for e in _evaluations_by_student(classroom_id, db).values() if e.get("status") == "evaluated"]
    grades = [e.get("percentage") or 0 for e in evaluated]
    modules = classroom.get("modules") or []

    return FinalizationStats(
        totalStudents=len(classroom.get("studentIds") or []),
        evaluated=len(evaluated),
        passed=len([g for g in grades if g >= PASSING_GRADE]),
        failed=len([g for g in grades if g < PASSING_GRADE]),
        averageGrade=sum(grades) / len(grades) if grades else 0,
        completedModules=len([m for m in modules if m.get("isCompleted")]),
        totalModules=len(modules),
    )


def batch_finalize(
    classroom_ids: List[str],
    db: DatabaseService,
    options: Optional[FinalizationOptions] = None,
) -> List[FinalizationResult]:
    """Finalizes classrooms one after another; one failure does not stop the rest."""
    return [finalize_classroom(classroom_id, db, options) for classroom_id in classroom_ids]


def cleanup_old_snapshots(classroom_id: str, db: DatabaseService, keep: int = DEFAULT_SNAPSHOTS_KEPT) -> int:
    """Deletes all but the `keep` most recent snapshots and returns how many went."""
    stale = get_finalization_history(classroom_id, db)[keep:]
    deleted = 0
    for snapshot in stale:
        if db.delete_document(Collections.FINALIZATION_SNAPSHOTS, snapshot["id"]):
            deleted += 1
    if deleted:
        logger.info("Deleted %d old snapshot(s) of classroom %s", deleted, classroom_id)
    return deleted
