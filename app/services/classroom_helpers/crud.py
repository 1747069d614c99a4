# /app/services/classroom_helpers/crud.py

import logging
from typing import Any, Dict, List, Optional

from ...models.classroom_model import (
    Classroom, ClassroomCreate, ClassroomStatistics, ClassroomUpdate, EvaluationCriteria,
)
from .. import program_service, user_service
from ..database_service import Collections, DatabaseService

logger = logging.getLogger(__name__)

CRITERIA_TOTAL_ERROR = "Los criterios de evaluación deben sumar 100 puntos"


def _to_classroom(document: Optional[Dict[str, Any]]) -> Optional[Classroom]:
    return Classroom.model_validate(document) if document else None


def _require_classroom(classroom_id: str, db: DatabaseService) -> Dict[str, Any]:
    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    if not classroom:
        raise ValueError("Clase no encontrada")
    return classroom


def _check_criteria(criteria: EvaluationCriteria) -> None:
    if criteria.total_points() != 100:
        raise ValueError(CRITERIA_TOTAL_ERROR)


# --- CLASSROOM READS ---

def get_all_classrooms(db: DatabaseService) -> List[Classroom]:
    documents = db.get_documents(Collections.CLASSROOMS, order_by="createdAt", descending=True)
    return [_to_classroom(d) for d in documents]


def get_active_classrooms(db: DatabaseService) -> List[Classroom]:
    return [_to_classroom(d) for d in db.query_documents(Collections.CLASSROOMS, "isActive", "==", True)]


def get_classrooms_by_program(program_id: str, db: DatabaseService) -> List[Classroom]:
    return [_to_classroom(d) for d in db.query_documents(Collections.CLASSROOMS, "programId", "==", program_id)]


def get_classrooms_by_teacher(teacher_id: str, db: DatabaseService, is_admin: bool = False) -> List[Classroom]:
    """Admins see every classroom; teachers only the ones assigned to them."""
    if is_admin:
        return get_all_classrooms(db)
    return [_to_classroom(d) for d in db.query_documents(Collections.CLASSROOMS, "teacherId", "==", teacher_id)]


def get_classroom_by_id(classroom_id: str, db: DatabaseService) -> Optional[Classroom]:
    return _to_classroom(db.get_document(Collections.CLASSROOMS, classroom_id))


# --- CLASSROOM WRITES ---

def create_classroom(classroom_data: ClassroomCreate, db: DatabaseService) -> Classroom:
    """
    Creates the classroom and registers it on its program, its teacher and
    any students passed in with it.
    """
    _check_criteria(classroom_data.evaluationCriteria)

    record = classroom_data.model_dump(exclude_none=True)
    classroom_id = db.create_document(Collections.CLASSROOMS, record)

    if db.document_exists(Collections.PROGRAMS, classroom_data.programId):
        program_service.add_classroom_to_program(classroom_data.programId, classroom_id, db)
    else:
        logger.warning("Classroom %s references unknown program %s", classroom_id, classroom_data.programId)

    if db.document_exists(Collections.USERS, classroom_data.teacherId):
        user_service.assign_teacher_to_classroom(classroom_data.teacherId, classroom_id, db)

    for student_id in classroom_data.studentIds:
        if db.document_exists(Collections.USERS, student_id):
            user_service.enroll_in_classroom(student_id, classroom_id, db)

    logger.info("Created classroom %s (%s)", classroom_id, classroom_data.subject)
    return get_classroom_by_id(classroom_id, db)


def update_classroom(classroom_id: str, classroom_update: ClassroomUpdate, db: DatabaseService) -> Classroom:
    update_data = classroom_update.model_dump(exclude_unset=True)
    if not update_data:
        raise ValueError("No update data provided.")
    if classroom_update.evaluationCriteria is not None:
        _check_criteria(classroom_update.evaluationCriteria)

    current = _require_classroom(classroom_id, db)
    db.update_document(Collections.CLASSROOMS, classroom_id, update_data)

    new_teacher = update_data.get("teacherId")
    if new_teacher and new_teacher != current.get("teacherId"):
        if current.get("teacherId") and db.document_exists(Collections.USERS, current["teacherId"]):
            user_service.remove_teacher_from_classroom(current["teacherId"], classroom_id, db)
        user_service.assign_teacher_to_classroom(new_teacher, classroom_id, db)

    new_program = update_data.get("programId")
    if new_program and new_program != current.get("programId"):
        if db.document_exists(Collections.PROGRAMS, current.get("programId")):
            program_service.remove_classroom_from_program(current["programId"], classroom_id, db)
        program_service.add_classroom_to_program(new_program, classroom_id, db)

    return get_classroom_by_id(classroom_id, db)


def delete_classroom(classroom_id: str, db: DatabaseService) -> bool:
    """Unenrolls students, unassigns the teacher and detaches the program first."""
    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    if not classroom:
        return False

    for student in user_service.get_users_by_classroom(classroom_id, db):
        user_service.remove_from_classroom(student.id, classroom_id, db)

    teacher_id = classroom.get("teacherId")
    if teacher_id and db.document_exists(Collections.USERS, teacher_id):
        user_service.remove_teacher_from_classroom(teacher_id, classroom_id, db)

    program_id = classroom.get("programId")
    if program_id and db.document_exists(Collections.PROGRAMS, program_id):
        program_service.remove_classroom_from_program(program_id, classroom_id, db)

    return db.delete_document(Collections.CLASSROOMS, classroom_id)


# --- ROSTER ---

def add_student_to_classroom(classroom_id: str, student_id: str, db: DatabaseService) -> Classroom:
    classroom = _require_classroom(classroom_id, db)
    student_ids = list(classroom.get("studentIds") or [])
    if student_id not in student_ids:
        student_ids.append(student_id)
        db.update_document(Collections.CLASSROOMS, classroom_id, {"studentIds": student_ids})
        user_service.enroll_in_classroom(student_id, classroom_id, db)
    return get_classroom_by_id(classroom_id, db)


def remove_student_from_classroom(classroom_id: str, student_id: str, db: DatabaseService) -> Classroom:
    classroom = _require_classroom(classroom_id, db)
    student_ids = [sid for sid in (classroom.get("studentIds") or []) if sid != student_id]
    db.update_document(Collections.CLASSROOMS, classroom_id, {"studentIds": student_ids})
    user_service.remove_from_classroom(student_id, classroom_id, db)
    return get_classroom_by_id(classroom_id, db)


# --- MODULES & STATUS ---

def update_current_module(classroom_id: str, module_id: str, db: DatabaseService) -> Classroom:
    classroom = _require_classroom(classroom_id, db)
    module = next((m for m in classroom.get("modules") or [] if m.get("id") == module_id), None)
    if module is None:
        raise ValueError("Módulo no encontrado")
    db.update_document(Collections.CLASSROOMS, classroom_id, {"currentModule": module})
    return get_classroom_by_id(classroom_id, db)


def mark_module_completed(classroom_id: str, module_id: str, db: DatabaseService) -> Classroom:
    classroom = _require_classroom(classroom_id, db)
    modules = classroom.get("modules") or []
    if not any(m.get("id") == module_id for m in modules):
        raise ValueError("Módulo no encontrado")
    modules = [{**m, "isCompleted": True} if m.get("id") == module_id else m for m in modules]
    db.update_document(Collections.CLASSROOMS, classroom_id, {"modules": modules})
    return get_classroom_by_id(classroom_id, db)


def toggle_classroom_status(classroom_id: str, db: DatabaseService) -> Classroom:
    classroom = _require_classroom(classroom_id, db)
    db.update_document(Collections.CLASSROOMS, classroom_id, {"isActive": not classroom.get("isActive", True)})
    return get_classroom_by_id(classroom_id, db)


def get_classroom_statistics(classroom_id: str, db: DatabaseService) -> ClassroomStatistics:
    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    if not classroom:
        return ClassroomStatistics()
    modules = classroom.get("modules") or []
    return ClassroomStatistics(
        totalStudents=len(classroom.get("studentIds") or []),
        completedModules=len([m for m in modules if m.get("isCompleted")]),
        totalModules=len(modules),
        isActive=classroom.get("isActive", False),
        hasWhatsappGroup=bool(classroom.get("whatsappGroup")),
    )
