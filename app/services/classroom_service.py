# /app/services/classroom_service.py

"""
This service module is the business logic layer for classrooms.

It is a facade over three specialist helpers: `crud` for the classroom
registry itself, `finalization` and `restart` for the lifecycle engine, and
`run_history` for the runs that restart leaves behind. The WhatsApp glue
lives here because it needs both the registry and a messaging client.
"""

import logging
from typing import Any, Dict, List, Optional

from ..models.classroom_model import Classroom, ClassroomCreate, ClassroomStatistics, ClassroomUpdate
from ..models.classroom_run_model import AggregatedRunStats, ClassroomRun
from ..models.lifecycle_model import (
    FinalizationOptions, FinalizationResult, FinalizationStats, RestartResult, ValidationResult,
)
from ..models.user_model import UserCreate
from ..models.whatsapp_model import WhatsappGroup, WhatsappMessage, WhatsappResponse
from . import user_service
from .classroom_helpers import crud, finalization, restart, run_history
from .database_service import Collections, DatabaseService
from .whatsapp_service import WhatsappClient, create_classroom_announcement, create_closing_message, format_phone_number

logger = logging.getLogger(__name__)


# --- Facade Methods for CRUD Operations ---

def get_all_classrooms(db: DatabaseService) -> List[Classroom]:
    return crud.get_all_classrooms(db)


def get_active_classrooms(db: DatabaseService) -> List[Classroom]:
    return crud.get_active_classrooms(db)


def get_classrooms_by_program(program_id: str, db: DatabaseService) -> List[Classroom]:
    return crud.get_classrooms_by_program(program_id, db)


def get_classrooms_by_teacher(teacher_id: str, db: DatabaseService, is_admin: bool = False) -> List[Classroom]:
    return crud.get_classrooms_by_teacher(teacher_id, db, is_admin=is_admin)


def get_classroom_by_id(classroom_id: str, db: DatabaseService) -> Optional[Classroom]:
    return crud.get_classroom_by_id(classroom_id, db)


def create_classroom(classroom_data: ClassroomCreate, db: DatabaseService) -> Classroom:
    """Raises ValueError when the evaluation criteria do not total 100 points."""
    return crud.create_classroom(classroom_data, db)


def update_classroom(classroom_id: str, classroom_update: ClassroomUpdate, db: DatabaseService) -> Classroom:
    return crud.update_classroom(classroom_id, classroom_update, db)


def delete_classroom(classroom_id: str, db: DatabaseService) -> bool:
    return crud.delete_classroom(classroom_id, db)


def add_student_to_classroom(classroom_id: str, student_id: str, db: DatabaseService) -> Classroom:
    return crud.add_student_to_classroom(classroom_id, student_id, db)


def remove_student_from_classroom(classroom_id: str, student_id: str, db: DatabaseService) -> Classroom:
    return crud.remove_student_from_classroom(classroom_id, student_id, db)


def update_current_module(classroom_id: str, module_id: str, db: DatabaseService) -> Classroom:
    return crud.update_current_module(classroom_id, module_id, db)


def mark_module_completed(classroom_id: str, module_id: str, db: DatabaseService) -> Classroom:
    return crud.mark_module_completed(classroom_id, module_id, db)


def toggle_classroom_status(classroom_id: str, db: DatabaseService) -> Classroom:
    return crud.toggle_classroom_status(classroom_id, db)


def get_classroom_statistics(classroom_id: str, db: DatabaseService) -> ClassroomStatistics:
    return crud.get_classroom_statistics(classroom_id, db)


# --- WhatsApp Group Glue ---

def _group_phones(classroom: Dict[str, Any], db: DatabaseService) -> List[str]:
    """Formatted phones of the enrolled students, with the teacher first."""
    phones = [
        format_phone_number(s.phone)
        for s in user_service.get_users_by_classroom(classroom["id"], db)
        if s.phone
    ]
    teacher = user_service.get_user_by_id(classroom.get("teacherId"), db)
    if teacher and teacher.phone:
        phones.insert(0, format_phone_number(teacher.phone))
    return phones


def _require_group(classroom_id: str, db: DatabaseService) -> Dict[str, Any]:
    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    if not classroom:
        raise ValueError("Clase no encontrada")
    if not classroom.get("whatsappGroup"):
        raise ValueError("La clase no tiene un grupo de WhatsApp asociado")
    return classroom


async def create_whatsapp_group(classroom_id: str, db: DatabaseService, client: WhatsappClient) -> WhatsappGroup:
    """
    Creates the classroom's group with the teacher and every enrolled student
    and stores the provider's group on the classroom.
    """
    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    if not classroom:
        raise ValueError("Clase no encontrada")

    phones = _group_phones(classroom, db)
    teacher = user_service.get_user_by_id(classroom.get("teacherId"), db)
    group_name = f"{classroom.get('subject', '')} - {classroom.get('name', '')}"
    description = f"Grupo de la clase {classroom.get('subject', '')}. Profesor: {teacher.full_name if teacher else 'N/A'}"

    response = await client.create_group(group_name, phones, description)
    if not response.success or not isinstance(response.data, dict):
        raise ValueError(response.error or "Error al crear grupo de WhatsApp")

    data = dict(response.data)
    data.setdefault("id", data.get("groupId"))
    data.setdefault("name", group_name)
    data.setdefault("participantCount", len(phones))
    group = WhatsappGroup.model_validate(data)

    db.update_document(Collections.CLASSROOMS, classroom_id, {"whatsappGroup": group.model_dump(exclude_none=True)})
    logger.info("Linked WhatsApp group %s to classroom %s", group.id, classroom_id)
    return group


async def sync_whatsapp_group(classroom_id: str, db: DatabaseService, client: WhatsappClient) -> List[str]:
    """
    Brings the group in line with the roster, then enrolls any group member
    the classroom does not know about yet as a new student. Returns the ids
    of the students created that way.
    """
    classroom = _require_group(classroom_id, db)
    group_id = classroom["whatsappGroup"]["id"]

    response = await client.sync_group_participants(group_id, classroom_id, _group_phones(classroom, db))
    if not response.success:
        raise ValueError(response.error or "Error al sincronizar grupo")

    participants = await client.get_group_participants(group_id)

    teacher = user_service.get_user_by_id(classroom.get("teacherId"), db)
    teacher_phone = format_phone_number(teacher.phone) if teacher and teacher.phone else None
    known_phones = {format_phone_number(s.phone) for s in user_service.get_users_by_classroom(classroom_id, db)}

    created: List[str] = []
    for participant in participants.data or []:
        phone = participant.get("phone")
        if not phone or phone == teacher_phone or phone in known_phones:
            continue
        if user_service.is_phone_unique(phone, db):
            student = user_service.create_user(UserCreate(
                firstName=participant.get("name") or "Estudiante",
                lastName="Nuevo",
                phone=phone,
            ), db)
            student_id = student.id
            created.append(student_id)
        else:
            student_id = db.query_documents(Collections.USERS, "phone", "==", phone)[0]["id"]
        crud.add_student_to_classroom(classroom_id, student_id, db)
        known_phones.add(phone)

    return created


async def send_whatsapp_message(
    classroom_id: str,
    message: str,
    db: DatabaseService,
    client: WhatsappClient,
    include_header: bool = False,
) -> WhatsappResponse:
    classroom = _require_group(classroom_id, db)
    group = classroom["whatsappGroup"]
    text = create_classroom_announcement(classroom, message, include_header=include_header)

    response = await client.send_message(
        [group["id"]],
        WhatsappMessage(content=text),
        delay=5,
        group_title=group.get("name") or f"{classroom.get('subject', '')} - {classroom.get('name', '')}",
    )
    if not response.success:
        raise ValueError(response.error or "Error al enviar mensaje")
    return response


# --- Lifecycle ---

def validate_finalization(classroom_id: str, db: DatabaseService) -> ValidationResult:
    return finalization.validate_finalization(classroom_id, db)


def finalize_classroom(
    classroom_id: str,
    db: DatabaseService,
    options: Optional[FinalizationOptions] = None,
) -> FinalizationResult:
    return finalization.finalize_classroom(classroom_id, db, options)


async def finalize_classroom_and_notify(
    classroom_id: str,
    db: DatabaseService,
    options: Optional[FinalizationOptions] = None,
    client: Optional[WhatsappClient] = None,
) -> FinalizationResult:
    """
    Finalizes, then posts a closing announcement to the classroom's group.
    The announcement is skipped with `skipNotifications`, without a client or
    without a group, and a failed announcement never undoes a finalize.
    """
    options = options or FinalizationOptions()
    result = finalization.finalize_classroom(classroom_id, db, options)
    if not result.success or options.skipNotifications or client is None:
        return result

    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    group = (classroom or {}).get("whatsappGroup")
    if not group:
        return result

    response = await client.send_message(
        [group["id"]],
        WhatsappMessage(content=create_closing_message(classroom)),
        group_title=group.get("name"),
    )
    if response.success:
        result.notificationSent = True
    else:
        logger.warning("Closing announcement for classroom %s failed: %s", classroom_id, response.error)
        result.notificationError = response.error or "Error al enviar mensaje"
    return result


def revert_finalization(classroom_id: str, db: DatabaseService, snapshot_id: Optional[str] = None) -> FinalizationResult:
    return finalization.revert_finalization(classroom_id, db, snapshot_id=snapshot_id)


def is_finalized(classroom_id: str, db: DatabaseService) -> bool:
    return finalization.is_finalized(classroom_id, db)


def get_finalization_stats(classroom_id: str, db: DatabaseService) -> FinalizationStats:
    return finalization.get_finalization_stats(classroom_id, db)


def get_finalization_history(classroom_id: str, db: DatabaseService) -> List[Dict[str, Any]]:
    return finalization.get_finalization_history(classroom_id, db)


def batch_finalize(classroom_ids: List[str], db: DatabaseService, options: Optional[FinalizationOptions] = None) -> List[FinalizationResult]:
    return finalization.batch_finalize(classroom_ids, db, options)


def cleanup_old_snapshots(classroom_id: str, db: DatabaseService, keep: int = finalization.DEFAULT_SNAPSHOTS_KEPT) -> int:
    return finalization.cleanup_old_snapshots(classroom_id, db, keep=keep)


def validate_restart(classroom_id: str, db: DatabaseService) -> ValidationResult:
    return restart.validate_restart(classroom_id, db)


def restart_classroom(classroom_id: str, user_id: str, db: DatabaseService, notes: Optional[str] = None) -> RestartResult:
    return restart.restart_classroom(classroom_id, user_id, db, notes=notes)


# --- Run History ---

def get_classroom_runs(classroom_id: str, db: DatabaseService) -> List[ClassroomRun]:
    return run_history.get_classroom_runs(classroom_id, db)


def get_run_by_id(run_id: str, db: DatabaseService) -> Optional[ClassroomRun]:
    return run_history.get_run_by_id(run_id, db)


def get_teacher_runs(teacher_id: str, db: DatabaseService) -> List[ClassroomRun]:
    return run_history.get_teacher_runs(teacher_id, db)


def get_program_runs(program_id: str, db: DatabaseService) -> List[ClassroomRun]:
    return run_history.get_program_runs(program_id, db)


def delete_run(run_id: str, db: DatabaseService) -> bool:
    return run_history.delete_run(run_id, db)


def get_aggregated_run_stats(classroom_id: str, db: DatabaseService) -> AggregatedRunStats:
    return run_history.get_aggregated_stats(classroom_id, db)


def export_run_as_csv(run_id: str, db: DatabaseService) -> str:
    return run_history.export_run_as_csv(run_id, db)
