# /app/services/whatsapp_helpers/message_utils.py

"""
Pure helpers for the messaging gateway: phone number normalisation, message
and group validation, and the canned message templates sent to classroom
groups. Nothing in here talks to the provider.
"""

import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ...models.whatsapp_model import MessageType, MessageValidation, SendingTimeEstimate, WhatsappMessage

MAX_MESSAGE_LENGTH = 4096
MAX_GROUP_SIZE = 256
MESSAGE_FOOTER = "_Enviado desde el sistema de gestión de clases_"

_NON_DIGITS = re.compile(r"\D")
_PHONE_PATTERN = re.compile(r"(\+?1?\s*[-.]?\s*)?(\(?\d{3}\)?)\s*[-.]?\s*(\d{3})\s*[-.]?\s*(\d{4})")


# --- Phone numbers ---

def format_phone_number(phone: str) -> str:
    """
    Keeps only the digits of `phone`. Ten-digit numbers that do not already
    start with the country code get a leading "1".
    """
    cleaned = _NON_DIGITS.sub("", phone or "")
    if len(cleaned) == 10 and not cleaned.startswith("1"):
        cleaned = "1" + cleaned
    return cleaned


def is_valid_phone_number(phone: str) -> bool:
    return 10 <= len(_NON_DIGITS.sub("", phone or "")) <= 15


def format_phone_numbers(phones: Iterable[str]) -> List[str]:
    """Formats the valid numbers and silently drops the rest."""
    return [format_phone_number(p) for p in phones if is_valid_phone_number(p)]


def get_classroom_phone_numbers(classroom: Dict[str, Any], students: Iterable[Any]) -> List[str]:
    """Formatted phones of the given users that are enrolled in `classroom`."""
    enrolled = set(classroom.get("studentIds") or [])
    phones = []
    for student in students:
        student_id = student.get("id") if isinstance(student, dict) else student.id
        phone = student.get("phone") if isinstance(student, dict) else student.phone
        if phone and student_id in enrolled:
            phones.append(format_phone_number(phone))
    return phones


def extract_phone_numbers(text: str) -> List[str]:
    """Finds phone numbers in free text, formatted and de-duplicated in order."""
    found: List[str] = []
    for match in _PHONE_PATTERN.finditer(text or ""):
        phone = format_phone_number(match.group(0))
        if phone not in found:
            found.append(phone)
    return found


# --- Validation ---

def validate_message(message: WhatsappMessage) -> MessageValidation:
    if message.type == MessageType.TEXT.value and not message.content.strip():
        return MessageValidation(valid=False, error="El mensaje de texto no puede estar vacío")
    if message.type == MessageType.IMAGE.value and not (message.media and message.media.url):
        return MessageValidation(valid=False, error="La imagen debe tener una URL")
    if len(message.content) > MAX_MESSAGE_LENGTH:
        return MessageValidation(
            valid=False,
            error=f"El mensaje es demasiado largo (máximo {MAX_MESSAGE_LENGTH} caracteres)",
        )
    return MessageValidation(valid=True)


def validate_group_size(participant_count: int) -> MessageValidation:
    if participant_count < 1:
        return MessageValidation(valid=False, error="El grupo debe tener al menos 1 participante")
    if participant_count > MAX_GROUP_SIZE:
        return MessageValidation(
            valid=False,
            error=f"El grupo no puede tener más de {MAX_GROUP_SIZE} participantes",
        )
    return MessageValidation(valid=True)


def calculate_bulk_sending_time(message_count: int, delay_seconds: int) -> SendingTimeEstimate:
    total_seconds = message_count * delay_seconds
    minutes, seconds = divmod(total_seconds, 60)

    if minutes > 0:
        formatted = f"{minutes} minuto{'s' if minutes > 1 else ''}"
        if seconds > 0:
            formatted += f" y {seconds} segundo{'s' if seconds > 1 else ''}"
    else:
        formatted = f"{seconds} segundo{'s' if seconds > 1 else ''}"

    return SendingTimeEstimate(seconds=total_seconds, minutes=minutes, formatted=formatted)


# --- Templates ---

def create_classroom_announcement(classroom: Dict[str, Any], message: str, include_header: bool = True) -> str:
    if not include_header:
        return message
    return (
        f"📢 *{classroom.get('subject', '')}*\n"
        f"{classroom.get('name', '')}\n\n"
        f"{message}\n\n"
        f"{MESSAGE_FOOTER}"
    )


def create_module_update_message(
    classroom: Dict[str, Any],
    module_number: int,
    module_name: str,
    additional_info: Optional[str] = None,
) -> str:
    return (
        "📚 *Actualización de Módulo*\n\n"
        f"*Clase:* {classroom.get('subject', '')}\n"
        f"*Módulo:* Semana {module_number} - {module_name}\n\n"
        f"{additional_info or 'Nueva información disponible'}\n\n"
        f"{MESSAGE_FOOTER}"
    )


def create_evaluation_message(
    classroom: Dict[str, Any],
    student_name: str,
    grade: float,
    feedback: Optional[str] = None,
) -> str:
    feedback_block = f"*Retroalimentación:*\n{feedback}\n\n" if feedback else ""
    return (
        "📊 *Resultado de Evaluación*\n\n"
        f"*Estudiante:* {student_name}\n"
        f"*Clase:* {classroom.get('subject', '')}\n"
        f"*Calificación:* {grade:g}/100\n\n"
        f"{feedback_block}"
        f"{MESSAGE_FOOTER}"
    )


def create_closing_message(classroom: Dict[str, Any]) -> str:
    """Announcement sent to the classroom group once it has been finalized."""
    return create_classroom_announcement(
        classroom,
        "La clase ha finalizado. ¡Gracias a todos por su participación!",
    )


def suggest_group_name(classroom: Dict[str, Any], now: Optional[datetime] = None) -> str:
    year = (now or datetime.now()).year
    return f"{classroom.get('subject', '')} - {classroom.get('name', '')} ({year})"


def suggest_group_description(classroom: Dict[str, Any], teacher_name: Optional[str] = None) -> str:
    start_date = classroom.get("startDate")
    start = start_date.strftime("%d/%m/%Y") if isinstance(start_date, datetime) else "Por definir"
    return (
        f"Grupo oficial de la clase {classroom.get('subject', '')}. "
        f"Profesor: {teacher_name or 'N/A'}. "
        f"Inicio: {start}"
    )
