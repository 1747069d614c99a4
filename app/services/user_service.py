# /app/services/user_service.py

"""
Business logic for the user directory: students, teachers and admins.

A single user record can be a student and a teacher at the same time
(`role` plus the independent `isTeacher` flag). Enrollment bookkeeping lives
on the user as arrays of classroom ids, and finished classrooms are kept as
embedded history records.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from ..models.user_model import (
    ClassroomHistory, HistoryRole, User, UserCreate, UserRole, UserStatistics, UserUpdate,
)
from .database_service import Collections, DatabaseService, DocumentNotFoundError

logger = logging.getLogger(__name__)

HISTORY_FIELDS = {
    HistoryRole.STUDENT.value: ("enrolledClassrooms", "completedClassrooms"),
    HistoryRole.TEACHER.value: ("teachingClassrooms", "taughtClassrooms"),
}


def _to_user(document: Optional[Dict[str, Any]]) -> Optional[User]:
    return User.model_validate(document) if document else None


# --- Reads ---

def get_all_users(db: DatabaseService) -> List[User]:
    """All users, newest first."""
    documents = db.get_documents(Collections.USERS, order_by="createdAt", descending=True)
    return [_to_user(d) for d in documents]


def get_users_by_role(role: Union[UserRole, str], db: DatabaseService) -> List[User]:
    role_value = role.value if isinstance(role, UserRole) else role
    return [_to_user(d) for d in db.query_documents(Collections.USERS, "role", "==", role_value)]


def get_teachers(db: DatabaseService) -> List[User]:
    return [_to_user(d) for d in db.query_documents(Collections.USERS, "isTeacher", "==", True)]


def get_students(db: DatabaseService) -> List[User]:
    """Users with the student role, excluding those who also teach."""
    return [u for u in get_users_by_role(UserRole.STUDENT, db) if not u.isTeacher]


def get_user_by_id(user_id: str, db: DatabaseService) -> Optional[User]:
    return _to_user(db.get_document(Collections.USERS, user_id))


def get_users_by_classroom(classroom_id: str, db: DatabaseService) -> List[User]:
    """Students currently enrolled in a classroom."""
    documents = db.query_documents(Collections.USERS, "enrolledClassrooms", "array-contains", classroom_id)
    return [_to_user(d) for d in documents]


def get_teachers_by_classroom(classroom_id: str, db: DatabaseService) -> List[User]:
    documents = db.query_documents(Collections.USERS, "teachingClassrooms", "array-contains", classroom_id)
    return [_to_user(d) for d in documents]


# --- Uniqueness checks ---

def is_phone_unique(phone: str, db: DatabaseService, exclude_user_id: Optional[str] = None) -> bool:
    users = db.query_documents(Collections.USERS, "phone", "==", phone)
    return not [u for u in users if u["id"] != exclude_user_id]


def is_email_unique(email: str, db: DatabaseService, exclude_user_id: Optional[str] = None) -> bool:
    users = db.query_documents(Collections.USERS, "email", "==", email)
    return not [u for u in users if u["id"] != exclude_user_id]


# --- Writes ---

def create_user(user_data: UserCreate, db: DatabaseService) -> User:
    """
    Creates a user after checking that the phone number (and the email, when
    given) are not already registered.
    """
    if not is_phone_unique(user_data.phone, db):
        raise ValueError(f"Ya existe un usuario con el teléfono {user_data.phone}")
    if user_data.email and not is_email_unique(user_data.email, db):
        raise ValueError(f"Ya existe un usuario con el correo {user_data.email}")

    record = user_data.model_dump(exclude_none=True)
    record.setdefault("completedClassrooms", [])
    record.setdefault("taughtClassrooms", [])

    user_id = db.create_document(Collections.USERS, record)
    logger.info("Created user %s (%s)", user_id, record.get("role"))
    return get_user_by_id(user_id, db)


def update_user(user_id: str, updates: Union[UserUpdate, Dict[str, Any]], db: DatabaseService) -> User:
    """
    Applies a partial update. Raises DocumentNotFoundError for unknown users
    and ValueError when the new phone or email belongs to someone else.
    """
    if isinstance(updates, UserUpdate):
        update_data = updates.model_dump(exclude_unset=True)
    else:
        update_data = dict(updates)
    if not update_data:
        raise ValueError("No update data provided.")

    if update_data.get("phone") and not is_phone_unique(update_data["phone"], db, exclude_user_id=user_id):
        raise ValueError(f"Ya existe un usuario con el teléfono {update_data['phone']}")
    if update_data.get("email") and not is_email_unique(update_data["email"], db, exclude_user_id=user_id):
        raise ValueError(f"Ya existe un usuario con el correo {update_data['email']}")

    db.update_document(Collections.USERS, user_id, update_data)
    return get_user_by_id(user_id, db)


def update_user_role(user_id: str, new_role: Union[UserRole, str], db: DatabaseService, is_teacher: bool = False) -> User:
    role_value = new_role.value if isinstance(new_role, UserRole) else new_role
    db.update_document(Collections.USERS, user_id, {"role": role_value, "isTeacher": is_teacher})
    return get_user_by_id(user_id, db)


def toggle_teacher_status(user_id: str, db: DatabaseService) -> User:
    user = db.get_document(Collections.USERS, user_id)
    if not user:
        raise DocumentNotFoundError(Collections.USERS, user_id)
    db.update_document(Collections.USERS, user_id, {"isTeacher": not user.get("isTeacher", False)})
    return get_user_by_id(user_id, db)


def delete_user(user_id: str, db: DatabaseService) -> bool:
    """
    Deletes the user and drops the id from every classroom roster. A user
    that is still some classroom's teacher cannot be deleted, since
    finalization and restart both need the teacher record.
    """
    if not db.document_exists(Collections.USERS, user_id):
        return False

    taught = db.query_documents(Collections.CLASSROOMS, "teacherId", "==", user_id)
    if taught:
        raise ValueError(f"El usuario es profesor de {len(taught)} clase(s); reasigne las clases antes de eliminarlo")

    for classroom in db.query_documents(Collections.CLASSROOMS, "studentIds", "array-contains", user_id):
        student_ids = [sid for sid in classroom.get("studentIds") or [] if sid != user_id]
        db.update_document(Collections.CLASSROOMS, classroom["id"], {"studentIds": student_ids})
        logger.info("Removed deleted user %s from classroom %s", user_id, classroom["id"])

    return db.delete_document(Collections.USERS, user_id)


# --- Enrollment bookkeeping ---

def _require_user(user_id: str, db: DatabaseService) -> Dict[str, Any]:
    user = db.get_document(Collections.USERS, user_id)
    if not user:
        raise ValueError(f"Usuario {user_id} no encontrado")
    return user


def enroll_in_classroom(user_id: str, classroom_id: str, db: DatabaseService) -> None:
    """Adds the classroom to the user's enrolled list. Enrolling twice is a no-op."""
    user = _require_user(user_id, db)
    enrolled = list(user.get("enrolledClassrooms") or [])
    if classroom_id not in enrolled:
        enrolled.append(classroom_id)
        db.update_document(Collections.USERS, user_id, {"enrolledClassrooms": enrolled})


def remove_from_classroom(user_id: str, classroom_id: str, db: DatabaseService) -> None:
    user = _require_user(user_id, db)
    enrolled = [cid for cid in (user.get("enrolledClassrooms") or []) if cid != classroom_id]
    db.update_document(Collections.USERS, user_id, {"enrolledClassrooms": enrolled})


def assign_teacher_to_classroom(teacher_id: str, classroom_id: str, db: DatabaseService) -> None:
    """Adds the classroom to the teacher's list and makes sure `isTeacher` is set."""
    teacher = _require_user(teacher_id, db)
    teaching = list(teacher.get("teachingClassrooms") or [])
    if classroom_id not in teaching:
        teaching.append(classroom_id)
        db.update_document(Collections.USERS, teacher_id, {"teachingClassrooms": teaching, "isTeacher": True})


def remove_teacher_from_classroom(teacher_id: str, classroom_id: str, db: DatabaseService) -> None:
    teacher = _require_user(teacher_id, db)
    teaching = [cid for cid in (teacher.get("teachingClassrooms") or []) if cid != classroom_id]
    db.update_document(Collections.USERS, teacher_id, {"teachingClassrooms": teaching})


def upsert_history_record(records: List[Dict[str, Any]], record: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Returns a copy of `records` with `record` placed under its
    (classroomId, role) key: an existing entry is overwritten in place,
    otherwise the record is appended.
    """
    updated = list(records)
    for index, existing in enumerate(updated):
        if existing.get("classroomId") == record["classroomId"] and existing.get("role") == record["role"]:
            updated[index] = record
            return updated
    updated.append(record)
    return updated


def mark_classroom_completed(user_id: str, history: ClassroomHistory, db: DatabaseService) -> None:
    """
    Moves a classroom from the user's current list into history in a single
    write. Students go from `enrolledClassrooms` to `completedClassrooms`,
    teachers from `teachingClassrooms` to `taughtClassrooms`.
    """
    user = db.get_document(Collections.USERS, user_id)
    if not user:
        raise ValueError(f"Usuario {user_id} no encontrado")

    current_field, history_field = HISTORY_FIELDS[history.role]

    current = user.get(current_field)
    current = [cid for cid in current if cid != history.classroomId] if isinstance(current, list) else []

    past = user.get(history_field)
    past = past if isinstance(past, list) else []

    record = history.model_dump(exclude_none=True)
    if history.role == HistoryRole.TEACHER.value:
        record.pop("finalGrade", None)

    db.update_document(Collections.USERS, user_id, {
        current_field: current,
        history_field: upsert_history_record(past, record),
    })


# --- Search & statistics ---

def search_users(query: str, db: DatabaseService) -> List[User]:
    """Case-insensitive match on full name, phone or email."""
    needle = query.lower()
    return [
        user for user in get_all_users(db)
        if needle in user.full_name.lower()
        or needle in (user.phone or "").lower()
        or needle in (user.email or "").lower()
    ]


def get_user_statistics(db: DatabaseService) -> UserStatistics:
    users = get_all_users(db)
    return UserStatistics(
        totalUsers=len(users),
        totalStudents=len([u for u in users if u.role == UserRole.STUDENT.value and not u.isTeacher]),
        totalTeachers=len([u for u in users if u.isTeacher]),
        totalAdmins=len([u for u in users if u.role == UserRole.ADMIN.value]),
        activeUsers=len([u for u in users if u.isActive]),
    )
