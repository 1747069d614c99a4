# /tests/test_user_service.py

import pytest
from datetime import datetime, timezone

from app.models.user_model import ClassroomHistory, UserUpdate
from app.services import user_service
from app.services.database_service import Collections, DocumentNotFoundError
from tests.conftest import make_user


def _history(role, classroom_id="cls_1", grade=None, status="completed"):
    now = datetime(2025, 6, 1, tzinfo=timezone.utc)
    return ClassroomHistory(
        classroomId=classroom_id,
        classroomName="Introducción a la Biblia",
        programId="prg_1",
        programName="Teología Básica",
        role=role,
        enrollmentDate=now,
        completionDate=now,
        finalGrade=grade,
        status=status,
    )


def test_create_user_initialises_history_lists(db):
    user = make_user(db, "Luis", "5552000001")
    assert user.completedClassrooms == []
    assert user.taughtClassrooms == []
    assert user.role == "student"


def test_duplicate_phone_is_rejected(db):
    make_user(db, "Luis", "5552000001")
    with pytest.raises(ValueError, match="teléfono"):
        make_user(db, "Otro", "5552000001")


def test_duplicate_email_is_rejected(db):
    make_user(db, "Luis", "5552000001", email="luis@example.com")
    with pytest.raises(ValueError, match="correo"):
        make_user(db, "Otro", "5552000002", email="luis@example.com")


def test_blank_email_is_stored_as_missing(db):
    first = make_user(db, "Luis", "5552000001", email="")
    second = make_user(db, "Marta", "5552000002", email="  ")
    assert first.email is None and second.email is None

    mixed_case = make_user(db, "Pedro", "5552000003", email="Pedro@Example.COM")
    assert mixed_case.email == "pedro@example.com"


def test_update_user_allows_keeping_own_phone(db):
    user = make_user(db, "Luis", "5552000001")
    updated = user_service.update_user(user.id, UserUpdate(phone="5552000001", firstName="Luis Alberto"), db)
    assert updated.firstName == "Luis Alberto"


def test_update_unknown_user_raises(db):
    with pytest.raises(DocumentNotFoundError):
        user_service.update_user("ghost", {"firstName": "X"}, db)


def test_students_exclude_teachers(db):
    make_user(db, "Luis", "5552000001")
    make_user(db, "Ana", "5551000000", isTeacher=True)

    assert [u.firstName for u in user_service.get_students(db)] == ["Luis"]
    assert [u.firstName for u in user_service.get_teachers(db)] == ["Ana"]


def test_toggle_teacher_status(db):
    user = make_user(db, "Luis", "5552000001")
    assert user_service.toggle_teacher_status(user.id, db).isTeacher is True
    assert user_service.toggle_teacher_status(user.id, db).isTeacher is False


def test_enrollment_is_idempotent(db):
    user = make_user(db, "Luis", "5552000001")
    user_service.enroll_in_classroom(user.id, "cls_1", db)
    user_service.enroll_in_classroom(user.id, "cls_1", db)
    assert user_service.get_user_by_id(user.id, db).enrolledClassrooms == ["cls_1"]

    user_service.remove_from_classroom(user.id, "cls_1", db)
    assert user_service.get_user_by_id(user.id, db).enrolledClassrooms == []


def test_assigning_a_teacher_sets_the_flag(db):
    user = make_user(db, "Ana", "5551000000")
    user_service.assign_teacher_to_classroom(user.id, "cls_1", db)

    teacher = user_service.get_user_by_id(user.id, db)
    assert teacher.isTeacher is True
    assert [t.id for t in user_service.get_teachers_by_classroom("cls_1", db)] == [user.id]


def test_roster_helpers_reject_unknown_users(db):
    with pytest.raises(ValueError, match="no encontrado"):
        user_service.enroll_in_classroom("ghost", "cls_1", db)


def test_mark_classroom_completed_moves_student_to_history(db):
    user = make_user(db, "Luis", "5552000001", enrolledClassrooms=["cls_1", "cls_2"])
    user_service.mark_classroom_completed(user.id, _history("student", grade=85), db)

    stored = db.get_document(Collections.USERS, user.id)
    assert stored["enrolledClassrooms"] == ["cls_2"]
    assert len(stored["completedClassrooms"]) == 1
    assert stored["completedClassrooms"][0]["finalGrade"] == 85


def test_mark_classroom_completed_upserts(db):
    user = make_user(db, "Luis", "5552000001", enrolledClassrooms=["cls_1"])
    user_service.mark_classroom_completed(user.id, _history("student", grade=60, status="failed"), db)
    user_service.mark_classroom_completed(user.id, _history("student", grade=75), db)

    history = db.get_document(Collections.USERS, user.id)["completedClassrooms"]
    assert len(history) == 1
    assert history[0]["finalGrade"] == 75
    assert history[0]["status"] == "completed"


def test_teacher_history_never_carries_a_grade(db):
    user = make_user(db, "Ana", "5551000000", teachingClassrooms=["cls_1"])
    user_service.mark_classroom_completed(user.id, _history("teacher", grade=99), db)

    stored = db.get_document(Collections.USERS, user.id)
    assert stored["teachingClassrooms"] == []
    assert "finalGrade" not in stored["taughtClassrooms"][0]


def test_upsert_history_record_keys_on_classroom_and_role():
    records = [{"classroomId": "cls_1", "role": "student", "finalGrade": 50}]

    same = user_service.upsert_history_record(records, {"classroomId": "cls_1", "role": "student", "finalGrade": 90})
    other_role = user_service.upsert_history_record(records, {"classroomId": "cls_1", "role": "teacher"})

    assert same == [{"classroomId": "cls_1", "role": "student", "finalGrade": 90}]
    assert len(other_role) == 2
    assert records[0]["finalGrade"] == 50


def test_search_and_statistics(db):
    make_user(db, "Luis", "5552000001", email="luis@example.com")
    make_user(db, "Ana", "5551000000", isTeacher=True)
    make_user(db, "Root", "5559999999", role="admin", isActive=False)

    assert [u.firstName for u in user_service.search_users("LUIS@", db)] == ["Luis"]

    stats = user_service.get_user_statistics(db)
    assert stats.totalUsers == 3
    assert stats.totalTeachers == 1
    assert stats.totalAdmins == 1
    assert stats.activeUsers == 2


def test_delete_user_leaves_classroom_rosters(db, school):
    luis, marta = school.students

    assert user_service.delete_user(luis.id, db) is True

    assert db.get_document(Collections.USERS, luis.id) is None
    assert db.get_document(Collections.CLASSROOMS, school.classroom.id)["studentIds"] == [marta.id]


def test_teacher_of_a_classroom_cannot_be_deleted(db, school):
    with pytest.raises(ValueError, match="profesor"):
        user_service.delete_user(school.teacher.id, db)
    assert db.get_document(Collections.USERS, school.teacher.id) is not None


def test_delete_unknown_user(db):
    assert user_service.delete_user("ghost", db) is False
