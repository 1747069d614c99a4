# /tests/test_classroom_finalization.py

import pytest
from datetime import datetime, timezone

from app.models.lifecycle_model import FinalizationOptions
from app.services import classroom_service, user_service
from app.services.database_service import Collections
from tests.conftest import grade_student, make_user

USER_LIST_FIELDS = ("enrolledClassrooms", "completedClassrooms", "teachingClassrooms", "taughtClassrooms")


def _user_lists(db, user_id):
    user = db.get_document(Collections.USERS, user_id)
    return {field: user.get(field) or [] for field in USER_LIST_FIELDS}


@pytest.fixture
def graded_school(db, school):
    """Luis finishes with 85 and Marta with 60."""
    luis, marta = school.students
    grade_student(db, luis.id, school.classroom.id, 85)
    grade_student(db, marta.id, school.classroom.id, 60)
    return school


def test_validation_reports_warnings_only(db, graded_school):
    validation = classroom_service.validate_finalization(graded_school.classroom.id, db)
    assert validation.isValid is True
    assert validation.errors == []
    assert "1 módulo(s) sin completar" in validation.warnings


def test_validation_of_unknown_classroom(db):
    validation = classroom_service.validate_finalization("ghost", db)
    assert validation.isValid is False
    assert validation.errors == ["Clase no encontrada"]


def test_finalize_moves_cohort_into_history(db, graded_school):
    classroom_id = graded_school.classroom.id
    luis, marta = graded_school.students

    result = classroom_service.finalize_classroom(classroom_id, db)

    assert result.success is True
    assert result.studentsProcessed == 2
    assert result.teacherProcessed is True
    assert result.canRevert is True
    assert result.snapshotId

    luis_doc = db.get_document(Collections.USERS, luis.id)
    assert luis_doc["enrolledClassrooms"] == []
    assert luis_doc["completedClassrooms"][0]["status"] == "completed"
    assert luis_doc["completedClassrooms"][0]["finalGrade"] == 85
    assert luis_doc["completedClassrooms"][0]["programName"] == "Teología Básica"

    marta_record = db.get_document(Collections.USERS, marta.id)["completedClassrooms"][0]
    assert marta_record["status"] == "failed"
    assert marta_record["finalGrade"] == 60

    teacher_doc = db.get_document(Collections.USERS, graded_school.teacher.id)
    assert teacher_doc["teachingClassrooms"] == []
    assert teacher_doc["taughtClassrooms"][0]["role"] == "teacher"
    assert "finalGrade" not in teacher_doc["taughtClassrooms"][0]

    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    assert classroom["isActive"] is False
    assert isinstance(classroom["endDate"], datetime)
    assert classroom_service.is_finalized(classroom_id, db) is True


def test_custom_completion_date(db, graded_school):
    when = datetime(2025, 6, 30, 12, 0, tzinfo=timezone.utc)
    classroom_service.finalize_classroom(graded_school.classroom.id, db, FinalizationOptions(customCompletionDate=when))

    assert db.get_document(Collections.CLASSROOMS, graded_school.classroom.id)["endDate"] == when
    record = db.get_document(Collections.USERS, graded_school.students[0].id)["completedClassrooms"][0]
    assert record["completionDate"] == when


def test_student_without_evaluation_fails_with_zero(db, school):
    classroom_service.finalize_classroom(school.classroom.id, db)
    record = db.get_document(Collections.USERS, school.students[0].id)["completedClassrooms"][0]
    assert record["status"] == "failed"
    assert record["finalGrade"] == 0


def test_finalizing_twice_does_not_duplicate_history(db, graded_school):
    classroom_service.finalize_classroom(graded_school.classroom.id, db)
    classroom_service.finalize_classroom(graded_school.classroom.id, db)

    luis_doc = db.get_document(Collections.USERS, graded_school.students[0].id)
    teacher_doc = db.get_document(Collections.USERS, graded_school.teacher.id)
    assert len(luis_doc["completedClassrooms"]) == 1
    assert len(teacher_doc["taughtClassrooms"]) == 1


def test_revert_restores_users_exactly(db, graded_school):
    classroom_id = graded_school.classroom.id
    user_ids = [s.id for s in graded_school.students] + [graded_school.teacher.id]
    before = {uid: _user_lists(db, uid) for uid in user_ids}

    classroom_service.finalize_classroom(classroom_id, db)
    result = classroom_service.revert_finalization(classroom_id, db)

    assert result.success is True
    assert result.studentsProcessed == 2
    assert {uid: _user_lists(db, uid) for uid in user_ids} == before

    classroom = db.get_document(Collections.CLASSROOMS, classroom_id)
    assert classroom["isActive"] is True
    assert "endDate" not in classroom
    assert classroom_service.is_finalized(classroom_id, db) is False


def test_revert_with_explicit_snapshot(db, graded_school):
    classroom_id = graded_school.classroom.id
    first = classroom_service.finalize_classroom(classroom_id, db)
    classroom_service.finalize_classroom(classroom_id, db)

    result = classroom_service.revert_finalization(classroom_id, db, snapshot_id=first.snapshotId)
    assert result.snapshotId == first.snapshotId

    wrong = classroom_service.revert_finalization("another-classroom", db, snapshot_id=first.snapshotId)
    assert wrong.success is False


def test_revert_without_snapshot(db, school):
    result = classroom_service.revert_finalization(school.classroom.id, db)
    assert result.success is False
    assert result.errors == ["No se encontró snapshot para revertir"]


def test_partial_failure_keeps_classroom_open(db, graded_school, mocker):
    classroom_id = graded_school.classroom.id
    marta = graded_school.students[1]
    mark_completed = user_service.mark_classroom_completed

    def fail_for_marta(user_id, record, db):
        if user_id == marta.id:
            raise RuntimeError("write failed")
        return mark_completed(user_id, record, db)

    mocker.patch("app.services.user_service.mark_classroom_completed", side_effect=fail_for_marta)

    result = classroom_service.finalize_classroom(classroom_id, db)

    assert result.success is False
    assert result.partiallyFinalized is True
    assert result.canRevert is True
    assert result.studentsProcessed == 1
    assert result.teacherProcessed is True
    assert result.errors == [f"Error procesando estudiante {marta.id}"]
    assert db.get_document(Collections.CLASSROOMS, classroom_id)["isActive"] is True


def test_deleted_student_is_skipped(db, graded_school):
    classroom_id = graded_school.classroom.id
    db.update_document(Collections.CLASSROOMS, classroom_id, {
        "studentIds": [s.id for s in graded_school.students] + ["deleted-student"],
    })

    result = classroom_service.finalize_classroom(classroom_id, db)

    assert result.success is True
    assert result.studentsProcessed == 2
    assert result.errors == []
    assert classroom_service.is_finalized(classroom_id, db) is True


def test_deleting_a_student_does_not_block_the_lifecycle(db, graded_school):
    classroom_id = graded_school.classroom.id
    marta = graded_school.students[1]

    assert user_service.delete_user(marta.id, db) is True
    assert db.get_document(Collections.CLASSROOMS, classroom_id)["studentIds"] == [graded_school.students[0].id]

    result = classroom_service.finalize_classroom(classroom_id, db, FinalizationOptions(force=True))
    assert result.success is True
    assert result.studentsProcessed == 1

    restart = classroom_service.restart_classroom(classroom_id, graded_school.teacher.id, db)
    assert restart.success is True
    assert restart.runNumber == 1


def test_non_finite_grade_is_left_out_of_history(db, school):
    luis = school.students[0]
    grade_student(db, luis.id, school.classroom.id, float("nan"))

    result = classroom_service.finalize_classroom(school.classroom.id, db)

    assert result.success is True
    record = db.get_document(Collections.USERS, luis.id)["completedClassrooms"][0]
    assert "finalGrade" not in record
    assert record["status"] == "failed"


def test_missing_teacher_aborts_before_any_change(db):
    student = make_user(db, "Luis", "5552000001", enrolledClassrooms=["cls_x"])
    db.create_document(Collections.CLASSROOMS, {
        "name": "Grupo X", "subject": "Historia", "teacherId": "nobody",
        "studentIds": [student.id], "isActive": True,
    }, doc_id="cls_x")

    result = classroom_service.finalize_classroom("cls_x", db)

    assert result.success is False
    assert result.errors == ["Profesor no encontrado"]
    assert db.get_document(Collections.USERS, student.id)["enrolledClassrooms"] == ["cls_x"]


def test_archive_whatsapp_group(db, school):
    db.update_document(Collections.CLASSROOMS, school.classroom.id, {"whatsappGroup": {"id": "120363@g.us", "name": "Grupo"}})

    classroom_service.finalize_classroom(school.classroom.id, db, FinalizationOptions(archiveWhatsappGroup=True))
    group = db.get_document(Collections.CLASSROOMS, school.classroom.id)["whatsappGroup"]
    assert group["isActive"] is False
    assert isinstance(group["archivedAt"], datetime)

    classroom_service.revert_finalization(school.classroom.id, db)
    assert "isActive" not in db.get_document(Collections.CLASSROOMS, school.classroom.id)["whatsappGroup"]


def test_history_stats_and_cleanup(db, graded_school):
    classroom_id = graded_school.classroom.id
    snapshot_ids = [classroom_service.finalize_classroom(classroom_id, db).snapshotId for _ in range(3)]

    history = classroom_service.get_finalization_history(classroom_id, db)
    assert [s["id"] for s in history] == list(reversed(snapshot_ids))

    assert classroom_service.cleanup_old_snapshots(classroom_id, db, keep=1) == 2
    assert [s["id"] for s in classroom_service.get_finalization_history(classroom_id, db)] == [snapshot_ids[-1]]

    stats = classroom_service.get_finalization_stats(classroom_id, db)
    assert (stats.totalStudents, stats.evaluated, stats.passed, stats.failed) == (2, 2, 1, 1)
    assert stats.averageGrade == 72.5


def test_batch_finalize_continues_past_failures(db, graded_school):
    results = classroom_service.batch_finalize(["ghost", graded_school.classroom.id], db)
    assert [r.success for r in results] == [False, True]
