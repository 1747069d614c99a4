# /tests/test_classroom_service.py

import json

import httpx
import pytest

from app.models.classroom_model import ClassroomCreate, ClassroomUpdate, EvaluationCriteria
from app.models.lifecycle_model import FinalizationOptions
from app.services import classroom_service, user_service
from app.services.database_service import Collections
from app.services.whatsapp_service import WhatsappClient
from tests.conftest import CRITERIA, grade_student, make_user

GROUP = {"id": "120363@g.us", "name": "Introducción a la Biblia - Grupo A"}


# --- Registry ---


def test_criteria_must_total_100(db, school):
    bad = EvaluationCriteria(questionnaires=50, attendance=10)
    with pytest.raises(ValueError, match="100 puntos"):
        classroom_service.create_classroom(ClassroomCreate(
            programId=school.program.id, name="Grupo B", subject="Historia",
            teacherId=school.teacher.id, evaluationCriteria=bad,
        ), db)

    with pytest.raises(ValueError, match="100 puntos"):
        classroom_service.update_classroom(school.classroom.id, ClassroomUpdate(evaluationCriteria=bad), db)


def test_create_classroom_links_teacher_and_students(db, school):
    teacher = user_service.get_user_by_id(school.teacher.id, db)
    assert teacher.teachingClassrooms == [school.classroom.id]
    assert {s.id for s in user_service.get_users_by_classroom(school.classroom.id, db)} == {s.id for s in school.students}


def test_changing_teacher_moves_the_assignment(db, school):
    substitute = make_user(db, "Pablo", "5551000009")
    classroom_service.update_classroom(school.classroom.id, ClassroomUpdate(teacherId=substitute.id), db)

    assert user_service.get_user_by_id(school.teacher.id, db).teachingClassrooms == []
    assert user_service.get_user_by_id(substitute.id, db).teachingClassrooms == [school.classroom.id]


def test_teacher_sees_only_assigned_classrooms(db, school):
    other = make_user(db, "Pablo", "5551000009")
    classroom_service.create_classroom(ClassroomCreate(
        programId=school.program.id, name="Grupo B", subject="Historia",
        teacherId=other.id, evaluationCriteria=EvaluationCriteria(**CRITERIA),
    ), db)

    assert [c.id for c in classroom_service.get_classrooms_by_teacher(school.teacher.id, db)] == [school.classroom.id]
    assert len(classroom_service.get_classrooms_by_teacher(school.teacher.id, db, is_admin=True)) == 2


def test_roster_changes_update_both_sides(db, school):
    pedro = make_user(db, "Pedro", "5552000003")
    classroom = classroom_service.add_student_to_classroom(school.classroom.id, pedro.id, db)
    assert pedro.id in classroom.studentIds
    assert user_service.get_user_by_id(pedro.id, db).enrolledClassrooms == [school.classroom.id]

    classroom = classroom_service.remove_student_from_classroom(school.classroom.id, pedro.id, db)
    assert pedro.id not in classroom.studentIds
    assert user_service.get_user_by_id(pedro.id, db).enrolledClassrooms == []


def test_modules(db, school):
    classroom = classroom_service.update_current_module(school.classroom.id, "m2", db)
    assert classroom.currentModule.id == "m2"

    classroom = classroom_service.mark_module_completed(school.classroom.id, "m2", db)
    assert all(m.isCompleted for m in classroom.modules)

    with pytest.raises(ValueError, match="Módulo no encontrado"):
        classroom_service.update_current_module(school.classroom.id, "m9", db)


def test_statistics_and_toggle(db, school):
    stats = classroom_service.get_classroom_statistics(school.classroom.id, db)
    assert (stats.totalStudents, stats.completedModules, stats.totalModules) == (2, 1, 2)
    assert stats.hasWhatsappGroup is False

    assert classroom_service.toggle_classroom_status(school.classroom.id, db).isActive is False


def test_delete_classroom_unlinks_everyone(db, school):
    assert classroom_service.delete_classroom(school.classroom.id, db) is True

    assert user_service.get_users_by_classroom(school.classroom.id, db) == []
    assert user_service.get_user_by_id(school.teacher.id, db).teachingClassrooms == []
    assert db.get_document(Collections.PROGRAMS, school.program.id)["classrooms"] == []
    assert classroom_service.delete_classroom(school.classroom.id, db) is False


# --- WhatsApp glue ---


class FakeGateway:
    """Records requests and answers like the messaging gateway."""

    def __init__(self, participants=None, fail_messages=False):
        self.participants = participants or []
        self.fail_messages = fail_messages
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/group/create":
            return httpx.Response(200, json=GROUP)
        if path.startswith("/group/participants/"):
            return httpx.Response(200, json={"participants": self.participants})
        if path == "/group/sync":
            return httpx.Response(200, json={"ok": True})
        if path == "/message":
            if self.fail_messages:
                return httpx.Response(503, json={"error": "Sesión desconectada"})
            return httpx.Response(200, json={"stopMessagesId": "stop-1"})
        return httpx.Response(404)

    def paths(self):
        return [r.url.path for r in self.requests]


def _client(gateway):
    return WhatsappClient(base_url="http://gateway.test", session_id="classroom-app", transport=httpx.MockTransport(gateway))


@pytest.mark.asyncio
async def test_create_whatsapp_group_stores_group(db, school):
    gateway = FakeGateway()
    async with _client(gateway) as client:
        group = await classroom_service.create_whatsapp_group(school.classroom.id, db, client)

    assert group.id == GROUP["id"]
    payload = json.loads(gateway.requests[0].content)
    assert payload["participants"][0] == "15551000000"
    assert set(payload["participants"][1:]) == {"15552000001", "15552000002"}
    assert db.get_document(Collections.CLASSROOMS, school.classroom.id)["whatsappGroup"]["id"] == GROUP["id"]


@pytest.mark.asyncio
async def test_sending_without_a_group_is_refused(db, school):
    async with _client(FakeGateway()) as client:
        with pytest.raises(ValueError, match="grupo de WhatsApp"):
            await classroom_service.send_whatsapp_message(school.classroom.id, "Hola", db, client)


@pytest.mark.asyncio
async def test_send_whatsapp_message_targets_the_group(db, school):
    db.update_document(Collections.CLASSROOMS, school.classroom.id, {"whatsappGroup": GROUP})
    gateway = FakeGateway()
    async with _client(gateway) as client:
        response = await classroom_service.send_whatsapp_message(school.classroom.id, "Hola", db, client, include_header=True)

    assert response.data == {"messageId": "stop-1"}
    body = gateway.requests[0].content.decode()
    assert GROUP["id"] in body
    assert "Biblia" in body


@pytest.mark.asyncio
async def test_sync_enrolls_unknown_members(db, school):
    db.update_document(Collections.CLASSROOMS, school.classroom.id, {"whatsappGroup": GROUP})
    existing = make_user(db, "Rosa", "15554000004")
    gateway = FakeGateway(participants=[
        {"phone": "15551000000", "name": "Ana"},
        {"phone": "15552000001", "name": "Luis"},
        {"phone": "15553000003", "name": "Pedro"},
        {"phone": "15554000004", "name": "Rosa"},
    ])

    async with _client(gateway) as client:
        created = await classroom_service.sync_whatsapp_group(school.classroom.id, db, client)

    assert len(created) == 1
    newcomer = user_service.get_user_by_id(created[0], db)
    assert (newcomer.firstName, newcomer.lastName, newcomer.phone) == ("Pedro", "Nuevo", "15553000003")

    roster = db.get_document(Collections.CLASSROOMS, school.classroom.id)["studentIds"]
    assert created[0] in roster
    assert existing.id in roster
    assert "/group/sync" in gateway.paths()


@pytest.mark.asyncio
async def test_finalize_and_notify_posts_closing_message(db, school):
    db.update_document(Collections.CLASSROOMS, school.classroom.id, {"whatsappGroup": GROUP})
    for student in school.students:
        grade_student(db, student.id, school.classroom.id, 80)

    gateway = FakeGateway()
    async with _client(gateway) as client:
        result = await classroom_service.finalize_classroom_and_notify(school.classroom.id, db, client=client)

    assert result.success is True
    assert result.notificationSent is True
    assert "finalizado" in gateway.requests[0].content.decode()


@pytest.mark.asyncio
async def test_failed_notification_does_not_undo_finalize(db, school):
    db.update_document(Collections.CLASSROOMS, school.classroom.id, {"whatsappGroup": GROUP})

    async with _client(FakeGateway(fail_messages=True)) as client:
        result = await classroom_service.finalize_classroom_and_notify(school.classroom.id, db, client=client)

    assert result.success is True
    assert result.notificationSent is False
    assert result.notificationError == "Sesión desconectada"
    assert classroom_service.is_finalized(school.classroom.id, db)


@pytest.mark.asyncio
async def test_skip_notifications(db, school):
    db.update_document(Collections.CLASSROOMS, school.classroom.id, {"whatsappGroup": GROUP})
    gateway = FakeGateway()

    async with _client(gateway) as client:
        result = await classroom_service.finalize_classroom_and_notify(
            school.classroom.id, db, FinalizationOptions(skipNotifications=True), client,
        )

    assert result.success is True
    assert gateway.requests == []
