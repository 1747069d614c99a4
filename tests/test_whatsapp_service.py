# /tests/test_whatsapp_service.py

import json
from datetime import datetime

import httpx
import pytest

from app.models.whatsapp_model import WhatsappMessage
from app.services import whatsapp_service
from app.services.whatsapp_service import WhatsappClient


def _client(handler):
    return WhatsappClient(base_url="http://gateway.test/", session_id="classroom-app", transport=httpx.MockTransport(handler))


# --- Pure helpers ---


@pytest.mark.parametrize("raw, formatted", [
    ("(555) 200-0001", "15552000001"),
    ("+1 555 200 0001", "15552000001"),
    ("1555200000", "1555200000"),
    ("+34 612 345 678", "34612345678"),
])


def test_format_phone_number(raw, formatted):
    assert whatsapp_service.format_phone_number(raw) == formatted


def test_format_phone_numbers_drops_invalid():
    assert whatsapp_service.format_phone_numbers(["555-200-0001", "123", ""]) == ["15552000001"]


def test_extract_phone_numbers_deduplicates():
    text = "Llamar a (555) 200-0001 o 555.200.0001, también 555-300-0003."
    assert whatsapp_service.extract_phone_numbers(text) == ["15552000001", "15553000003"]


def test_validate_message():
    assert whatsapp_service.validate_message(WhatsappMessage(content="Hola")).valid is True
    assert whatsapp_service.validate_message(WhatsappMessage(content="   ")).valid is False
    assert whatsapp_service.validate_message(WhatsappMessage(type="image", content="foto")).valid is False
    too_long = whatsapp_service.validate_message(WhatsappMessage(content="x" * 4097))
    assert "4096" in too_long.error


def test_validate_group_size():
    assert whatsapp_service.validate_group_size(0).valid is False
    assert whatsapp_service.validate_group_size(256).valid is True
    assert whatsapp_service.validate_group_size(257).valid is False


@pytest.mark.parametrize("count, delay, formatted", [
    (1, 1, "1 segundo"),
    (10, 5, "50 segundos"),
    (13, 5, "1 minuto y 5 segundos"),
    (24, 5, "2 minutos"),
])


def test_bulk_sending_time(count, delay, formatted):
    assert whatsapp_service.calculate_bulk_sending_time(count, delay).formatted == formatted


def test_templates():
    classroom = {"subject": "Introducción a la Biblia", "name": "Grupo A", "startDate": datetime(2025, 2, 3)}

    announcement = whatsapp_service.create_classroom_announcement(classroom, "Mañana no hay clase")
    assert announcement.startswith("📢 *Introducción a la Biblia*")
    assert announcement.endswith("_Enviado desde el sistema de gestión de clases_")
    assert whatsapp_service.create_classroom_announcement(classroom, "Hola", include_header=False) == "Hola"

    assert "*Calificación:* 87.5/100" in whatsapp_service.create_evaluation_message(classroom, "Luis", 87.5)
    assert "Semana 3 - Los Evangelios" in whatsapp_service.create_module_update_message(classroom, 3, "Los Evangelios")
    assert whatsapp_service.suggest_group_name(classroom, now=datetime(2025, 1, 1)) == "Introducción a la Biblia - Grupo A (2025)"
    assert "Inicio: 03/02/2025" in whatsapp_service.suggest_group_description(classroom, "Ana Pérez")


# --- Client ---


@pytest.mark.asyncio
async def test_send_message_posts_multipart_form():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={"stopMessagesId": "stop-42"})

    async with _client(handler) as client:
        response = await client.send_message(["15552000001"], WhatsappMessage(content="Hola"), delay=3, group_title="Grupo A")

    assert response.success is True
    assert response.data == {"messageId": "stop-42"}
    assert seen["path"] == "/message"
    assert seen["content_type"].startswith("multipart/form-data")
    assert 'name="sessionId"' in seen["body"]
    assert "classroom-app" in seen["body"]
    assert 'name="groupTitle"' in seen["body"]


@pytest.mark.asyncio
async def test_provider_error_message_is_surfaced():
    def handler(request):
        return httpx.Response(400, json={"error": "Número no registrado"})

    async with _client(handler) as client:
        response = await client.send_message(["15552000001"], WhatsappMessage(content="Hola"))

    assert response.success is False
    assert response.error == "Número no registrado"


@pytest.mark.asyncio
async def test_network_errors_never_raise():
    def handler(request):
        raise httpx.ConnectError("gateway down", request=request)

    async with _client(handler) as client:
        groups = await client.get_all_groups()
        status = await client.get_session_status()

    assert groups.success is False
    assert groups.data == []
    assert status.error == "Error al obtener el estado de la sesión"


@pytest.mark.asyncio
async def test_ensure_connected():
    def handler(request):
        assert json.loads(request.content) == {"sessionId": "classroom-app"}
        return httpx.Response(200, json={"status": "connected"})

    async with _client(handler) as client:
        assert await client.ensure_connected() is True


@pytest.mark.asyncio
async def test_sync_group_participants_diffs_membership():
    synced = {}

    def handler(request):
        if request.url.path == "/group/participants/classroom-app/grp-1":
            return httpx.Response(200, json={"participants": [{"phone": "15551000000"}, {"phone": "15559999999"}]})
        synced.update(json.loads(request.content))
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        response = await client.sync_group_participants("grp-1", "cls_1", ["15551000000", "15552000001"])

    assert response.success is True
    assert synced["addParticipants"] == ["15552000001"]
    assert synced["removeParticipants"] == ["15559999999"]


@pytest.mark.asyncio
async def test_check_whatsapp_number():
    def handler(request):
        assert request.url.path == "/check/whatsapp-number/15552000001"
        return httpx.Response(200, json=True)

    async with _client(handler) as client:
        response = await client.check_whatsapp_number("555-200-0001")

    assert response.data is True


@pytest.mark.asyncio
async def test_bulk_messages_one_result_per_group():
    def handler(request):
        if "grp-bad" in request.content.decode():
            return httpx.Response(500)
        return httpx.Response(200, json={"stopMessagesId": "ok"})

    async with _client(handler) as client:
        responses = await client.send_bulk_messages(["grp-1", "grp-bad", "grp-2"], WhatsappMessage(content="Aviso"))

    assert [r.success for r in responses] == [True, False, True]


@pytest.mark.asyncio
async def test_batch_messages_tally(mocker):
    sleep = mocker.patch("app.services.whatsapp_service.asyncio.sleep", new=mocker.AsyncMock())

    def handler(request):
        if "15550000002" in request.content.decode():
            return httpx.Response(500)
        return httpx.Response(200, json={"stopMessagesId": "ok"})

    async with _client(handler) as client:
        result = await client.send_batch_messages(
            ["15550000001", "15550000002", "15550000003"],
            WhatsappMessage(content="Recordatorio"),
            delay_seconds=2,
        )

    assert (result.success, result.failed) == (2, 1)
    assert result.errors[0].startswith("15550000002:")
    assert sleep.await_count == 2


def test_client_is_not_built_without_a_gateway_url(monkeypatch):
    monkeypatch.setattr(whatsapp_service, "WHATSAPP_API_URL", None)
    assert whatsapp_service.build_whatsapp_client() is None
