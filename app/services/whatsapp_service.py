# /app/services/whatsapp_service.py

"""
Client for the external WhatsApp gateway used to run classroom groups.

Each `WhatsappClient` owns its session id and its `httpx.AsyncClient`, so
several sessions can coexist in one process. Provider failures never raise:
every call returns a `WhatsappResponse` envelope with either `data` or an
`error` message suitable for showing to users.
"""

import asyncio
import json
import logging
import os
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

import httpx
from dotenv import load_dotenv

from ..models.whatsapp_model import BulkSendResult, SessionStatus, WhatsappMessage, WhatsappResponse
from .whatsapp_helpers.message_utils import (  # noqa: F401  (re-exported helpers)
    calculate_bulk_sending_time, create_classroom_announcement, create_closing_message,
    create_evaluation_message, create_module_update_message, extract_phone_numbers,
    format_phone_number, format_phone_numbers, get_classroom_phone_numbers,
    is_valid_phone_number, suggest_group_description, suggest_group_name,
    validate_group_size, validate_message,
)

load_dotenv()

logger = logging.getLogger(__name__)

WHATSAPP_API_URL = os.getenv("WHATSAPP_API_URL")
WHATSAPP_SESSION_ID = os.getenv("WHATSAPP_SESSION_ID", "classroom-app")
WHATSAPP_TIMEOUT = float(os.getenv("WHATSAPP_TIMEOUT", "30"))

Recipient = Union[str, Dict[str, Any]]


def _error_message(exc: Exception, default: str) -> str:
    """Prefers the provider's own `error` field when the response carries one."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            return default
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
    return default


class WhatsappClient:
    def __init__(
        self,
        base_url: str,
        session_id: str = WHATSAPP_SESSION_ID,
        timeout: float = WHATSAPP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_id = session_id
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "WhatsappClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # --- Low-level transport ---

    async def _post(self, path: str, **kwargs) -> Any:
        response = await self._http.post(path, **kwargs)
        response.raise_for_status()
        return response.json() if response.content else None

    async def _get(self, path: str) -> Any:
        response = await self._http.get(path)
        response.raise_for_status()
        return response.json() if response.content else None

    # --- Session management ---

    async def initialize_session(self) -> WhatsappResponse:
        try:
            data = await self._post("/start", json={"sessionId": self.session_id})
            return WhatsappResponse(success=True, data=data)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error initializing WhatsApp session %s: %s", self.session_id, e)
            return WhatsappResponse(success=False, error=_error_message(e, "Error al iniciar la sesión"))

    async def get_session_status(self) -> WhatsappResponse:
        try:
            data = await self._post("/status", json={"sessionId": self.session_id})
            return WhatsappResponse(success=True, data=data)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error getting WhatsApp session status: %s", e)
            return WhatsappResponse(success=False, error=_error_message(e, "Error al obtener el estado de la sesión"))

    async def ensure_connected(self) -> bool:
        """True when the session reports `connected` or `authenticated`."""
        status = await self.get_session_status()
        if not status.success or not isinstance(status.data, dict):
            return False
        return status.data.get("status") in (SessionStatus.CONNECTED.value, SessionStatus.AUTHENTICATED.value)

    async def restart_session(self, force_reconnect: bool = False) -> WhatsappResponse:
        try:
            data = await self._post("/restart", json={"sessionId": self.session_id, "forceReconnect": force_reconnect})
            return WhatsappResponse(success=True, data=data)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error restarting WhatsApp session: %s", e)
            return WhatsappResponse(success=False, error=_error_message(e, "Error al reiniciar la sesión"))

    async def close_session(self, destroy: bool = False) -> WhatsappResponse:
        try:
            data = await self._post("/close", json={"sessionId": self.session_id, "destroy": destroy})
            return WhatsappResponse(success=True, data=data)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error closing WhatsApp session: %s", e)
            return WhatsappResponse(success=False, error=_error_message(e, "Error al cerrar la sesión"))

    # --- Groups ---

    async def create_group(self, group_name: str, participants: List[str], description: Optional[str] = None) -> WhatsappResponse:
        payload = {
            "sessionId": self.session_id,
            "groupName": group_name,
            "participants": participants,
            "description": description,
        }
        try:
            data = await self._post("/group/create", json=payload)
            logger.info("Created WhatsApp group '%s' with %d participants", group_name, len(participants))
            return WhatsappResponse(success=True, data=data, message="Grupo creado exitosamente")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error creating WhatsApp group '%s': %s", group_name, e)
            return WhatsappResponse(success=False, error=_error_message(e, "Error al crear el grupo"))

    async def get_group_participants(self, group_id: str) -> WhatsappResponse:
        try:
            data = await self._get(f"/group/participants/{self.session_id}/{group_id}")
            participants = (data or {}).get("participants") or []
            return WhatsappResponse(success=True, data=participants)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error getting participants of group %s: %s", group_id, e)
            return WhatsappResponse(success=False, data=[], error=_error_message(e, "Error al obtener los participantes"))

    async def sync_group_participants(self, group_id: str, classroom_id: str, phones: List[str]) -> WhatsappResponse:
        """
        Diffs `phones` against the group's current participants and asks the
        provider to add the missing ones and remove the extra ones.
        """
        current = await self.get_group_participants(group_id)
        current_phones = [p.get("phone") for p in current.data or [] if isinstance(p, dict)]

        payload = {
            "sessionId": self.session_id,
            "groupId": group_id,
            "classroomId": classroom_id,
            "addParticipants": [p for p in phones if p not in current_phones],
            "removeParticipants": [p for p in current_phones if p not in phones],
        }
        try:
            data = await self._post("/group/sync", json=payload)
            return WhatsappResponse(success=True, data=data, message="Grupo sincronizado exitosamente")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error syncing WhatsApp group %s: %s", group_id, e)
            return WhatsappResponse(success=False, error=_error_message(e, "Error al sincronizar el grupo"))

    async def get_all_groups(self) -> WhatsappResponse:
        try:
            data = await self._get(f"/seed/{self.session_id}/groups")
            return WhatsappResponse(success=True, data=(data or {}).get("groups") or [])
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error getting WhatsApp groups: %s", e)
            return WhatsappResponse(success=False, data=[], error=_error_message(e, "Error al obtener los grupos"))

    async def get_all_contacts(self) -> WhatsappResponse:
        try:
            data = await self._get(f"/seed/{self.session_id}/users")
            return WhatsappResponse(success=True, data=(data or {}).get("users") or [])
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error getting WhatsApp contacts: %s", e)
            return WhatsappResponse(success=False, data=[], error=_error_message(e, "Error al obtener los contactos"))

    async def check_whatsapp_number(self, phone: str) -> WhatsappResponse:
        try:
            data = await self._get(f"/check/whatsapp-number/{format_phone_number(phone)}")
            return WhatsappResponse(success=True, data=data is True)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error checking WhatsApp number %s: %s", phone, e)
            return WhatsappResponse(success=False, data=False, error=_error_message(e, "Error al verificar el número"))

    # --- Messages ---

    async def send_message(
        self,
        recipients: List[Recipient],
        message: WhatsappMessage,
        delay: int = 5,
        group_title: Optional[str] = None,
    ) -> WhatsappResponse:
        """
        Queues `message` for every recipient. The provider expects a
        multipart form; its `stopMessagesId` is returned as `messageId` and
        can be passed to `stop_messages`.
        """
        fields = {
            "sessionId": self.session_id,
            "contacts": json.dumps(recipients),
            "messages": json.dumps([message.model_dump(exclude_none=True)]),
            "delay": str(delay),
        }
        if group_title:
            fields["groupTitle"] = group_title

        try:
            data = await self._post("/message", files={k: (None, v) for k, v in fields.items()})
            return WhatsappResponse(
                success=True,
                data={"messageId": (data or {}).get("stopMessagesId")},
                message="Mensaje enviado exitosamente",
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error sending WhatsApp message to %d recipient(s): %s", len(recipients), e)
            return WhatsappResponse(success=False, error=_error_message(e, "Error al enviar el mensaje"))

    async def send_bulk_messages(self, group_ids: List[str], message: WhatsappMessage) -> List[WhatsappResponse]:
        """Sends the same message to several groups concurrently, one result per group."""
        results = await asyncio.gather(
            *(self.send_message([group_id], message) for group_id in group_ids),
            return_exceptions=True,
        )
        responses = []
        for group_id, result in zip(group_ids, results):
            if isinstance(result, WhatsappResponse):
                responses.append(result)
            else:
                logger.error("Unexpected error sending to group %s: %s", group_id, result)
                responses.append(WhatsappResponse(success=False, error=f"Error al enviar mensaje al grupo {group_id}"))
        return responses

    async def send_batch_messages(
        self,
        recipients: List[Recipient],
        message: WhatsappMessage,
        delay_seconds: int = 5,
        recipient_titles: Optional[Dict[str, str]] = None,
    ) -> BulkSendResult:
        """
        Sends to each recipient in turn, waiting `delay_seconds` between
        sends, and tallies successes and failures.
        """
        result = BulkSendResult()
        for index, recipient in enumerate(recipients):
            if isinstance(recipient, str) and recipient_titles and recipient in recipient_titles:
                payload: List[Recipient] = [{"phone": recipient, "title": recipient_titles[recipient]}]
            else:
                payload = [recipient]

            response = await self.send_message(payload, message, delay_seconds)
            if response.success:
                result.success += 1
            else:
                result.failed += 1
                identifier = recipient.get("phone") if isinstance(recipient, dict) else recipient
                result.errors.append(f"{identifier}: {response.error or 'Error desconocido'}")

            if index < len(recipients) - 1 and delay_seconds > 0:
                await asyncio.sleep(delay_seconds)
        return result

    async def stop_messages(self, cancel_id: str, stop_type: str = "cancel") -> WhatsappResponse:
        payload = {"cancelId": cancel_id, "sessionId": self.session_id, "stopType": stop_type}
        try:
            data = await self._post("/stop-messages", json=payload)
            return WhatsappResponse(success=True, data=data)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error stopping messages %s: %s", cancel_id, e)
            return WhatsappResponse(success=False, error=_error_message(e, "Error al detener los mensajes"))


def build_whatsapp_client(base_url: Optional[str] = None, session_id: Optional[str] = None) -> Optional[WhatsappClient]:
    """Builds a client from configuration, or None when no gateway URL is set."""
    url = base_url or WHATSAPP_API_URL
    if not url:
        return None
    return WhatsappClient(base_url=url, session_id=session_id or WHATSAPP_SESSION_ID)


async def get_whatsapp_client() -> AsyncGenerator[Optional[WhatsappClient], None]:
    """FastAPI dependency yielding a per-request client (None when unconfigured)."""
    client = build_whatsapp_client()
    try:
        yield client
    finally:
        if client is not None:
            await client.aclose()
