# /app/routers/whatsapp_router.py

from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional

from ..models import whatsapp_model
from ..services import whatsapp_service

router = APIRouter()

WhatsappClientDep = Depends(whatsapp_service.get_whatsapp_client)


def _client_or_503(client: Optional[whatsapp_service.WhatsappClient]) -> whatsapp_service.WhatsappClient:
    if client is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="WhatsApp gateway is not configured")
    return client

# --- SESSION ENDPOINTS (/api/whatsapp/session) ---

@router.post("/session", response_model=whatsapp_model.WhatsappResponse, summary="Start the WhatsApp Session")
async def initialize_session(client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    return await _client_or_503(client).initialize_session()

@router.get("/session", response_model=whatsapp_model.WhatsappResponse, summary="Get the WhatsApp Session Status")
async def get_session_status(client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    return await _client_or_503(client).get_session_status()

@router.post("/session/restart", response_model=whatsapp_model.WhatsappResponse, summary="Restart the WhatsApp Session")
async def restart_session(force_reconnect: bool = False, client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    return await _client_or_503(client).restart_session(force_reconnect=force_reconnect)

@router.delete("/session", response_model=whatsapp_model.WhatsappResponse, summary="Close the WhatsApp Session")
async def close_session(destroy: bool = False, client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    return await _client_or_503(client).close_session(destroy=destroy)

# --- GROUP & CONTACT ENDPOINTS ---

@router.get("/groups", response_model=whatsapp_model.WhatsappResponse, summary="List WhatsApp Groups")
async def list_groups(client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    return await _client_or_503(client).get_all_groups()

@router.post("/groups", response_model=whatsapp_model.WhatsappResponse, status_code=status.HTTP_201_CREATED, summary="Create a WhatsApp Group")
async def create_group(request: whatsapp_model.CreateGroupRequest, client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    size_check = whatsapp_service.validate_group_size(len(request.participants))
    if not size_check.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=size_check.error)
    participants = whatsapp_service.format_phone_numbers(request.participants)
    return await _client_or_503(client).create_group(request.groupName, participants, request.description)

@router.get("/groups/{group_id}/participants", response_model=whatsapp_model.WhatsappResponse, summary="List a Group's Participants")
async def list_group_participants(group_id: str, client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    return await _client_or_503(client).get_group_participants(group_id)

@router.get("/contacts", response_model=whatsapp_model.WhatsappResponse, summary="List WhatsApp Contacts")
async def list_contacts(client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    return await _client_or_503(client).get_all_contacts()

@router.get("/contacts/check/{phone}", response_model=whatsapp_model.WhatsappResponse, summary="Check Whether a Number Uses WhatsApp")
async def check_number(phone: str, client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    if not whatsapp_service.is_valid_phone_number(phone):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Número de teléfono inválido")
    return await _client_or_503(client).check_whatsapp_number(whatsapp_service.format_phone_number(phone))

# --- MESSAGE ENDPOINTS ---

@router.post("/messages/validate", response_model=whatsapp_model.MessageValidation, summary="Validate a Message Before Sending")
def validate_message(message: whatsapp_model.WhatsappMessage):
    return whatsapp_service.validate_message(message)

@router.get("/messages/estimate", response_model=whatsapp_model.SendingTimeEstimate, summary="Estimate Bulk Sending Time")
def estimate_sending_time(message_count: int, delay_seconds: int = 5):
    return whatsapp_service.calculate_bulk_sending_time(message_count, delay_seconds)

@router.post("/messages", response_model=whatsapp_model.WhatsappResponse, summary="Send a Message")
async def send_message(request: whatsapp_model.SendMessageRequest, client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    validation = whatsapp_service.validate_message(request.message)
    if not validation.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=validation.error)
    return await _client_or_503(client).send_message(request.recipients, request.message, request.delay, request.groupTitle)

@router.post("/messages/bulk", response_model=List[whatsapp_model.WhatsappResponse], summary="Send a Message to Several Groups")
async def send_bulk(request: whatsapp_model.BulkMessageRequest, client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    validation = whatsapp_service.validate_message(request.message)
    if not validation.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=validation.error)
    return await _client_or_503(client).send_bulk_messages(request.groupIds, request.message)

@router.post("/messages/stop", response_model=whatsapp_model.WhatsappResponse, summary="Stop Queued Messages")
async def stop_messages(request: whatsapp_model.StopMessagesRequest, client: Optional[whatsapp_service.WhatsappClient] = WhatsappClientDep):
    return await _client_or_503(client).stop_messages(request.cancelId, request.stopType)
