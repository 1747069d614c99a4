# /app/models/whatsapp_model.py

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class SessionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    QR = "qr"
    AUTHENTICATED = "authenticated"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"


class WhatsappParticipant(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phone: str
    name: Optional[str] = None
    isAdmin: bool = False
    joinedAt: Optional[datetime] = None
    userId: Optional[str] = None


class WhatsappGroup(BaseModel):
    """The provider's group, as stored on a classroom."""
    model_config = ConfigDict(from_attributes=True, extra="allow")

    id: str
    name: str = ""
    description: Optional[str] = None
    photo: Optional[str] = None
    participantCount: int = 0
    participants: List[WhatsappParticipant] = Field(default_factory=list)
    admins: List[str] = Field(default_factory=list)
    createdAt: Optional[datetime] = None
    createdBy: Optional[str] = None
    inviteLink: Optional[str] = None
    isActive: bool = True
    archivedAt: Optional[datetime] = None


class WhatsappMedia(BaseModel):
    url: Optional[str] = None
    caption: Optional[str] = None
    filename: Optional[str] = None
    mimetype: Optional[str] = None


class WhatsappMessage(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    type: MessageType = MessageType.TEXT
    content: str = ""
    media: Optional[WhatsappMedia] = None


class WhatsappSession(BaseModel):
    model_config = ConfigDict(extra="allow", use_enum_values=True)

    sessionId: str
    status: Optional[SessionStatus] = None
    qrCode: Optional[str] = None
    connectedAt: Optional[datetime] = None
    disconnectedAt: Optional[datetime] = None
    phoneNumber: Optional[str] = None


class WhatsappResponse(BaseModel):
    """Envelope returned by every messaging call; provider errors never raise."""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None


class BulkSendResult(BaseModel):
    success: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)


class MessageValidation(BaseModel):
    valid: bool
    error: Optional[str] = None


class SendingTimeEstimate(BaseModel):
    seconds: int
    minutes: int
    formatted: str


# --- Router payloads ---

class CreateGroupRequest(BaseModel):
    groupName: str = Field(..., min_length=1)
    participants: List[str] = Field(default_factory=list)
    description: Optional[str] = None


class SendMessageRequest(BaseModel):
    recipients: List[Union[str, Dict[str, Any]]] = Field(..., min_length=1)
    message: WhatsappMessage
    delay: int = Field(default=5, ge=0)
    groupTitle: Optional[str] = None


class ClassroomMessageRequest(BaseModel):
    message: str = Field(..., min_length=1)
    includeHeader: bool = True


class BulkMessageRequest(BaseModel):
    groupIds: List[str] = Field(..., min_length=1)
    message: WhatsappMessage


class StopMessagesRequest(BaseModel):
    cancelId: str = Field(..., min_length=1)
    stopType: str = "cancel"
