"""
Messagely Backend — Message Schemas
=====================================

What:  Pydantic request/response models for messages.
Who:   MessageService, UserService (enriched listings) and the routes.

Enrichment:
    Listings replace the bare counterpart username with the counterpart's
    public profile under the same key (`to_username` on outbound lists,
    `from_username` on inbound lists). When the counterpart row cannot be
    found the field is null and the message is still listed.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from messagely.schemas.user import UserPublic


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class MessageCreateRequest(BaseModel):
    """
    POST /messages/ body.

    The `_token` field that clients send alongside is read by the auth
    middleware and ignored here.
    """
    from_username: str = Field(min_length=1, description="Sender; must be the caller")
    to_username: str = Field(min_length=1, description="Recipient username")
    body: str = Field(min_length=1, description="Message text")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class MessageCreated(BaseModel):
    """A freshly inserted message."""
    id: int
    from_username: str
    to_username: str
    body: str
    sent_at: datetime

    model_config = {"from_attributes": True}


class MessageDetail(BaseModel):
    """A message with both parties expanded to public profiles."""
    id: int
    body: str
    sent_at: datetime
    read_at: Optional[datetime] = None
    from_user: Optional[UserPublic] = None
    to_user: Optional[UserPublic] = None


class MessageReadState(BaseModel):
    """Result of marking a message read."""
    id: int
    read_at: Optional[datetime] = None


class OutboundMessage(BaseModel):
    """Entry of GET /users/{username}/from."""
    id: int
    to_username: Optional[UserPublic] = Field(
        default=None,
        description="Recipient profile; null if the recipient no longer exists",
    )
    body: str
    sent_at: datetime
    read_at: Optional[datetime] = None


class InboundMessage(BaseModel):
    """Entry of GET /users/{username}/to."""
    id: int
    from_username: Optional[UserPublic] = Field(
        default=None,
        description="Sender profile; null if the sender no longer exists",
    )
    body: str
    sent_at: datetime
    read_at: Optional[datetime] = None


class MessageDetailResponse(BaseModel):
    message: MessageDetail


class MessageCreatedResponse(BaseModel):
    message: MessageCreated


class MessageReadResponse(BaseModel):
    message: MessageReadState


class OutboundMessageListResponse(BaseModel):
    messages: List[OutboundMessage]


class InboundMessageListResponse(BaseModel):
    messages: List[InboundMessage]
