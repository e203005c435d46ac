"""
Messagely Backend — Messages Route Handlers
=============================================

What:  View, send and mark-read a single message.

Authorization (enforced here, not in MessageService):
    GET  /messages/{id}        logged in AND sender or recipient
    POST /messages/            logged in as from_username
    POST /messages/{id}/read   logged in AND recipient
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from messagely.database import get_db_session
from messagely.exceptions import UnauthorizedError
from messagely.middleware.auth import identify, require_logged_in, require_owner
from messagely.schemas.auth import Identity
from messagely.schemas.common import ErrorResponse
from messagely.schemas.message import (
    MessageCreatedResponse,
    MessageCreateRequest,
    MessageDetailResponse,
    MessageReadResponse,
)
from messagely.services.message_service import message_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.get(
    "/{message_id}",
    response_model=MessageDetailResponse,
    responses={
        401: {"description": "Not a participant of this message", "model": ErrorResponse},
        404: {"description": "Message not found", "model": ErrorResponse},
    },
    summary="Get a message you sent or received",
)
async def get_message(
    message_id: int,
    identity: Identity = Depends(require_logged_in),
    db: AsyncSession = Depends(get_db_session),
) -> MessageDetailResponse:
    """
    => {message: {id, body, sent_at, read_at,
                  from_user: {username, first_name, last_name, phone},
                  to_user: {username, first_name, last_name, phone}}}
    """
    message = await message_service.get(db, message_id)
    participants = {
        profile.username
        for profile in (message.from_user, message.to_user)
        if profile is not None
    }
    if identity.username not in participants:
        raise UnauthorizedError("Cannot view this message")
    return MessageDetailResponse(message=message)


@router.post(
    "/",
    status_code=201,
    response_model=MessageCreatedResponse,
    responses={
        401: {"description": "Not logged in as from_username", "model": ErrorResponse},
        404: {"description": "Recipient not found", "model": ErrorResponse},
    },
    summary="Send a message",
)
async def create_message(
    payload: MessageCreateRequest,
    identity: Identity | None = Depends(identify),
    db: AsyncSession = Depends(get_db_session),
) -> MessageCreatedResponse:
    """
    {from_username, to_username, body, _token} =>
        {message: {id, from_username, to_username, body, sent_at}}
    """
    require_owner(identity, payload.from_username)
    message = await message_service.create(
        db,
        from_username=payload.from_username,
        to_username=payload.to_username,
        body=payload.body,
    )
    return MessageCreatedResponse(message=message)


@router.post(
    "/{message_id}/read",
    response_model=MessageReadResponse,
    responses={
        401: {"description": "Not the recipient", "model": ErrorResponse},
        404: {"description": "Message not found", "model": ErrorResponse},
    },
    summary="Mark a message you received as read",
)
async def mark_message_read(
    message_id: int,
    identity: Identity = Depends(require_logged_in),
    db: AsyncSession = Depends(get_db_session),
) -> MessageReadResponse:
    """=> {message: {id, read_at}}"""
    message = await message_service.get(db, message_id)
    if message.to_user is None or message.to_user.username != identity.username:
        logger.info(
            "User %s tried to mark message %s read; recipient is %s",
            identity.username,
            message_id,
            message.to_user.username if message.to_user else None,
        )
        raise UnauthorizedError("Cannot set this message to read")
    return MessageReadResponse(message=await message_service.mark_read(db, message_id))
