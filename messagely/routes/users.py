"""
Messagely Backend — Users Route Handlers
==========================================

What:  User directory, profile detail, and per-user message listings.

Route Inventory:
    GET /users/                  public      → {users: [public profile]}
    GET /users/{username}        owner only  → {user: full profile}
    GET /users/{username}/to     owner only  → {messages: [... from_username: profile]}
    GET /users/{username}/from   owner only  → {messages: [... to_username: profile]}

"Owner only" is ensure_correct_user: the token's username must equal the
path's {username}, otherwise 401.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from messagely.database import get_db_session
from messagely.middleware.auth import ensure_correct_user
from messagely.schemas.auth import Identity
from messagely.schemas.common import ErrorResponse
from messagely.schemas.message import InboundMessageListResponse, OutboundMessageListResponse
from messagely.schemas.user import UserDetailResponse, UserListResponse
from messagely.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

_OWNER_ERRORS = {
    401: {"description": "Not logged in as this user", "model": ErrorResponse},
    404: {"description": "User not found", "model": ErrorResponse},
}


@router.get(
    "/",
    response_model=UserListResponse,
    summary="List all users",
)
async def list_users(db: AsyncSession = Depends(get_db_session)) -> UserListResponse:
    """=> {users: [{username, first_name, last_name, phone}, ...]}"""
    return UserListResponse(users=await user_service.all(db))


@router.get(
    "/{username}",
    response_model=UserDetailResponse,
    responses=_OWNER_ERRORS,
    summary="Get your own profile",
)
async def get_user(
    username: str,
    identity: Identity = Depends(ensure_correct_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserDetailResponse:
    """=> {user: {username, first_name, last_name, phone, join_at, last_login_at}}"""
    return UserDetailResponse(user=await user_service.get(db, username))


@router.get(
    "/{username}/to",
    response_model=InboundMessageListResponse,
    responses=_OWNER_ERRORS,
    summary="Messages sent to you",
)
async def messages_to_user(
    username: str,
    identity: Identity = Depends(ensure_correct_user),
    db: AsyncSession = Depends(get_db_session),
) -> InboundMessageListResponse:
    """=> {messages: [{id, body, sent_at, read_at, from_username: {...}}, ...]}"""
    return InboundMessageListResponse(messages=await user_service.messages_to(db, username))


@router.get(
    "/{username}/from",
    response_model=OutboundMessageListResponse,
    responses=_OWNER_ERRORS,
    summary="Messages sent by you",
)
async def messages_from_user(
    username: str,
    identity: Identity = Depends(ensure_correct_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutboundMessageListResponse:
    """=> {messages: [{id, body, sent_at, read_at, to_username: {...}}, ...]}"""
    return OutboundMessageListResponse(messages=await user_service.messages_from(db, username))
