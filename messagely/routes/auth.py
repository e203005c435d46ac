"""
Messagely Backend — Auth Route Handlers
=========================================

What:  POST /auth/login and POST /auth/register.
How:   Delegate credential checks to UserService, mint tokens with the
       app's TokenService, and bump last_login_at.
Who:   Called by clients before any authenticated request.

Both endpoints are throttled per IP by RateLimitMiddleware.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from messagely.database import get_db_session
from messagely.exceptions import BadCredentialsError
from messagely.schemas.auth import LoginRequest, LoginResponse, RegisterRequest, TokenResponse
from messagely.schemas.common import ErrorResponse
from messagely.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        400: {"description": "Invalid username/password", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    },
    summary="Log in and receive a token",
)
async def login(
    payload: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    """
    {username, password} => {message, token}

    Updates the user's last_login_at on success.
    """
    if not await user_service.authenticate(db, payload.username, payload.password):
        logger.info("Failed login for %s", payload.username)
        raise BadCredentialsError()

    token = request.app.state.token_service.issue(payload.username)
    await user_service.update_login_timestamp(db, payload.username)
    logger.info("User %s logged in", payload.username)
    return LoginResponse(message="Logged In!", token=token)


@router.post(
    "/register",
    response_model=TokenResponse,
    responses={
        409: {"description": "Username already taken", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    },
    summary="Register a new user and log them in",
)
async def register(
    payload: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    """{username, password, first_name, last_name, phone} => {token}"""
    user = await user_service.register(db, payload)
    token = request.app.state.token_service.issue(user.username)
    await user_service.update_login_timestamp(db, user.username)
    return TokenResponse(token=token)
