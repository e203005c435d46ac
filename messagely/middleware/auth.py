"""
Messagely Backend — Authentication & Authorization Middleware
===============================================================

What:  Attaches an optional identity to every request and provides the
       guards routes compose on top of it.
How:   `identify` is registered as an app-wide FastAPI dependency, so it
       runs for every request before the route's own dependencies. Guards
       are plain dependencies / functions raising UnauthorizedError.
Who:   main.py registers `identify`; routes use the guards.

Request Flow:
    Request ─▶ identify() ─▶ request.state.identity: Optional[Identity]
                                      │
                 ┌────────────────────┼──────────────────────┐
                 ▼                    ▼                      ▼
           (public route)     require_logged_in      ensure_correct_user /
                                                       require_owner

Token Sources (first one present wins):
    1. JSON body field `_token`
    2. Query parameter `_token`
    3. Authorization: Bearer <token>

identify() NEVER fails a request. A missing, malformed or forged token
just leaves identity as None; the guard of a protected route turns that
into 401.
"""

import json
import logging
from typing import Optional

from fastapi import Depends, Request

from messagely.exceptions import InvalidTokenError, UnauthorizedError
from messagely.schemas.auth import Identity

logger = logging.getLogger(__name__)

TOKEN_FIELD = "_token"


async def _extract_token(request: Request) -> Optional[str]:
    """Pull a raw token out of the request, or None."""
    body = await request.body()
    if body:
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            token = payload.get(TOKEN_FIELD)
            if isinstance(token, str) and token:
                return token

    token = request.query_params.get(TOKEN_FIELD)
    if token:
        return token

    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def identify(request: Request) -> Optional[Identity]:
    """
    Verify the request's token, if any, and attach the identity.

    Returns the Identity (also stored on request.state.identity) or None.
    """
    identity: Optional[Identity] = None
    token = await _extract_token(request)
    if token:
        try:
            identity = request.app.state.token_service.verify(token)
        except InvalidTokenError as e:
            # Not an error for this stage; guards decide what to do
            logger.debug("Ignoring invalid token on %s: %s", request.url.path, e.message)
    request.state.identity = identity
    return identity


def require_logged_in(identity: Optional[Identity] = Depends(identify)) -> Identity:
    """Dependency: any valid identity."""
    if identity is None:
        raise UnauthorizedError()
    return identity


def require_owner(identity: Optional[Identity], username: Optional[str]) -> Identity:
    """
    The identity must be the user named `username`.

    No identity and a different identity both raise the same
    UnauthorizedError.
    """
    if identity is None or username is None or identity.username != username:
        raise UnauthorizedError()
    return identity


def ensure_correct_user(
    username: str,
    identity: Optional[Identity] = Depends(identify),
) -> Identity:
    """Dependency: identity must match the `{username}` path parameter."""
    return require_owner(identity, username)
