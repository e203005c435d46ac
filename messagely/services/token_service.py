"""
Messagely Backend — Token Service
===================================

What:  Issues and verifies signed (unencrypted) JWTs that carry a username.
How:   PyJWT with an HMAC algorithm and a secret taken from TokenConfig.
Who:   Constructed once by create_app() and stored on app.state; used by
       the auth routes (issue) and the auth middleware (verify).

Claims:
    {"username": "alice", "iat": 1700000000}
    plus "exp" only when TokenConfig.expires_in is set. Without it, a
    token stays valid for as long as the secret does. There is no
    revocation list.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from messagely.config import Settings
from messagely.exceptions import InvalidTokenError
from messagely.schemas.auth import Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenConfig:
    """Signing parameters for TokenService."""

    secret_key: str
    algorithm: str = "HS256"
    expires_in: Optional[int] = None  # seconds; None = no exp claim

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        return cls(
            secret_key=settings.secret_key,
            algorithm=settings.jwt_algorithm,
            expires_in=settings.jwt_expires_in,
        )


class TokenService:
    """Signs and checks identity tokens."""

    def __init__(self, config: TokenConfig):
        self.config = config

    def issue(self, username: str) -> str:
        """Return a signed token whose subject is `username`."""
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "username": username,
            "iat": int(now.timestamp()),
        }
        if self.config.expires_in:
            payload["exp"] = int((now + timedelta(seconds=self.config.expires_in)).timestamp())
        return jwt.encode(payload, self.config.secret_key, algorithm=self.config.algorithm)

    def verify(self, token: str) -> Identity:
        """
        Validate the token's signature (and expiry, if it has one).

        Returns:
            Identity of the token holder.

        Raises:
            InvalidTokenError: bad signature, malformed token, expired
            token, or no username claim.
        """
        try:
            payload = jwt.decode(
                token,
                self.config.secret_key,
                algorithms=[self.config.algorithm],
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("Token has expired") from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError(context={"reason": type(e).__name__}) from e

        username = payload.get("username")
        if not isinstance(username, str) or not username:
            raise InvalidTokenError("Token carries no username")
        return Identity(username=username)
