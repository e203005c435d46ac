"""
Messagely Backend — User Service
==================================

What:  Registration, password authentication, login bookkeeping, profile
       lookups and the enriched "messages from / to a user" listings.
How:   Async SQLAlchemy queries against `users` / `messages`; passwords
       hashed and verified with passlib's bcrypt handler.
Who:   Called by the /auth and /users route handlers.

Password Handling:
    bcrypt is CPU-bound (hundreds of milliseconds at work factor 12), so
    hash() and verify() run in a worker thread via asyncio.to_thread and
    the event loop keeps serving other requests meanwhile.

Enrichment Strategy (messages_from / messages_to):
    1. SELECT the user's messages
    2. SELECT the public profiles of every distinct counterpart in ONE
       `username IN (...)` query
    3. Attach each counterpart profile to its messages
    A counterpart with no row is attached as None; the message stays in
    the list.
"""

import asyncio
import logging
from typing import Dict, Iterable, List

from passlib.context import CryptContext
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from messagely.config import settings
from messagely.exceptions import DatabaseError, DuplicateUserError, NotFoundError
from messagely.models.message import Message
from messagely.models.user import User, utcnow
from messagely.schemas.auth import RegisterRequest
from messagely.schemas.message import InboundMessage, OutboundMessage
from messagely.schemas.user import RegisteredUser, UserDetail, UserPublic

logger = logging.getLogger(__name__)


def build_password_context(work_factor: int) -> CryptContext:
    """bcrypt-only CryptContext using `work_factor` log2 rounds."""
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=work_factor,
    )


class UserService:
    """
    Business logic for users.

    Error Handling Strategy:
        Missing rows become NotFoundError; a username collision on insert
        becomes DuplicateUserError; any other SQLAlchemy failure is
        wrapped in DatabaseError so no SQL detail reaches the client.
    """

    def __init__(self, pwd_context: CryptContext):
        self.pwd_context = pwd_context

    async def register(self, db: AsyncSession, fields: RegisterRequest) -> RegisteredUser:
        """
        Hash the password and insert a new user.

        join_at and last_login_at are both set to now.

        Returns:
            RegisteredUser: {username, password (hash), first_name, last_name, phone}

        Raises:
            DuplicateUserError: username already exists (→ 409)
            DatabaseError: any other store failure (→ 500)
        """
        hashed = await asyncio.to_thread(self.pwd_context.hash, fields.password)
        now = utcnow()
        user = User(
            username=fields.username,
            password=hashed,
            first_name=fields.first_name,
            last_name=fields.last_name,
            phone=fields.phone,
            join_at=now,
            last_login_at=now,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as e:
            logger.info("Registration rejected, username taken: %s", fields.username)
            raise DuplicateUserError(fields.username) from e
        except SQLAlchemyError as e:
            logger.error("Database error registering %s: %s", fields.username, str(e))
            raise DatabaseError(context={"username": fields.username}) from e

        logger.info("Registered user %s", user.username)
        return RegisteredUser.model_validate(user)

    async def authenticate(self, db: AsyncSession, username: str, password: str) -> bool:
        """
        Is this username/password valid?

        Returns False, never raises, for an unknown username. A dummy
        verify still runs in that case so response timing does not reveal
        whether the account exists.
        """
        try:
            result = await db.execute(
                select(User.password).where(User.username == username)
            )
            stored_hash = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error authenticating %s: %s", username, str(e))
            raise DatabaseError() from e

        if stored_hash is None:
            await asyncio.to_thread(self.pwd_context.dummy_verify)
            return False

        return await asyncio.to_thread(self.pwd_context.verify, password, stored_hash)

    async def update_login_timestamp(self, db: AsyncSession, username: str) -> None:
        """
        Set last_login_at to now.

        Raises:
            NotFoundError: no such user (→ 404)
        """
        try:
            result = await db.execute(
                update(User)
                .where(User.username == username)
                .values(last_login_at=utcnow())
            )
        except SQLAlchemyError as e:
            logger.error("Database error updating login time for %s: %s", username, str(e))
            raise DatabaseError() from e

        if result.rowcount == 0:
            raise NotFoundError(resource="user", resource_id=username)

    async def all(self, db: AsyncSession) -> List[UserPublic]:
        """Public profile of every user, ordered by username."""
        try:
            result = await db.execute(select(User).order_by(User.username))
            users = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing users: %s", str(e))
            raise DatabaseError() from e
        return [UserPublic.model_validate(user) for user in users]

    async def get(self, db: AsyncSession, username: str) -> UserDetail:
        """
        Full profile of one user.

        Raises:
            NotFoundError: no such user (→ 404)
        """
        try:
            result = await db.execute(select(User).where(User.username == username))
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching user %s: %s", username, str(e))
            raise DatabaseError() from e

        if user is None:
            raise NotFoundError(resource="user", resource_id=username)
        return UserDetail.model_validate(user)

    async def messages_from(self, db: AsyncSession, username: str) -> List[OutboundMessage]:
        """Messages sent by `username`, each with the recipient's public profile."""
        messages = await self._fetch_messages(db, Message.from_username == username)
        profiles = await self._profiles(db, (m.to_username for m in messages))
        return [
            OutboundMessage(
                id=m.id,
                to_username=profiles.get(m.to_username),
                body=m.body,
                sent_at=m.sent_at,
                read_at=m.read_at,
            )
            for m in messages
        ]

    async def messages_to(self, db: AsyncSession, username: str) -> List[InboundMessage]:
        """Messages received by `username`, each with the sender's public profile."""
        messages = await self._fetch_messages(db, Message.to_username == username)
        profiles = await self._profiles(db, (m.from_username for m in messages))
        return [
            InboundMessage(
                id=m.id,
                from_username=profiles.get(m.from_username),
                body=m.body,
                sent_at=m.sent_at,
                read_at=m.read_at,
            )
            for m in messages
        ]

    async def _fetch_messages(self, db: AsyncSession, criterion) -> List[Message]:
        try:
            result = await db.execute(
                select(Message).where(criterion).order_by(Message.id)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing messages: %s", str(e))
            raise DatabaseError() from e

    async def _profiles(
        self, db: AsyncSession, usernames: Iterable[str]
    ) -> Dict[str, UserPublic]:
        """Public profiles keyed by username; absent users are simply missing."""
        wanted = set(usernames)
        if not wanted:
            return {}
        try:
            result = await db.execute(select(User).where(User.username.in_(wanted)))
            users = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error loading profiles: %s", str(e))
            raise DatabaseError() from e

        profiles = {user.username: UserPublic.model_validate(user) for user in users}
        missing = wanted - profiles.keys()
        if missing:
            logger.warning("Messages reference unknown users: %s", sorted(missing))
        return profiles


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService(build_password_context(settings.bcrypt_work_factor))
