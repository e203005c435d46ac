"""
Messagely Backend — Message Service
=====================================

What:  Fetch a message with both parties' profiles, send a message, and
       mark a message read.
Who:   Called by the /messages route handlers.

Authorization is NOT checked here. The routes decide who may send as
whom, who may view a message and who may mark it read; this layer
trusts its caller.

Read-State Transition:
    mark_read() writes read_at only while it is NULL:

        UPDATE messages SET read_at = now
        WHERE id = :id AND read_at IS NULL

    The first call records the read time. Later calls leave it alone
    and return the original timestamp.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from messagely.exceptions import DatabaseError, NotFoundError
from messagely.models.message import Message
from messagely.models.user import User, utcnow
from messagely.schemas.message import MessageCreated, MessageDetail, MessageReadState
from messagely.schemas.user import UserPublic

logger = logging.getLogger(__name__)


class MessageService:
    """Stateless; receives the request's session on every call."""

    async def get(self, db: AsyncSession, message_id: int) -> MessageDetail:
        """
        One message with from_user and to_user expanded to public profiles.

        Query plan:
            messages LEFT JOIN users AS sender LEFT JOIN users AS recipient
            → one round trip; a missing user row leaves that side None.

        Raises:
            NotFoundError: no message with this id (→ 404)
        """
        sender = aliased(User)
        recipient = aliased(User)
        stmt = (
            select(Message, sender, recipient)
            .outerjoin(sender, Message.from_username == sender.username)
            .outerjoin(recipient, Message.to_username == recipient.username)
            .where(Message.id == message_id)
        )
        try:
            result = await db.execute(stmt)
            row = result.one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching message %s: %s", message_id, str(e))
            raise DatabaseError(context={"message_id": message_id}) from e

        if row is None:
            raise NotFoundError(resource="message", resource_id=str(message_id))

        message, from_user, to_user = row
        return MessageDetail(
            id=message.id,
            body=message.body,
            sent_at=message.sent_at,
            read_at=message.read_at,
            from_user=UserPublic.model_validate(from_user) if from_user else None,
            to_user=UserPublic.model_validate(to_user) if to_user else None,
        )

    async def create(
        self,
        db: AsyncSession,
        from_username: str,
        to_username: str,
        body: str,
    ) -> MessageCreated:
        """
        Insert a new message (sent_at = now, read_at = NULL).

        Raises:
            NotFoundError: sender or recipient does not exist, reported by
                           the store's foreign keys (→ 404)
            DatabaseError: any other store failure (→ 500)
        """
        message = Message(
            from_username=from_username,
            to_username=to_username,
            body=body,
            sent_at=utcnow(),
            read_at=None,
        )
        db.add(message)
        try:
            await db.flush()
        except IntegrityError as e:
            logger.info("Message %s → %s rejected by constraints", from_username, to_username)
            raise NotFoundError(resource="user", resource_id=to_username) from e
        except SQLAlchemyError as e:
            logger.error("Database error creating message: %s", str(e))
            raise DatabaseError() from e

        logger.info("Message %s sent: %s → %s", message.id, from_username, to_username)
        return MessageCreated.model_validate(message)

    async def mark_read(self, db: AsyncSession, message_id: int) -> MessageReadState:
        """
        Record that the message was read, once.

        Returns:
            {id, read_at}; read_at is the FIRST read time even on repeat calls.

        Raises:
            NotFoundError: no message with this id (→ 404)
        """
        try:
            await db.execute(
                update(Message)
                .where(Message.id == message_id, Message.read_at.is_(None))
                .values(read_at=utcnow())
            )
            result = await db.execute(
                select(Message.id, Message.read_at).where(Message.id == message_id)
            )
            row = result.one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error marking message %s read: %s", message_id, str(e))
            raise DatabaseError(context={"message_id": message_id}) from e

        if row is None:
            raise NotFoundError(resource="message", resource_id=str(message_id))
        return MessageReadState(id=row.id, read_at=row.read_at)


# ── Singleton Instance ────────────────────────────────────────────────────
message_service = MessageService()
