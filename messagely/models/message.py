"""
Messagely Backend — Message SQLAlchemy Model
==============================================

What:  ORM model for the `messages` table (the message store).
Who:   Used by MessageService and UserService; read by Alembic.

Read-state invariant:
    read_at is NULL until the recipient marks the message read, and is
    never changed after that. MessageService.mark_read() only writes rows
    whose read_at IS NULL.

Indexes:
    from_username / to_username back the "messages from U" and
    "messages to U" listings.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from messagely.database import Base
from messagely.models.user import utcnow


class Message(Base):
    """
    A direct message from one user to another.

    Lifecycle:
        1. Created on send (sent_at = now, read_at = NULL)
        2. read_at set once, by the recipient
        3. Never deleted
    """

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    from_username: Mapped[str] = mapped_column(
        Text,
        ForeignKey("users.username"),
        nullable=False,
    )

    to_username: Mapped[str] = mapped_column(
        Text,
        ForeignKey("users.username"),
        nullable=False,
    )

    body: Mapped[str] = mapped_column(Text, nullable=False)

    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When the message was sent (UTC)",
    )

    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        comment="When the recipient read the message; NULL while unread",
    )

    __table_args__ = (
        Index("idx_messages_from_username", "from_username"),
        Index("idx_messages_to_username", "to_username"),
    )

    def __repr__(self) -> str:
        return (
            f"<Message(id={self.id}, from='{self.from_username}', "
            f"to='{self.to_username}', read_at='{self.read_at}')>"
        )
