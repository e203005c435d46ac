"""
Messagely Backend — User SQLAlchemy Model
===========================================

What:  ORM model for the `users` table (the credential store).
Who:   Used by UserService for registration, login and profile lookups,
       and by Alembic for schema management.

Table Design:
    - username primary key: natural key, referenced by messages.from_username
      and messages.to_username. A duplicate registration fails on this
      constraint, which UserService turns into DuplicateUserError.
    - password: bcrypt hash (never the plaintext). The column keeps the
      name the original schema used.
    - join_at: set once at registration.
    - last_login_at: bumped on every successful login.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from messagely.database import Base


def utcnow() -> datetime:
    """Timezone-aware current time; all timestamps are stored in UTC."""
    return datetime.now(timezone.utc)


class User(Base):
    """
    A registered user of the site.

    Lifecycle:
        1. Created by registration (join_at = last_login_at = now)
        2. last_login_at updated by each login
        3. Never deleted
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        Text,
        primary_key=True,
        comment="Unique login name; referenced by messages",
    )

    password: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="bcrypt hash of the user's password",
    )

    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)

    join_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When the user registered (UTC)",
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=utcnow,
        comment="Last successful login (UTC)",
    )

    def __repr__(self) -> str:
        return f"<User(username='{self.username}')>"
