"""Create users and messages tables

Revision ID: 001
Revises: None
Create Date: 2024-02-01 00:00:00.000000+00:00

What:  Initial schema: the credential store (`users`) and the message
       store (`messages`).

Rollback: downgrade() drops both tables (destructive: all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, then messages (which references users twice)."""
    op.create_table(
        "users",
        sa.Column("username", sa.Text(), nullable=False,
                  comment="Unique login name; referenced by messages"),
        sa.Column("password", sa.Text(), nullable=False,
                  comment="bcrypt hash of the user's password"),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column("join_at", sa.DateTime(timezone=True), nullable=False,
                  comment="When the user registered (UTC)"),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True,
                  comment="Last successful login (UTC)"),
        sa.PrimaryKeyConstraint("username"),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("from_username", sa.Text(), nullable=False),
        sa.Column("to_username", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False,
                  comment="When the message was sent (UTC)"),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True,
                  comment="When the recipient read the message; NULL while unread"),
        sa.ForeignKeyConstraint(["from_username"], ["users.username"]),
        sa.ForeignKeyConstraint(["to_username"], ["users.username"]),
        sa.PrimaryKeyConstraint("id"),
    )

    # Back the "messages from U" / "messages to U" listings
    op.create_index("idx_messages_from_username", "messages", ["from_username"])
    op.create_index("idx_messages_to_username", "messages", ["to_username"])


def downgrade() -> None:
    """Drop both tables. WARNING: destroys all users and messages."""
    op.drop_index("idx_messages_to_username", table_name="messages")
    op.drop_index("idx_messages_from_username", table_name="messages")
    op.drop_table("messages")
    op.drop_table("users")
