"""add meta conversation tables

Revision ID: 4b1e7c2d9a10
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4b1e7c2d9a10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema: meta_conversations and meta_messages tables."""
    op.create_table(
        "meta_conversations",
        sa.Column("participant_id", sa.String(length=64), primary_key=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column(
            "channel",
            sa.String(length=32),
            nullable=False,
            server_default="WhatsApp",
        ),
        sa.Column("last_message", sa.Text(), nullable=True),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="open"
        ),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "bot_status",
            sa.String(length=16),
            nullable=False,
            server_default="active",
        ),
    )
    op.create_index(
        "ix_meta_conversations_last_message_at",
        "meta_conversations",
        ["last_message_at"],
        unique=False,
    )

    op.create_table(
        "meta_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "participant_id",
            sa.String(length=64),
            sa.ForeignKey("meta_conversations.participant_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message_id", sa.String(length=255), nullable=False),
        sa.Column("direction", sa.String(length=16), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("raw", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("message_id", name="uq_meta_messages_message_id"),
    )
    op.create_index(
        "ix_meta_messages_participant_timestamp",
        "meta_messages",
        ["participant_id", "timestamp"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema: drop meta conversation tables."""
    op.drop_index(
        "ix_meta_messages_participant_timestamp", table_name="meta_messages"
    )
    op.drop_table("meta_messages")
    op.drop_index(
        "ix_meta_conversations_last_message_at", table_name="meta_conversations"
    )
    op.drop_table("meta_conversations")
