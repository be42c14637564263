"""Initial chat schema.

Revision ID: 001
Create Date: 2026-10-18

No database-level foreign key constraints. Referential integrity (chat
deletes cascading to votes, messages and stream ids) is enforced in the
repository layer.
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "chats",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("owner_id", sa.String(255), nullable=False, index=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("visibility", sa.String(16), nullable=False, server_default="private"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_context_json", sa.Text, nullable=True),
    )
    op.create_index("ix_chats_owner_created", "chats", ["owner_id", "created_at"])

    op.create_table(
        "messages",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("chat_id", sa.String(255), nullable=False, index=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("parts_json", sa.Text, nullable=False, server_default="[]"),
        sa.Column("attachments_json", sa.Text, nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_messages_chat_created", "messages", ["chat_id", "created_at"])

    op.create_table(
        "votes",
        sa.Column("chat_id", sa.String(255), primary_key=True),
        sa.Column("message_id", sa.String(255), primary_key=True),
        sa.Column("is_upvoted", sa.Boolean, nullable=False),
    )

    op.create_table(
        "streams",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("chat_id", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_streams_chat_created", "streams", ["chat_id", "created_at"])

    op.create_table(
        "documents",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("content", sa.Text, nullable=True),
        sa.Column("kind", sa.String(16), nullable=False, server_default="text"),
        sa.Column("user_id", sa.String(255), nullable=False),
    )

    op.create_table(
        "suggestions",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("document_id", sa.String(255), nullable=False, index=True),
        sa.Column("document_created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("original_text", sa.Text, nullable=False),
        sa.Column("suggested_text", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_resolved", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("suggestions")
    op.drop_table("documents")
    op.drop_index("ix_streams_chat_created", table_name="streams")
    op.drop_table("streams")
    op.drop_table("votes")
    op.drop_index("ix_messages_chat_created", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_chats_owner_created", table_name="chats")
    op.drop_table("chats")
