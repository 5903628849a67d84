"""Initial marketplace schema: jobs, wallets, notifications, conversations, messages.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("employer_id", sa.String(128), nullable=False),
        sa.Column("employer_name", sa.String(255), nullable=True),
        sa.Column("employee_id", sa.String(128), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("tags", postgresql.JSONB(), nullable=False),
        sa.Column("price", sa.Numeric(18, 7), nullable=False),
        sa.Column("currency", sa.String(12), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("escrow_id", sa.String(128), nullable=True),
        sa.Column("payment_reservation", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('open', 'in_progress', 'submitted', 'completed', 'cancelled')",
            name="ck_jobs_valid_status",
        ),
        sa.CheckConstraint("price > 0", name="ck_jobs_positive_price"),
        sa.CheckConstraint(
            "(status = 'open') = (employee_id IS NULL)",
            name="ck_jobs_employee_matches_status",
        ),
    )
    op.create_index("idx_jobs_status", "jobs", ["status"])
    op.create_index("idx_jobs_employer", "jobs", ["employer_id"])
    op.create_index("idx_jobs_employee", "jobs", ["employee_id"])
    op.create_index("idx_jobs_created_at", "jobs", ["created_at"])

    op.create_table(
        "wallets",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("address", sa.String(56), nullable=False),
        sa.Column("label", sa.String(100), nullable=False, server_default=""),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "address", name="uq_wallets_user_address"),
    )
    op.create_index("idx_wallets_user", "wallets", ["user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", sa.String(40), nullable=False),
        sa.Column("job_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index("idx_notifications_user_read", "notifications", ["user_id", "is_read"])

    op.create_table(
        "conversations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_a", sa.String(128), nullable=False),
        sa.Column("user_b", sa.String(128), nullable=False),
        sa.Column("job_id", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint("user_a < user_b", name="ck_conversations_canonical_pair"),
        sa.UniqueConstraint("user_a", "user_b", name="uq_conversations_pair"),
    )

    op.create_table(
        "messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "conversation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender_id", sa.String(128), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("idx_messages_conversation", "messages", ["conversation_id", "created_at"])


def downgrade() -> None:
    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_table("notifications")
    op.drop_table("wallets")
    op.drop_table("jobs")
