"""SQLAlchemy 2.0 ORM models for the Freelance Marketplace.

Five tables:
    1. jobs           — Job postings and their lifecycle status.
    2. wallets        — Stellar addresses registered by users.
    3. notifications  — In-app notices created by lifecycle transitions.
    4. conversations  — One row per unordered pair of users.
    5. messages       — Messages inside a conversation.

Design decisions:
    - UUIDs as primary keys.
    - Users are external identities (opaque strings), not a local table.
    - Decimal for prices (no floating point rounding errors).
    - CHECK constraint on status to reject unknown values at DB level.
    - conversations store the pair canonically (user_a < user_b) under a
      unique constraint, so "one conversation per pair" holds in the schema.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from freelance_marketplace.domain.reservation import PaymentReservation, decode_reservation


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    if hasattr(target, "updated_at"):
        target.updated_at = _utcnow()


# ---------------------------------------------------------------------------
# 1. jobs
# ---------------------------------------------------------------------------
class Job(Base):
    """A unit of work posted by an employer and claimed by a freelancer."""

    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Parties ---
    employer_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Identity of the employer who posted the job",
    )
    employer_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        default=None,
        comment="Employer display name at posting time",
    )
    employee_id: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        default=None,
        comment="Identity of the claimant (set on claim)",
    )

    # --- Posting ---
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    price: Mapped[Decimal] = mapped_column(
        Numeric(18, 7),
        nullable=False,
        comment="Price in `currency` units (7 decimals, one stroop)",
    )
    currency: Mapped[str] = mapped_column(String(12), nullable=False)

    # --- Status ---
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="open",
        comment="Current lifecycle state (guarded by JobStateMachine)",
    )

    # --- Settlement ---
    escrow_id: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        default=None,
        comment="External escrow record, set once escrow creation succeeds",
    )
    payment_reservation: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        default=None,
        comment="Unsigned payment envelope held between claim and approval",
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'in_progress', 'submitted', 'completed', 'cancelled')",
            name="ck_jobs_valid_status",
        ),
        CheckConstraint("price > 0", name="ck_jobs_positive_price"),
        CheckConstraint(
            "(status = 'open') = (employee_id IS NULL)",
            name="ck_jobs_employee_matches_status",
        ),
        Index("idx_jobs_status", "status"),
        Index("idx_jobs_employer", "employer_id"),
        Index("idx_jobs_employee", "employee_id"),
        Index("idx_jobs_created_at", "created_at"),
    )

    @property
    def reservation(self) -> PaymentReservation | None:
        """The stored payment reservation, decoded from either stored shape."""
        return decode_reservation(self.payment_reservation)

    def __repr__(self) -> str:
        return f"<Job id={self.id} status={self.status} price={self.price} {self.currency}>"


# ---------------------------------------------------------------------------
# 2. wallets
# ---------------------------------------------------------------------------
class Wallet(Base):
    """A Stellar account registered by a user."""

    __tablename__ = "wallets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    address: Mapped[str] = mapped_column(
        String(56),
        nullable=False,
        comment="Stellar account id (G..., 56 chars)",
    )
    label: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "address", name="uq_wallets_user_address"),
        Index("idx_wallets_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Wallet id={self.id} user={self.user_id} address={self.address[:8]}...>"


# ---------------------------------------------------------------------------
# 3. notifications
# ---------------------------------------------------------------------------
class Notification(Base):
    """A notice for one user, created as a side effect of a transition."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    notification_type: Mapped[str] = mapped_column(String(40), nullable=False)
    job_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
        default=None,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} type={self.notification_type}>"


# ---------------------------------------------------------------------------
# 4. conversations
# ---------------------------------------------------------------------------
class Conversation(Base):
    """A two-party conversation, keyed by the unordered user pair."""

    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_a: Mapped[str] = mapped_column(String(128), nullable=False)
    user_b: Mapped[str] = mapped_column(String(128), nullable=False)
    job_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
        default=None,
        comment="Job whose claim opened the conversation",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    messages: Mapped[list[Message]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at.asc()",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("user_a < user_b", name="ck_conversations_canonical_pair"),
        UniqueConstraint("user_a", "user_b", name="uq_conversations_pair"),
    )

    @staticmethod
    def canonical_pair(first: str, second: str) -> tuple[str, str]:
        """Order a user pair the way it is stored."""
        return (first, second) if first < second else (second, first)

    def __repr__(self) -> str:
        return f"<Conversation id={self.id} {self.user_a}<->{self.user_b}>"


# ---------------------------------------------------------------------------
# 5. messages
# ---------------------------------------------------------------------------
class Message(Base):
    """A single message inside a conversation."""

    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[str] = mapped_column(String(128), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    conversation: Mapped[Conversation] = relationship(
        "Conversation",
        back_populates="messages",
    )

    __table_args__ = (
        Index("idx_messages_conversation", "conversation_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Message id={self.id} conversation={self.conversation_id} from={self.sender_id}>"


event.listen(Job, "before_update", _set_updated_at)
