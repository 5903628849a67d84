"""Domain enumerations for the Freelance Marketplace.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class JobStatus(enum.StrEnum):
    """Lifecycle states of a job.

    Transitions are enforced by the JobStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class JobEvent(enum.StrEnum):
    """Events that move a job between states.

    The values match the event names on JobStateMachine.
    """

    CLAIM = "claim"
    SUBMIT = "submit"
    APPROVE = "approve"
    WITHDRAW = "withdraw"


class NotificationType(enum.StrEnum):
    """Type tag stored on notifications.notification_type."""

    JOB_CLAIMED = "job_claimed"
    JOB_SUBMITTED = "job_submitted"
    JOB_APPROVED = "job_approved"
    JOB_CANCELLED = "job_cancelled"


class SettlementChannel(enum.StrEnum):
    """Where a signed transaction is forwarded for settlement."""

    # Horizon POST /transactions
    NETWORK = "network"
    # Escrow API send-transaction helper
    ESCROW = "escrow"


class EffectName(enum.StrEnum):
    """Post-commit side effects run after an authoritative job transition."""

    PAYMENT_RESERVATION = "payment_reservation"
    ESCROW = "escrow"
    NOTIFICATION = "notification"
    CONVERSATION = "conversation"


class EffectStatus(enum.StrEnum):
    """Outcome of one post-commit side effect."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
