"""Domain layer — pure business logic with zero framework dependencies."""

from freelance_marketplace.domain.enums import (
    EffectName,
    EffectStatus,
    JobEvent,
    JobStatus,
    NotificationType,
    SettlementChannel,
)
from freelance_marketplace.domain.exceptions import (
    AuthorizationError,
    ConflictError,
    JobNotFoundError,
    MarketplaceError,
    NotFoundError,
    PaymentGenerationError,
    SettlementError,
    ValidationError,
)
from freelance_marketplace.domain.reservation import (
    PaymentReservation,
    RawReservation,
    WrappedReservation,
    decode_reservation,
    encode_reservation,
)
from freelance_marketplace.domain.state_machine import (
    JobStateMachine,
    validate_transition,
)
from freelance_marketplace.domain.wallet_policy import primary_wallet

__all__ = [
    "EffectName",
    "EffectStatus",
    "JobEvent",
    "JobStatus",
    "NotificationType",
    "SettlementChannel",
    "AuthorizationError",
    "ConflictError",
    "JobNotFoundError",
    "MarketplaceError",
    "NotFoundError",
    "PaymentGenerationError",
    "SettlementError",
    "ValidationError",
    "PaymentReservation",
    "RawReservation",
    "WrappedReservation",
    "decode_reservation",
    "encode_reservation",
    "JobStateMachine",
    "validate_transition",
    "primary_wallet",
]
