"""Application services — use case orchestration."""

from freelance_marketplace.services.accounts import (
    ConversationService,
    NotificationService,
    WalletService,
)
from freelance_marketplace.services.escrow_coordinator import EscrowCoordinator
from freelance_marketplace.services.job_lifecycle import (
    ApprovalOutcome,
    ClaimOutcome,
    EscrowStep,
    JobLifecycleEngine,
)
from freelance_marketplace.services.payment_reservation import PaymentReservationBuilder
from freelance_marketplace.services.review_settlement import ReviewSettlement
from freelance_marketplace.services.signing_gateway import ExternalSigningGateway
from freelance_marketplace.services.tips import TipService

__all__ = [
    "ApprovalOutcome",
    "ClaimOutcome",
    "ConversationService",
    "EscrowCoordinator",
    "EscrowStep",
    "ExternalSigningGateway",
    "JobLifecycleEngine",
    "NotificationService",
    "PaymentReservationBuilder",
    "ReviewSettlement",
    "TipService",
    "WalletService",
]
