"""Pydantic API schemas."""

from freelance_marketplace.schemas.jobs import (
    ApproveJobRequest,
    ClaimJobRequest,
    ClaimResponse,
    CreateJobRequest,
    CreateReviewRequest,
    EmployeeActionRequest,
    EmployerActionRequest,
    EscrowDetailsResponse,
    EscrowStepResponse,
    JobCreatedResponse,
    JobResponse,
    JobStatusResponse,
    MessageResponse,
    ReviewPreparedResponse,
    SubmitJobRequest,
    SubmitSignedXdrRequest,
    SubmitSignedXdrResponse,
    SuccessResponse,
)
from freelance_marketplace.schemas.tips import (
    SendTipRequest,
    SubmitTipRequest,
    TipPreparedResponse,
    TipResponse,
    TipSubmittedResponse,
    TipTotalResponse,
)
from freelance_marketplace.schemas.users import (
    AddWalletRequest,
    AverageRatingResponse,
    ConversationResponse,
    HealthResponse,
    MarkReadResponse,
    MessageItemResponse,
    NotificationResponse,
    ReviewResponse,
    WalletResponse,
)

__all__ = [
    "AddWalletRequest",
    "ApproveJobRequest",
    "AverageRatingResponse",
    "ClaimJobRequest",
    "ClaimResponse",
    "ConversationResponse",
    "CreateJobRequest",
    "CreateReviewRequest",
    "EmployeeActionRequest",
    "EmployerActionRequest",
    "EscrowDetailsResponse",
    "EscrowStepResponse",
    "HealthResponse",
    "JobCreatedResponse",
    "JobResponse",
    "JobStatusResponse",
    "MarkReadResponse",
    "MessageItemResponse",
    "MessageResponse",
    "NotificationResponse",
    "ReviewPreparedResponse",
    "ReviewResponse",
    "SendTipRequest",
    "SubmitJobRequest",
    "SubmitSignedXdrRequest",
    "SubmitSignedXdrResponse",
    "SubmitTipRequest",
    "SuccessResponse",
    "TipPreparedResponse",
    "TipResponse",
    "TipSubmittedResponse",
    "TipTotalResponse",
    "WalletResponse",
]
