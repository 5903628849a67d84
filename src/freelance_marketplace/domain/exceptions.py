"""Domain exceptions for the Freelance Marketplace.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
"""


class MarketplaceError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "MARKETPLACE_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Input Errors ---


class ValidationError(MarketplaceError):
    """Raised for malformed or missing input. Never retried automatically."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message=message, code="VALIDATION_ERROR")
        self.field = field


# --- Lookup Errors ---


class NotFoundError(MarketplaceError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, message: str, code: str = "NOT_FOUND") -> None:
        super().__init__(message=message, code=code)


class JobNotFoundError(NotFoundError):
    """Raised when a job ID does not exist (or is not visible to the caller)."""

    def __init__(self, job_id: str, message: str | None = None) -> None:
        super().__init__(
            message=message or f"Job not found: {job_id}",
            code="JOB_NOT_FOUND",
        )
        self.job_id = job_id


class WalletNotFoundError(NotFoundError):
    """Raised when a wallet ID does not exist for the given user."""

    def __init__(self, wallet_id: str) -> None:
        super().__init__(
            message=f"Wallet not found: {wallet_id}",
            code="WALLET_NOT_FOUND",
        )


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation ID does not exist."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(
            message=f"Conversation not found: {conversation_id}",
            code="CONVERSATION_NOT_FOUND",
        )


# --- State Machine Errors ---


class ConflictError(MarketplaceError):
    """Raised when a transition precondition is violated.

    Callers should refetch the job before deciding whether to retry.
    """

    def __init__(self, message: str, code: str = "CONFLICT") -> None:
        super().__init__(message=message, code=code)


class InvalidStateTransitionError(ConflictError):
    """Raised when an event is not allowed from the job's current status.

    Example: open -> completed (must be claimed and submitted first)
    """

    def __init__(self, current_state: str, attempted_event: str, message: str | None = None) -> None:
        super().__init__(
            message=message or f"Invalid state transition: {attempted_event} from {current_state}",
            code="INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.attempted_event = attempted_event


class JobNotAvailableError(ConflictError):
    """Raised when a claim loses to another claimant or the job is no longer open."""

    def __init__(self, job_id: str) -> None:
        super().__init__(
            message="Job not available",
            code="JOB_NOT_AVAILABLE",
        )
        self.job_id = job_id


# --- Ownership Errors ---


class AuthorizationError(MarketplaceError):
    """Raised when the actor does not own the resource being mutated."""

    def __init__(self, message: str = "Not authorized for this job") -> None:
        super().__init__(message=message, code="NOT_AUTHORIZED")


# --- Settlement Errors ---


class PaymentGenerationError(MarketplaceError):
    """Raised when the payment artifact cannot be built.

    The job transition that preceded it is NOT rolled back; the caller can
    retry payment generation on its own.
    """

    def __init__(self, job_id: str, reason: str) -> None:
        super().__init__(
            message=f"Job approved but payment generation failed: {reason}",
            code="PAYMENT_GENERATION_FAILED",
        )
        self.job_id = job_id
        self.reason = reason


class SettlementError(MarketplaceError):
    """Raised when the settlement network rejects or fails a submission."""

    def __init__(self, message: str, result_codes: dict | None = None) -> None:
        super().__init__(message=message, code="SETTLEMENT_FAILED")
        self.result_codes = result_codes or {}


class EscrowCreationError(MarketplaceError):
    """Raised when the escrow API refuses or fails to create an escrow."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message=message, code="ESCROW_CREATION_FAILED")
        self.status_code = status_code


# --- Idempotency Errors ---


class DuplicateOperationError(MarketplaceError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )
