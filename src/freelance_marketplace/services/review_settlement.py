"""Review Settlement — leave_review payloads and on-chain review reads.

Reviews live in a Soroban contract, not in our database. For a completed job
this service works out who reviews whom, checks both parties have wallets and
returns the invocation payload for the reviewer's wallet to sign.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from freelance_marketplace.config import get_settings
from freelance_marketplace.domain.enums import JobStatus
from freelance_marketplace.domain.exceptions import (
    AuthorizationError,
    ConflictError,
    JobNotFoundError,
    SettlementError,
    ValidationError,
)
from freelance_marketplace.domain.wallet_policy import primary_wallet
from freelance_marketplace.infrastructure.stellar.soroban import SorobanRpcError
from freelance_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from freelance_marketplace.domain.repositories import MarketplaceStore
    from freelance_marketplace.infrastructure.stellar.soroban import (
        LedgerReview,
        ReviewsContractClient,
    )

logger = get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 1000
LEAVE_REVIEW_FUNCTION = "leave_review"


@dataclass(frozen=True)
class ReviewInvocation:
    """Everything the client needs to invoke leave_review and sign it."""

    contract_id: str
    reviewer_address: str
    reviewee_address: str
    job_id: str
    rating: int
    comment: str
    network: str
    function_name: str = LEAVE_REVIEW_FUNCTION

    def to_dict(self) -> dict[str, Any]:
        return {
            "contract_id": self.contract_id,
            "function_name": self.function_name,
            "reviewer_address": self.reviewer_address,
            "reviewee_address": self.reviewee_address,
            "job_id": self.job_id,
            "rating": self.rating,
            "comment": self.comment,
            "network": self.network,
        }


class ReviewSettlement:
    def __init__(
        self,
        store: MarketplaceStore,
        reviews: ReviewsContractClient | None = None,
        network_name: str | None = None,
    ) -> None:
        self._store = store
        self._reviews = reviews
        self._network_name = network_name or get_settings().stellar_network_name

    async def prepare_review(
        self,
        job_id: str,
        reviewer_id: str | None,
        rating: Any,
        comment: str | None = None,
    ) -> ReviewInvocation:
        """Build the leave_review payload for a completed job.

        Raises:
            ValidationError: Bad rating or comment, missing reviewer, or a missing wallet.
            JobNotFoundError: Unknown job.
            ConflictError: Job not completed, or already reviewed by this reviewer.
            AuthorizationError: Reviewer is neither the employer nor the employee.
        """
        if not reviewer_id:
            raise ValidationError("reviewer_id is required", field="reviewer_id")
        rating = _validate_rating(rating)
        comment = (comment or "").strip()
        if len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(
                f"comment must be at most {MAX_COMMENT_LENGTH} characters", field="comment"
            )

        try:
            job_uuid = uuid.UUID(str(job_id))
        except ValueError as err:
            raise JobNotFoundError(str(job_id)) from err
        job = await self._store.jobs.get_by_id(job_uuid)
        if job is None:
            raise JobNotFoundError(str(job_id))

        if job.status != JobStatus.COMPLETED:
            raise ConflictError("Only completed jobs can be reviewed")

        if reviewer_id == job.employer_id:
            reviewee_id = job.employee_id
        elif reviewer_id == job.employee_id:
            reviewee_id = job.employer_id
        else:
            raise AuthorizationError("Only the employer or the freelancer can review this job")

        reviewer_wallet = primary_wallet(await self._store.wallets.list_for_user(reviewer_id))
        reviewee_wallet = primary_wallet(await self._store.wallets.list_for_user(reviewee_id))
        if reviewer_wallet is None or reviewee_wallet is None:
            raise ValidationError("Both parties need a registered wallet to leave a review")

        if self._reviews is None:
            raise SettlementError("Reviews contract is not configured")

        await self._ensure_not_reviewed(str(job.id), reviewer_wallet.address)

        logger.info(
            "review.prepared",
            job_id=str(job.id),
            reviewer_id=reviewer_id,
            reviewee_id=reviewee_id,
            rating=rating,
        )
        return ReviewInvocation(
            contract_id=self._reviews.contract_id,
            reviewer_address=reviewer_wallet.address,
            reviewee_address=reviewee_wallet.address,
            job_id=str(job.id),
            rating=rating,
            comment=comment,
            network=self._network_name,
        )

    async def _ensure_not_reviewed(self, job_id: str, reviewer_address: str) -> None:
        # The contract rejects a second review anyway; this only fails earlier.
        try:
            already = await self._reviews.has_reviewed_job(job_id, reviewer_address)
        except SorobanRpcError as exc:
            logger.warning("review.duplicate_check_failed", job_id=job_id, error=str(exc))
            return
        if already:
            raise ConflictError("You have already reviewed this job", code="ALREADY_REVIEWED")

    async def user_reviews(self, user_id: str) -> list[LedgerReview]:
        """Reviews received by the user's primary wallet, oldest first."""
        address = await self._primary_address(user_id)
        if address is None or self._reviews is None:
            return []
        try:
            return await self._reviews.get_user_reviews(address)
        except SorobanRpcError as exc:
            logger.error("review.fetch_failed", user_id=user_id, error=str(exc))
            raise SettlementError(f"Failed to fetch reviews: {exc}") from exc

    async def average_rating(self, user_id: str) -> dict[str, Any]:
        address = await self._primary_address(user_id)
        reviews = await self.user_reviews(user_id)
        average = round(sum(r.rating for r in reviews) / len(reviews), 2) if reviews else 0.0
        return {
            "average_rating": average,
            "total_reviews": len(reviews),
            "user_address": address,
        }

    async def _primary_address(self, user_id: str) -> str | None:
        wallet = primary_wallet(await self._store.wallets.list_for_user(user_id))
        return wallet.address if wallet else None


def _validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("rating must be an integer", field="rating")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(
            f"rating must be between {MIN_RATING} and {MAX_RATING}", field="rating"
        )
    return rating
