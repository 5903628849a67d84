"""Job Lifecycle Engine — core business logic for the job state machine.

This is the application layer that coordinates between:
    - Domain state machine (transition guard)
    - The marketplace store (conditional writes, commit, savepoints)
    - Settlement collaborators (payment reservation, escrow)

Every status change follows the same shape:

    load job -> guard(event) -> compare-and-set UPDATE -> commit
             -> post-commit effects (each isolated, failures recorded)

Both REST routes and MCP tools call into this engine, so the business rules
live in exactly one place.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import structlog
from statemachine.exceptions import TransitionNotAllowed

from freelance_marketplace.domain.enums import (
    EffectName,
    JobEvent,
    JobStatus,
    NotificationType,
)
from freelance_marketplace.domain.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateTransitionError,
    JobNotAvailableError,
    JobNotFoundError,
    PaymentGenerationError,
    SettlementError,
    ValidationError,
)
from freelance_marketplace.domain.reservation import encode_reservation
from freelance_marketplace.domain.state_machine import (
    JobStateMachine,
    can_delete,
    sources_for,
    validate_transition,
)
from freelance_marketplace.domain.wallet_policy import primary_wallet
from freelance_marketplace.infrastructure.database.orm_models import (
    Conversation,
    Job,
    Message,
    Notification,
)
from freelance_marketplace.logging_config import get_logger
from freelance_marketplace.services.payment_reservation import MAX_AMOUNT
from freelance_marketplace.services.side_effects import PostCommitEffects, SkipEffect

if TYPE_CHECKING:
    from freelance_marketplace.domain.repositories import MarketplaceStore
    from freelance_marketplace.infrastructure.database.orm_models import Wallet
    from freelance_marketplace.services.escrow_coordinator import (
        EscrowArtifact,
        EscrowCoordinator,
    )
    from freelance_marketplace.services.payment_reservation import (
        PaymentArtifact,
        PaymentReservationBuilder,
    )
    from freelance_marketplace.services.side_effects import EffectOutcome

logger = get_logger(__name__)

IDENTITY_PATTERN = re.compile(r"^[A-Za-z0-9_.:@-]{1,128}$")
CURRENCY_PATTERN = re.compile(r"^[A-Z0-9]{2,12}$")
MAX_TITLE_LENGTH = 255


@dataclass
class ClaimOutcome:
    job: Job
    effects: list[EffectOutcome] = field(default_factory=list)
    escrow: EscrowArtifact | None = None


@dataclass
class ApprovalOutcome:
    """Result of approve / retry-payment.

    `payment` is None when either party has no wallet; the job is completed
    either way. `escrow_approval` is the approve-milestone XDR for jobs that
    have an escrow.
    """

    job: Job
    message: str
    payment: PaymentArtifact | None = None
    escrow_approval: str | None = None

    def to_response(self) -> dict[str, Any]:
        response: dict[str, Any] = {"success": True, "message": self.message}
        xdrs: dict[str, str] = {}
        if self.payment is not None:
            xdrs["payment"] = self.payment.xdr
            response.update(
                {
                    "amount": self.payment.amount,
                    "asset": self.payment.asset,
                    "from": self.payment.source,
                    "to": self.payment.destination,
                    "network": self.payment.network,
                }
            )
        if self.escrow_approval is not None:
            xdrs["escrow_approval"] = self.escrow_approval
        if xdrs:
            response["xdrs"] = xdrs
        return response


@dataclass(frozen=True)
class EscrowStep:
    """An unsigned escrow transaction for one party to sign."""

    job_id: str
    escrow_id: str
    xdr: str
    purpose: str


class JobLifecycleEngine:
    """Executes job transitions and their post-commit side effects."""

    def __init__(
        self,
        store: MarketplaceStore,
        reservations: PaymentReservationBuilder,
        escrow: EscrowCoordinator | None = None,
    ) -> None:
        self._store = store
        self._reservations = reservations
        self._escrow = escrow

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    async def post_job(
        self,
        employer_id: str | None,
        title: str | None,
        description: str | None,
        price: Any,
        currency: str | None,
        tags: str | list[str] | None = None,
        employer_name: str | None = None,
    ) -> Job:
        """Create a new job in `open`."""
        employer_id = _require_identity(employer_id, "employer_id")
        title = _require_text(title, "title")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"title must be at most {MAX_TITLE_LENGTH} characters", field="title")
        description = _require_text(description, "description")
        currency_code = _parse_currency(currency)
        try:
            self._reservations.asset_for(currency_code)
        except ValueError as err:
            raise ValidationError(
                f"Unsupported currency '{currency_code}': jobs are paid in XLM or USDC",
                field="currency",
            ) from err

        job = Job(
            employer_id=employer_id,
            employer_name=(employer_name or "").strip() or None,
            title=title,
            description=description,
            tags=_normalize_tags(tags),
            price=_parse_price(price),
            currency=currency_code,
            status=JobStatus.OPEN.value,
        )
        job = await self._store.jobs.create(job)
        await self._store.commit()

        logger.info("job.posted", job_id=str(job.id), employer_id=employer_id, price=str(job.price))
        return job

    # ------------------------------------------------------------------
    # Claim
    # ------------------------------------------------------------------

    async def claim(self, job_id: str, employee_id: str | None) -> ClaimOutcome:
        """Claim an open job for employee_id.

        Exactly one of any number of concurrent claimants wins; the rest get
        JobNotAvailableError.
        """
        if not employee_id:
            raise ValidationError("employee_id is required", field="employee_id")
        employee_id = _require_identity(employee_id, "employee_id")

        job_uuid = _parse_job_id(job_id)
        job = await self._get_or_raise(job_uuid)

        if job.employer_id == employee_id:
            raise ValidationError("You cannot claim your own job", field="employee_id")
        if job.status != JobStatus.OPEN:
            raise JobNotAvailableError(str(job_uuid))

        claimed = await self._store.jobs.compare_and_set_status(
            job_uuid,
            sources_for(JobEvent.CLAIM),
            JobStatus.IN_PROGRESS.value,
            employee_id=employee_id,
        )
        if not claimed:
            logger.info("job.claim_lost", job_id=str(job_uuid), employee_id=employee_id)
            raise JobNotAvailableError(str(job_uuid))
        await self._store.commit()
        logger.info("job.claimed", job_id=str(job_uuid), employee_id=employee_id)

        job = await self._get_or_raise(job_uuid)
        outcome = ClaimOutcome(job=job)

        with structlog.contextvars.bound_contextvars(job_id=str(job_uuid)):
            effects = PostCommitEffects(self._store, str(job_uuid))
            await effects.run(
                EffectName.PAYMENT_RESERVATION,
                lambda: self._reserve_payment(job),
            )
            await effects.run(
                EffectName.ESCROW,
                lambda: self._create_escrow(job, outcome),
            )
            await effects.run(
                EffectName.NOTIFICATION,
                lambda: self._notify(
                    job.employer_id,
                    NotificationType.JOB_CLAIMED,
                    f'{employee_id} claimed your job "{job.title}"',
                    job.id,
                ),
            )
            await effects.run(
                EffectName.CONVERSATION,
                lambda: self._seed_conversation(job, employee_id),
            )
            outcome.effects = await effects.finish()

        outcome.job = await self._get_or_raise(job_uuid)
        return outcome

    async def _reserve_payment(self, job: Job) -> str:
        employer_wallet, employee_wallet = await self._wallet_pair(job)
        if employer_wallet is None or employee_wallet is None:
            raise SkipEffect("both parties need a registered wallet")

        artifact = await self._reservations.build(
            job_id=str(job.id),
            source=employer_wallet.address,
            destination=employee_wallet.address,
            amount=job.price,
            currency=job.currency,
        )
        await self._store.jobs.update_fields(
            job.id,
            payment_reservation=encode_reservation(artifact.to_reservation()),
        )
        return f"reserved at sequence {artifact.sequence}"

    async def _create_escrow(self, job: Job, outcome: ClaimOutcome) -> str:
        if self._escrow is None or not self._escrow.enabled:
            raise SkipEffect("escrow disabled")

        employer_wallet, employee_wallet = await self._wallet_pair(job)
        if employer_wallet is None or employee_wallet is None:
            raise SkipEffect("both parties need a registered wallet")

        escrow = await self._escrow.create(
            job_id=str(job.id),
            employee_address=employee_wallet.address,
            employer_address=employer_wallet.address,
            amount=job.price,
        )
        if escrow is None:
            raise SkipEffect("escrow disabled")

        await self._store.jobs.update_fields(job.id, escrow_id=escrow.escrow_id)
        outcome.escrow = escrow
        return escrow.escrow_id

    async def _seed_conversation(self, job: Job, employee_id: str) -> str:
        conversations = self._store.conversations
        if await conversations.get_between(job.employer_id, employee_id) is not None:
            raise SkipEffect("conversation already exists")

        conversation = await conversations.create(
            Conversation(user_a=employee_id, user_b=job.employer_id, job_id=job.id)
        )
        await conversations.add_message(
            Message(
                conversation_id=conversation.id,
                sender_id=employee_id,
                body=f'Hi! I just claimed your job "{job.title}" and I\'m getting started.',
            )
        )
        return str(conversation.id)

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(self, job_id: str, submitter_id: str | None = None) -> Job:
        """Mark claimed work as submitted for review."""
        job_uuid = _parse_job_id(job_id)
        job = await self._get_or_raise(job_uuid)

        if submitter_id is not None and submitter_id != job.employee_id:
            raise AuthorizationError("Only the assigned freelancer can submit this job")
        self._guard(job, JobEvent.SUBMIT)

        if not await self._store.jobs.compare_and_set_status(
            job_uuid, sources_for(JobEvent.SUBMIT), JobStatus.SUBMITTED.value
        ):
            raise ConflictError("Job changed while submitting; refetch and retry")
        await self._store.commit()
        logger.info("job.submitted", job_id=str(job_uuid), employee_id=job.employee_id)

        effects = PostCommitEffects(self._store, str(job_uuid))
        await effects.run(
            EffectName.NOTIFICATION,
            lambda: self._notify(
                job.employer_id,
                NotificationType.JOB_SUBMITTED,
                f'Work was submitted for "{job.title}"',
                job.id,
            ),
        )
        await effects.finish()
        return await self._get_or_raise(job_uuid)

    # ------------------------------------------------------------------
    # Approve
    # ------------------------------------------------------------------

    async def approve(self, job_id: str, approver_id: str | None = None) -> ApprovalOutcome:
        """Complete a submitted job and hand out the payment to sign.

        The status write commits before the payment artifact is generated. If
        generation then fails, the job stays `completed` and
        PaymentGenerationError is raised; retry_payment() picks it up again.
        """
        job_uuid = _parse_job_id(job_id)
        job = await self._get_or_raise(job_uuid)

        if approver_id is not None and approver_id != job.employer_id:
            raise AuthorizationError("Only the employer can approve this job")
        self._guard(job, JobEvent.APPROVE)
        if not job.employee_id:
            raise ValidationError("Job has no employee", field="employee_id")

        reservation = job.reservation
        if not await self._store.jobs.compare_and_set_status(
            job_uuid,
            sources_for(JobEvent.APPROVE),
            JobStatus.COMPLETED.value,
            payment_reservation=None,
        ):
            raise ConflictError("Job is no longer awaiting approval")
        await self._store.commit()
        logger.info("job.approved", job_id=str(job_uuid), employee_id=job.employee_id)

        effects = PostCommitEffects(self._store, str(job_uuid))
        await effects.run(
            EffectName.NOTIFICATION,
            lambda: self._notify(
                job.employee_id,
                NotificationType.JOB_APPROVED,
                f'Your work on "{job.title}" was approved',
                job.id,
            ),
        )
        await effects.finish()

        job = await self._get_or_raise(job_uuid)
        return await self._settle(job, reservation)

    async def retry_payment(self, job_id: str, requester_id: str | None = None) -> ApprovalOutcome:
        """Regenerate the payment artifact of a completed job."""
        job_uuid = _parse_job_id(job_id)
        job = await self._get_or_raise(job_uuid)

        if requester_id is not None and requester_id != job.employer_id:
            raise AuthorizationError("Only the employer can pay for this job")
        if job.status != JobStatus.COMPLETED:
            raise ConflictError("Payment can only be generated for a completed job")

        return await self._settle(job, job.reservation)

    async def _settle(self, job: Job, reservation: Any) -> ApprovalOutcome:
        try:
            employer_wallet, employee_wallet = await self._wallet_pair(job)
            if employer_wallet is None or employee_wallet is None:
                logger.info("payment.skipped", job_id=str(job.id), reason="missing wallet")
                return ApprovalOutcome(
                    job=job,
                    message="Job approved. No payment was generated because a wallet is missing.",
                )

            artifact = await self._reservations.reuse_or_build(
                reservation,
                job_id=str(job.id),
                source=employer_wallet.address,
                destination=employee_wallet.address,
                amount=job.price,
                currency=job.currency,
            )
        except Exception as exc:
            logger.error("payment.generation_failed", job_id=str(job.id), error=str(exc))
            raise PaymentGenerationError(str(job.id), str(exc)) from exc

        return ApprovalOutcome(
            job=job,
            message="Job approved. Sign the payment to release funds.",
            payment=artifact,
            escrow_approval=await self._escrow_approval(job, employer_wallet.address),
        )

    async def _escrow_approval(self, job: Job, approver: str) -> str | None:
        """Approve-milestone XDR for an escrowed job; failures never block payment."""
        if not job.escrow_id or self._escrow is None or not self._escrow.enabled:
            return None
        try:
            return await self._escrow.approve_milestone(str(job.id), job.escrow_id, approver)
        except SettlementError as exc:
            logger.warning("escrow.approval_unavailable", job_id=str(job.id), error=exc.message)
            return None

    # ------------------------------------------------------------------
    # Escrow
    # ------------------------------------------------------------------

    async def fund_escrow(self, job_id: str, requester_id: str | None) -> EscrowStep:
        """Prepare the employer's deposit into the job's escrow."""
        job = await self.get_job(job_id)
        if requester_id != job.employer_id:
            raise AuthorizationError("Only the employer can fund this escrow")
        if job.status not in (JobStatus.IN_PROGRESS, JobStatus.SUBMITTED):
            raise ConflictError("Escrow can only be funded while the job is in progress")
        escrow_id, escrow = self._require_escrow(job)

        employer_wallet, _ = await self._wallet_pair(job)
        if employer_wallet is None:
            raise ValidationError("Employer has no registered wallet", field="employer_id")

        xdr = await escrow.fund(str(job.id), escrow_id, employer_wallet.address, job.price)
        return EscrowStep(job_id=str(job.id), escrow_id=escrow_id, xdr=xdr, purpose="escrow_fund")

    async def release_escrow(self, job_id: str, requester_id: str | None) -> EscrowStep:
        """Prepare the employee's withdrawal from an approved escrow."""
        job = await self.get_job(job_id)
        if requester_id != job.employee_id:
            raise AuthorizationError("Only the assigned freelancer can release this escrow")
        if job.status != JobStatus.COMPLETED:
            raise ConflictError("Escrow funds are released only after the job is approved")
        escrow_id, escrow = self._require_escrow(job)

        _, employee_wallet = await self._wallet_pair(job)
        if employee_wallet is None:
            raise ValidationError("Freelancer has no registered wallet", field="employee_id")

        xdr = await escrow.release(str(job.id), escrow_id, employee_wallet.address)
        logger.info("escrow.release_requested", job_id=str(job.id), escrow_id=escrow_id)
        return EscrowStep(job_id=str(job.id), escrow_id=escrow_id, xdr=xdr, purpose="escrow_release")

    async def escrow_details(self, job_id: str) -> dict[str, Any]:
        job = await self.get_job(job_id)
        escrow_id, escrow = self._require_escrow(job)
        return {
            "job_id": str(job.id),
            "escrow_id": escrow_id,
            "escrow": await escrow.describe(str(job.id), escrow_id),
        }

    def _require_escrow(self, job: Job) -> tuple[str, EscrowCoordinator]:
        if not job.escrow_id:
            raise ConflictError("No escrow for this job")
        if self._escrow is None or not self._escrow.enabled:
            raise SettlementError("Escrow is not configured")
        return job.escrow_id, self._escrow

    # ------------------------------------------------------------------
    # Withdraw / Delete
    # ------------------------------------------------------------------

    async def withdraw(self, job_id: str, requester_id: str | None) -> Job:
        """Cancel a claimed job. Only the employer may do this."""
        if not requester_id:
            raise ValidationError("employer_id is required", field="employer_id")
        job_uuid = _parse_job_id(job_id)
        job = await self._get_or_raise(job_uuid)

        if requester_id != job.employer_id:
            raise AuthorizationError("Only the employer can withdraw this job")
        self._guard(job, JobEvent.WITHDRAW)

        if not await self._store.jobs.compare_and_set_status(
            job_uuid,
            sources_for(JobEvent.WITHDRAW),
            JobStatus.CANCELLED.value,
            payment_reservation=None,
        ):
            raise ConflictError("Job changed while withdrawing; refetch and retry")
        await self._store.commit()
        logger.info(
            "job.withdrawn",
            job_id=str(job_uuid),
            from_status=job.status,
            reservation_discarded=job.payment_reservation is not None,
        )

        effects = PostCommitEffects(self._store, str(job_uuid))
        await effects.run(
            EffectName.NOTIFICATION,
            lambda: self._notify(
                job.employee_id,
                NotificationType.JOB_CANCELLED,
                f'The job "{job.title}" was cancelled by the employer',
                job.id,
            ),
        )
        await effects.finish()
        return await self._get_or_raise(job_uuid)

    async def delete(self, job_id: str, requester_id: str | None) -> None:
        """Hard-delete an open job owned by requester_id."""
        if not requester_id:
            raise ValidationError("employer_id is required", field="employer_id")
        try:
            job_uuid = uuid.UUID(str(job_id))
        except ValueError as err:
            raise ValidationError("Invalid job id", field="job_id") from err

        job = await self._store.jobs.get_by_id(job_uuid)
        if job is None or job.employer_id != requester_id:
            raise JobNotFoundError(str(job_id))
        if not can_delete(job.status):
            raise ConflictError("Only open jobs can be deleted")

        if not await self._store.jobs.delete_if_open(job_uuid, requester_id):
            raise ConflictError("Only open jobs can be deleted")
        await self._store.commit()
        logger.info("job.deleted", job_id=str(job_uuid), employer_id=requester_id)

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_job(self, job_id: str) -> Job:
        return await self._get_or_raise(_parse_job_id(job_id))

    async def list_jobs(self, status: str | None = None) -> list[Job]:
        if status is not None:
            try:
                status = JobStatus(status).value
            except ValueError as err:
                valid = ", ".join(s.value for s in JobStatus)
                raise ValidationError(f"Unknown status '{status}'. Valid: {valid}", field="status") from err
        return await self._store.jobs.list_jobs(status)

    async def list_by_employer(self, employer_id: str) -> list[Job]:
        return await self._store.jobs.list_by_employer(employer_id)

    async def list_by_employee(self, employee_id: str) -> list[Job]:
        return await self._store.jobs.list_by_employee(employee_id)

    async def get_status(self, job_id: str) -> dict[str, Any]:
        """Get job status with the events allowed next."""
        job = await self.get_job(job_id)
        sm = JobStateMachine(current_status=job.status)
        return {
            "job_id": str(job.id),
            "status": job.status,
            "employee_id": job.employee_id,
            "has_payment_reservation": job.payment_reservation is not None,
            "escrow_id": job.escrow_id,
            "allowed_events": sm.get_allowed_events(),
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_or_raise(self, job_uuid: uuid.UUID) -> Job:
        job = await self._store.jobs.get_by_id(job_uuid)
        if job is None:
            raise JobNotFoundError(str(job_uuid))
        return job

    async def _wallet_pair(self, job: Job) -> tuple[Wallet | None, Wallet | None]:
        employer_wallet = primary_wallet(await self._store.wallets.list_for_user(job.employer_id))
        employee_wallet = None
        if job.employee_id:
            employee_wallet = primary_wallet(await self._store.wallets.list_for_user(job.employee_id))
        return employer_wallet, employee_wallet

    async def _notify(
        self,
        user_id: str | None,
        notification_type: NotificationType,
        message: str,
        job_id: uuid.UUID,
    ) -> str:
        if not user_id:
            raise SkipEffect("no recipient")
        notification = await self._store.notifications.create(
            Notification(
                user_id=user_id,
                message=message,
                notification_type=notification_type.value,
                job_id=job_id,
            )
        )
        return str(notification.id)

    def _guard(self, job: Job, event: JobEvent) -> None:
        """Validate a transition against the state machine.

        Raises InvalidStateTransitionError if the transition is illegal.
        """
        try:
            validate_transition(job.status, str(event))
        except TransitionNotAllowed as err:
            raise InvalidStateTransitionError(job.status, str(event)) from err


def _parse_job_id(job_id: str) -> uuid.UUID:
    """Parse a job id; anything malformed is simply a job that does not exist."""
    try:
        return uuid.UUID(str(job_id))
    except ValueError as err:
        raise JobNotFoundError(str(job_id)) from err


def _require_identity(value: str | None, field_name: str) -> str:
    value = value.strip() if isinstance(value, str) else ""
    if not value:
        raise ValidationError(f"{field_name} is required", field=field_name)
    if not IDENTITY_PATTERN.match(value):
        raise ValidationError(f"{field_name} is not a valid user id", field=field_name)
    return value


def _require_text(value: str | None, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return value.strip()


def _parse_price(price: Any) -> Decimal:
    if price is None or price == "":
        raise ValidationError("price is required", field="price")
    if isinstance(price, bool):
        raise ValidationError("price must be a number", field="price")
    try:
        value = Decimal(str(price))
    except InvalidOperation as err:
        raise ValidationError("price must be a number", field="price") from err
    if not value.is_finite() or value <= 0:
        raise ValidationError("price must be greater than zero", field="price")
    if value.as_tuple().exponent < -7:
        raise ValidationError("price supports at most 7 decimal places", field="price")
    if value > MAX_AMOUNT:
        raise ValidationError(f"price must be at most {MAX_AMOUNT}", field="price")
    return value


def _parse_currency(currency: str | None) -> str:
    code = (currency or "").strip().upper()
    if not code:
        raise ValidationError("currency is required", field="currency")
    if not CURRENCY_PATTERN.match(code):
        raise ValidationError(f"Unsupported currency code '{currency}'", field="currency")
    return code


def _normalize_tags(tags: str | list[str] | None) -> list[str]:
    """Accept a comma-separated string or a list; strip, drop blanks, de-duplicate."""
    if tags is None:
        return []
    raw = tags.split(",") if isinstance(tags, str) else list(tags)
    seen: dict[str, None] = {}
    for tag in raw:
        text = str(tag).strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)
