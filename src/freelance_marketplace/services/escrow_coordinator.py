"""Escrow Coordinator: single-release escrows alongside the direct payment.

Escrow is an optional layer on top of the payment reservation. When it is
switched off, or no API key is configured, create() returns None and the
claim carries on. Any API failure is raised as EscrowCreationError; the claim
pipeline records it and moves on.

After creation the escrow goes through

    fund (employer) -> approve_milestone (employer) -> release (employee)

Each step only prepares an unsigned XDR for the signing gateway. Those
steps raise SettlementError on API failure or when escrow is disabled.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, TypeVar

from freelance_marketplace.config import get_settings
from freelance_marketplace.domain.exceptions import EscrowCreationError, SettlementError
from freelance_marketplace.infrastructure.escrow_api import EscrowApiClient, EscrowApiError
from freelance_marketplace.logging_config import get_logger
from freelance_marketplace.services.payment_reservation import to_stroops

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from decimal import Decimal

    from freelance_marketplace.config import Settings

logger = get_logger(__name__)

_T = TypeVar("_T")


@dataclass(frozen=True)
class EscrowArtifact:
    escrow_id: str
    xdr: str
    deadline: int


class EscrowCoordinator:
    """Creates escrows through the escrow API."""

    def __init__(
        self,
        client: EscrowApiClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._settings.escrow_configured

    def _get_client(self) -> EscrowApiClient:
        if self._client is None:
            self._client = EscrowApiClient()
        return self._client

    def default_deadline(self, now: datetime | None = None) -> int:
        """Unix time `escrow_deadline_days` from now."""
        now = now or datetime.now(UTC)
        return int((now + timedelta(days=self._settings.escrow_deadline_days)).timestamp())

    async def create(
        self,
        job_id: str,
        employee_address: str,
        employer_address: str,
        amount: Decimal | str,
        deadline: int | None = None,
        token: str | None = None,
    ) -> EscrowArtifact | None:
        """Create an escrow paying the employee, approved by the employer.

        Returns None when escrow is disabled.

        Raises:
            EscrowCreationError: The API call failed.
        """
        if not self.enabled:
            logger.debug("escrow.skipped", job_id=job_id, reason="disabled")
            return None

        deadline = deadline or self.default_deadline()
        dispute_resolver = self._settings.escrow_dispute_resolver or employer_address

        try:
            result = await self._get_client().create_single_release(
                service_provider=employee_address,
                approver=employer_address,
                receiver=employee_address,
                dispute_resolver=dispute_resolver,
                deadline=deadline,
                amount=str(to_stroops(amount)),
                token=token or self._settings.escrow_token_contract,
            )
        except EscrowApiError as exc:
            logger.warning(
                "escrow.create_failed",
                job_id=job_id,
                status=exc.status_code,
                error=exc.message,
            )
            raise EscrowCreationError(exc.message, status_code=exc.status_code) from exc

        logger.info("escrow.created", job_id=job_id, escrow_id=result["escrow_id"])
        return EscrowArtifact(
            escrow_id=result["escrow_id"],
            xdr=result["xdr"],
            deadline=deadline,
        )

    async def fund(self, job_id: str, escrow_id: str, funder: str, amount: Decimal | str) -> str:
        """Unsigned XDR moving the job price from the employer into the escrow."""
        return await self._call(
            "fund",
            job_id,
            lambda client: client.fund_escrow(escrow_id, funder, str(to_stroops(amount))),
        )

    async def approve_milestone(self, job_id: str, escrow_id: str, approver: str) -> str:
        """Unsigned XDR approving the escrow milestone, signed by the employer."""
        return await self._call(
            "approve_milestone",
            job_id,
            lambda client: client.approve_milestone(escrow_id, approver),
        )

    async def release(self, job_id: str, escrow_id: str, receiver: str) -> str:
        """Unsigned XDR releasing an approved escrow to the employee."""
        return await self._call(
            "release",
            job_id,
            lambda client: client.release_funds(escrow_id, receiver),
        )

    async def describe(self, job_id: str, escrow_id: str) -> dict[str, Any]:
        """Current escrow state as reported by the escrow API."""
        return await self._call(
            "describe",
            job_id,
            lambda client: client.get_escrow(escrow_id),
        )

    async def _call(
        self,
        action: str,
        job_id: str,
        request: Callable[[EscrowApiClient], Awaitable[_T]],
    ) -> _T:
        """Run one escrow API request, mapping failures to SettlementError."""
        if not self.enabled:
            raise SettlementError("Escrow is not configured")
        try:
            result = await request(self._get_client())
        except EscrowApiError as exc:
            logger.warning(
                f"escrow.{action}_failed",
                job_id=job_id,
                status=exc.status_code,
                error=exc.message,
            )
            raise SettlementError(exc.message, result_codes={"status": exc.status_code}) from exc
        logger.info(f"escrow.{action}_prepared", job_id=job_id)
        return result
