"""Tips: direct token transfers between users through the tipping contract.

A tip may reference a job or stand alone. This service validates the request
and returns the send_tip invocation for the tipper's wallet to sign; the
contract moves the tokens and keeps the ledger of who tipped whom.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from stellar_sdk import StrKey

from freelance_marketplace.config import get_settings
from freelance_marketplace.domain.exceptions import (
    JobNotFoundError,
    SettlementError,
    ValidationError,
)
from freelance_marketplace.infrastructure.stellar.soroban import SorobanRpcError
from freelance_marketplace.logging_config import get_logger
from freelance_marketplace.services.payment_reservation import stroops_to_amount, to_stroops

if TYPE_CHECKING:
    from freelance_marketplace.domain.repositories import MarketplaceStore
    from freelance_marketplace.infrastructure.stellar.soroban import (
        LedgerTip,
        TippingContractClient,
    )

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 500
SEND_TIP_FUNCTION = "send_tip"


@dataclass(frozen=True)
class TipInvocation:
    """Everything the client needs to invoke send_tip and sign it."""

    contract_id: str
    job_id: str
    sender: str
    recipient: str
    token: str
    amount: int
    message: str
    network: str
    function_name: str = SEND_TIP_FUNCTION

    def to_dict(self) -> dict[str, Any]:
        return {
            "contract_id": self.contract_id,
            "function_name": self.function_name,
            "job_id": self.job_id,
            "from": self.sender,
            "to": self.recipient,
            "token": self.token,
            "amount": str(self.amount),
            "display_amount": stroops_to_amount(self.amount),
            "message": self.message,
            "network": self.network,
        }


class TipService:
    def __init__(
        self,
        store: MarketplaceStore,
        tips: TippingContractClient | None = None,
        network_name: str | None = None,
        default_token: str | None = None,
    ) -> None:
        settings = get_settings()
        self._store = store
        self._tips = tips
        self._network_name = network_name or settings.stellar_network_name
        self._default_token = default_token or settings.escrow_token_contract

    async def prepare_tip(
        self,
        sender: str | None,
        recipient: str | None,
        amount: Any,
        token: str | None = None,
        job_id: str | None = None,
        message: str | None = None,
    ) -> TipInvocation:
        """Build the send_tip payload.

        Raises:
            ValidationError: Bad address, token, amount or message, or a self-tip.
            JobNotFoundError: `job_id` given but unknown.
            SettlementError: No tipping contract is configured.
        """
        sender = _require_account(sender, "from")
        recipient = _require_account(recipient, "to")
        if sender == recipient:
            raise ValidationError("You cannot tip yourself", field="to")

        token = (token or self._default_token or "").strip()
        if not StrKey.is_valid_contract(token):
            raise ValidationError("token must be a Stellar contract id (C...)", field="token")

        stroops = _parse_amount(amount)
        message = (message or "").strip()
        if len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"message must be at most {MAX_MESSAGE_LENGTH} characters", field="message"
            )

        job_ref = await self._job_reference(job_id)
        if self._tips is None:
            raise SettlementError("Tipping contract is not configured")

        logger.info("tip.prepared", job_id=job_ref or None, amount=str(stroops))
        return TipInvocation(
            contract_id=self._tips.contract_id,
            job_id=job_ref,
            sender=sender,
            recipient=recipient,
            token=token,
            amount=stroops,
            message=message,
            network=self._network_name,
        )

    async def tips_received(self, address: str) -> list[LedgerTip]:
        """Tips received by a Stellar account, oldest first."""
        address = _require_account(address, "address")
        if self._tips is None:
            return []
        try:
            return await self._tips.get_tips_received(address)
        except SorobanRpcError as exc:
            logger.error("tip.fetch_failed", address=address, error=str(exc))
            raise SettlementError(f"Failed to fetch tips: {exc}") from exc

    async def total_received(self, address: str) -> dict[str, Any]:
        address = _require_account(address, "address")
        total = 0
        if self._tips is not None:
            try:
                total = await self._tips.get_total_tips_received(address)
            except SorobanRpcError as exc:
                logger.error("tip.total_failed", address=address, error=str(exc))
                raise SettlementError(f"Failed to fetch total tips: {exc}") from exc
        return {
            "address": address,
            "total": str(total),
            "total_amount": stroops_to_amount(total),
        }

    async def _job_reference(self, job_id: str | None) -> str:
        """Empty for a standalone tip, else the id of an existing job."""
        job_id = (job_id or "").strip()
        if not job_id:
            return ""
        try:
            job_uuid = uuid.UUID(job_id)
        except ValueError as err:
            raise JobNotFoundError(job_id) from err
        if await self._store.jobs.get_by_id(job_uuid) is None:
            raise JobNotFoundError(job_id)
        return str(job_uuid)


def _require_account(address: str | None, field_name: str) -> str:
    address = (address or "").strip()
    if not StrKey.is_valid_ed25519_public_key(address):
        raise ValidationError(f"{field_name} must be a Stellar public key (G...)", field=field_name)
    return address


def _parse_amount(amount: Any) -> int:
    if amount is None or amount == "" or isinstance(amount, bool):
        raise ValidationError("amount is required", field="amount")
    try:
        value = Decimal(str(amount))
    except InvalidOperation as err:
        raise ValidationError("amount must be a number", field="amount") from err
    if not value.is_finite() or value <= 0:
        raise ValidationError("amount must be greater than zero", field="amount")
    try:
        return to_stroops(value)
    except ValueError as err:
        raise ValidationError(str(err), field="amount") from err
