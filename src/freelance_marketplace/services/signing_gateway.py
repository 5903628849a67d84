"""External Signing Gateway — the boundary with client-held wallets.

    hand_out(unsigned_xdr)          -> SigningRequest for the wallet
    submit(signed_xdr, channel)     -> {hash, result} from the network

The gateway never holds keys. It checks that what comes back is a signed
envelope for our network, guards against double submission (Redis SET NX,
when Redis is up) and forwards the envelope untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError
from stellar_sdk import TransactionEnvelope

from freelance_marketplace.config import get_settings
from freelance_marketplace.domain.enums import SettlementChannel
from freelance_marketplace.domain.exceptions import (
    DuplicateOperationError,
    SettlementError,
    ValidationError,
)
from freelance_marketplace.infrastructure.escrow_api import EscrowApiError
from freelance_marketplace.infrastructure.redis_client import (
    claim_idempotency,
    idempotency_key_for,
    release_idempotency,
)
from freelance_marketplace.infrastructure.stellar.horizon import HorizonError
from freelance_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    import redis.asyncio as aioredis

    from freelance_marketplace.infrastructure.escrow_api import EscrowApiClient
    from freelance_marketplace.infrastructure.stellar.horizon import HorizonClient

logger = get_logger(__name__)

IDEMPOTENCY_NAMESPACE = "submit-xdr"


@dataclass(frozen=True)
class SigningRequest:
    """An unsigned artifact on its way to the client wallet."""

    xdr: str
    purpose: str
    network: str
    network_passphrase: str
    job_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "xdr": self.xdr,
            "purpose": self.purpose,
            "network": self.network,
            "network_passphrase": self.network_passphrase,
            "job_id": self.job_id,
        }


class ExternalSigningGateway:
    def __init__(
        self,
        horizon: HorizonClient,
        escrow_api: EscrowApiClient | None = None,
        redis: aioredis.Redis | None = None,
        network_name: str | None = None,
        network_passphrase: str | None = None,
    ) -> None:
        settings = get_settings()
        self._horizon = horizon
        self._escrow_api = escrow_api
        self._redis = redis
        self._network_name = network_name or settings.stellar_network_name
        self._passphrase = network_passphrase or settings.stellar_network_passphrase

    def hand_out(self, unsigned_xdr: str, purpose: str, job_id: str | None = None) -> SigningRequest:
        return SigningRequest(
            xdr=unsigned_xdr,
            purpose=purpose,
            network=self._network_name,
            network_passphrase=self._passphrase,
            job_id=job_id,
        )

    async def submit(
        self,
        signed_xdr: str | None,
        channel: SettlementChannel = SettlementChannel.NETWORK,
    ) -> dict[str, Any]:
        """Forward a signed envelope and return {hash, result}.

        Raises:
            ValidationError: Missing, unreadable or unsigned envelope.
            DuplicateOperationError: Same envelope already submitted recently.
            SettlementError: The network (or escrow API) rejected it.
        """
        signed_xdr = (signed_xdr or "").strip()
        if not signed_xdr:
            raise ValidationError("signed_xdr is required", field="signed_xdr")
        self._check_signed(signed_xdr)

        key = idempotency_key_for(IDEMPOTENCY_NAMESPACE, signed_xdr)
        reserved = await self._reserve(key)

        try:
            if channel == SettlementChannel.ESCROW:
                result = await self._submit_escrow(signed_xdr)
            else:
                result = await self._submit_network(signed_xdr)
        except SettlementError:
            if reserved:
                await self._release(key)
            raise

        logger.info("settlement.submitted", channel=str(channel), tx_hash=result["hash"])
        return result

    def _check_signed(self, signed_xdr: str) -> None:
        try:
            envelope = TransactionEnvelope.from_xdr(signed_xdr, self._passphrase)
        except Exception as exc:
            raise ValidationError(
                "signed_xdr is not a valid transaction envelope", field="signed_xdr"
            ) from exc
        if not envelope.signatures:
            raise ValidationError("Transaction has no signatures", field="signed_xdr")

    async def _submit_network(self, signed_xdr: str) -> dict[str, Any]:
        try:
            body = await self._horizon.submit_transaction(signed_xdr)
        except HorizonError as exc:
            logger.warning(
                "settlement.network_rejected",
                status=exc.status_code,
                result_codes=exc.result_codes,
            )
            raise SettlementError(
                f"Transaction submission failed: {exc.message}",
                result_codes=exc.result_codes,
            ) from exc
        return {"hash": body.get("hash"), "result": body}

    async def _submit_escrow(self, signed_xdr: str) -> dict[str, Any]:
        if self._escrow_api is None:
            raise SettlementError("Escrow submission is not configured")
        try:
            body = await self._escrow_api.send_transaction(signed_xdr)
        except EscrowApiError as exc:
            raise SettlementError(f"Escrow submission failed: {exc.message}") from exc
        return {"hash": body.get("hash") or body.get("txHash"), "result": body}

    async def _reserve(self, key: str) -> bool:
        if self._redis is None:
            return False
        try:
            claimed = await claim_idempotency(self._redis, key)
        except RedisError as exc:
            logger.warning("settlement.idempotency_unavailable", error=str(exc))
            return False
        if not claimed:
            logger.info("settlement.duplicate_rejected", key=key)
            raise DuplicateOperationError(key)
        return True

    async def _release(self, key: str) -> None:
        try:
            await release_idempotency(self._redis, key)
        except RedisError as exc:
            logger.warning("settlement.idempotency_release_failed", key=key, error=str(exc))
