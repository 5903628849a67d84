"""Soroban RPC client and the reviews and tipping contract readers built on it.

Read-only contract calls do not need a signature: we build an invocation
transaction, ask the RPC node to simulate it, and decode the return value.

    tx = invoke(contract_id, "get_user_reviews", [Address(user)])
    simulateTransaction(tx) -> results[0].xdr -> SCVal -> native Python
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
from stellar_sdk import Account, TransactionBuilder, scval
from stellar_sdk import xdr as stellar_xdr
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from freelance_marketplace.config import get_settings
from freelance_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)


class SorobanRpcError(Exception):
    """The RPC node failed the request or the simulation reported an error."""


class SorobanRpcClient:
    """Minimal JSON-RPC client for `simulateTransaction`."""

    def __init__(
        self,
        rpc_url: str | None = None,
        network_passphrase: str | None = None,
        base_fee: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._rpc_url = rpc_url or settings.soroban_rpc_url
        self._passphrase = network_passphrase or settings.stellar_network_passphrase
        self._base_fee = base_fee or settings.stellar_base_fee
        self._client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        self._owns_client = http_client is None
        self._request_id = 0

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def build_invocation(
        self,
        source_account: str,
        contract_id: str,
        function_name: str,
        args: Sequence[stellar_xdr.SCVal],
    ) -> str:
        """Return the base64 envelope of an unsigned contract invocation."""
        tx = (
            TransactionBuilder(
                source_account=Account(source_account, 0),
                network_passphrase=self._passphrase,
                base_fee=self._base_fee,
            )
            .append_invoke_contract_function_op(
                contract_id=contract_id,
                function_name=function_name,
                parameters=list(args),
            )
            .set_timeout(30)
            .build()
        )
        return tx.to_xdr()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _rpc(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        self._request_id += 1
        response = await self._client.post(
            self._rpc_url,
            json={
                "jsonrpc": "2.0",
                "id": self._request_id,
                "method": method,
                "params": params,
            },
        )
        response.raise_for_status()
        return response.json()

    async def simulate_call(
        self,
        source_account: str,
        contract_id: str,
        function_name: str,
        args: Sequence[stellar_xdr.SCVal],
    ) -> Any:
        """Simulate a read-only contract call and return its native value."""
        envelope = self.build_invocation(source_account, contract_id, function_name, args)
        try:
            body = await self._rpc("simulateTransaction", {"transaction": envelope})
        except httpx.HTTPError as exc:
            raise SorobanRpcError(f"Soroban RPC request failed: {exc}") from exc

        if "error" in body:
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise SorobanRpcError(f"Soroban RPC error: {message}")

        result = body.get("result") or {}
        if result.get("error"):
            raise SorobanRpcError(f"Simulation failed: {result['error']}")

        results = result.get("results") or []
        if not results or "xdr" not in results[0]:
            raise SorobanRpcError("Simulation returned no result value")

        value = stellar_xdr.SCVal.from_xdr(results[0]["xdr"])
        return scval.to_native(value)


# ---------------------------------------------------------------------------
# Reviews contract
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerReview:
    """A review as stored by the reviews contract."""

    id: int
    job_id: str
    reviewer: str
    reviewee: str
    rating: int
    comment: str
    timestamp: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "reviewer": self.reviewer,
            "reviewee": self.reviewee,
            "rating": self.rating,
            "comment": self.comment,
            "timestamp": self.timestamp,
        }


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    address = getattr(value, "address", None)
    if isinstance(address, str):
        return address
    return str(value)


class ReviewsContractClient:
    """Reads from the on-chain reviews contract."""

    def __init__(self, rpc: SorobanRpcClient, contract_id: str) -> None:
        self._rpc = rpc
        self._contract_id = contract_id

    @property
    def contract_id(self) -> str:
        return self._contract_id

    async def get_user_reviews(self, user_address: str) -> list[LedgerReview]:
        raw = await self._rpc.simulate_call(
            source_account=user_address,
            contract_id=self._contract_id,
            function_name="get_user_reviews",
            args=[scval.to_address(user_address)],
        )
        return [self._parse_review(item) for item in raw or []]

    async def has_reviewed_job(self, job_id: str, reviewer_address: str) -> bool:
        raw = await self._rpc.simulate_call(
            source_account=reviewer_address,
            contract_id=self._contract_id,
            function_name="has_reviewed_job",
            args=[scval.to_string(job_id), scval.to_address(reviewer_address)],
        )
        return bool(raw)

    @staticmethod
    def _parse_review(item: dict) -> LedgerReview:
        fields = {_text(k): v for k, v in item.items()}
        return LedgerReview(
            id=int(fields.get("id", 0)),
            job_id=_text(fields.get("job_id", b"")),
            reviewer=_text(fields.get("reviewer", "")),
            reviewee=_text(fields.get("reviewee", "")),
            rating=int(fields.get("rating", 0)),
            comment=_text(fields.get("comment", b"")),
            timestamp=int(fields.get("timestamp", 0)),
        )


# ---------------------------------------------------------------------------
# Tipping contract
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerTip:
    """A tip as stored by the tipping contract. `amount` is in stroops."""

    id: int
    job_id: str
    sender: str
    recipient: str
    amount: int
    message: str
    timestamp: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "message": self.message,
            "timestamp": self.timestamp,
        }


class TippingContractClient:
    """Reads from the on-chain tipping contract."""

    def __init__(self, rpc: SorobanRpcClient, contract_id: str) -> None:
        self._rpc = rpc
        self._contract_id = contract_id

    @property
    def contract_id(self) -> str:
        return self._contract_id

    async def get_tips_received(self, user_address: str) -> list[LedgerTip]:
        raw = await self._rpc.simulate_call(
            source_account=user_address,
            contract_id=self._contract_id,
            function_name="get_tips_received",
            args=[scval.to_address(user_address)],
        )
        return [self._parse_tip(item) for item in raw or []]

    async def get_total_tips_received(self, user_address: str) -> int:
        raw = await self._rpc.simulate_call(
            source_account=user_address,
            contract_id=self._contract_id,
            function_name="get_total_tips_received",
            args=[scval.to_address(user_address)],
        )
        return int(raw or 0)

    @staticmethod
    def _parse_tip(item: dict) -> LedgerTip:
        fields = {_text(k): v for k, v in item.items()}
        return LedgerTip(
            id=int(fields.get("id", 0)),
            job_id=_text(fields.get("job_id", b"")),
            sender=_text(fields.get("from", "")),
            recipient=_text(fields.get("to", "")),
            amount=int(fields.get("amount", 0)),
            message=_text(fields.get("message", b"")),
            timestamp=int(fields.get("timestamp", 0)),
        )
