"""Client for the third-party escrow API (Trustless Work single-release escrows).

Routes used:
    POST /deployer/single-release                      -> {escrow_id, xdr}  (unsigned deploy tx)
    POST /escrow/single-release/fund-escrow            -> {xdr}  (employer deposits)
    POST /escrow/single-release/approve-milestone      -> {xdr}  (employer approves)
    POST /escrow/single-release/release-funds          -> {xdr}  (receiver withdraws)
    GET  /escrow/single-release/get-escrow?escrow_id=  -> escrow state
    POST /helper/send-transaction                      -> submit a signed escrow transaction

All requests carry `Authorization: Bearer <api key>`.
"""

from __future__ import annotations

from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from freelance_marketplace.config import get_settings
from freelance_marketplace.logging_config import get_logger

logger = get_logger(__name__)


class EscrowApiError(Exception):
    """The escrow API returned an error or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


class EscrowApiClient:
    """Async client for the escrow deployer and transaction helper."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.escrow_api_url).rstrip("/")
        key = api_key if api_key is not None else settings.escrow_api_key
        self._client = http_client or httpx.AsyncClient(
            timeout=settings.http_timeout_seconds,
        )
        self._headers = {
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        return await self._client.post(
            f"{self._base_url}{path}",
            json=payload,
            headers=self._headers,
        )

    async def create_single_release(
        self,
        service_provider: str,
        approver: str,
        receiver: str,
        dispute_resolver: str,
        deadline: int,
        amount: str,
        token: str,
    ) -> dict[str, str]:
        """Deploy a single-release escrow and return {escrow_id, xdr}."""
        try:
            response = await self._post(
                "/deployer/single-release",
                {
                    "service_provider": service_provider,
                    "approver": approver,
                    "receiver": receiver,
                    "dispute_resolver": dispute_resolver,
                    "deadline": deadline,
                    "amount": amount,
                    "token": token,
                },
            )
        except httpx.TransportError as exc:
            raise EscrowApiError(f"Escrow API unreachable: {exc}") from exc

        body = self._parse(response, "create escrow")
        escrow_id = body.get("escrow_id")
        unsigned_xdr = body.get("xdr")
        if not escrow_id or not unsigned_xdr:
            raise EscrowApiError(
                "Escrow API response missing escrow_id or xdr",
                status_code=response.status_code,
                detail=body,
            )
        return {"escrow_id": str(escrow_id), "xdr": str(unsigned_xdr)}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        return await self._client.get(
            f"{self._base_url}{path}",
            params=params,
            headers=self._headers,
        )

    async def fund_escrow(self, escrow_id: str, funder: str, amount: str) -> str:
        """Unsigned XDR depositing `amount` (stroops) from the funder."""
        return await self._unsigned(
            "/escrow/single-release/fund-escrow",
            {"escrow_id": escrow_id, "funder": funder, "amount": amount},
            "fund escrow",
        )

    async def approve_milestone(self, escrow_id: str, approver: str) -> str:
        """Unsigned XDR marking the escrow's milestone approved."""
        return await self._unsigned(
            "/escrow/single-release/approve-milestone",
            {"escrow_id": escrow_id, "approver": approver},
            "approve milestone",
        )

    async def release_funds(self, escrow_id: str, receiver: str) -> str:
        """Unsigned XDR paying the escrowed funds out to the receiver."""
        return await self._unsigned(
            "/escrow/single-release/release-funds",
            {"escrow_id": escrow_id, "receiver": receiver},
            "release funds",
        )

    async def get_escrow(self, escrow_id: str) -> dict[str, Any]:
        try:
            response = await self._get(
                "/escrow/single-release/get-escrow",
                {"escrow_id": escrow_id},
            )
        except httpx.TransportError as exc:
            raise EscrowApiError(f"Escrow API unreachable: {exc}") from exc
        return self._parse(response, "get escrow")

    async def _unsigned(self, path: str, payload: dict[str, Any], action: str) -> str:
        try:
            response = await self._post(path, payload)
        except httpx.TransportError as exc:
            raise EscrowApiError(f"Escrow API unreachable: {exc}") from exc

        body = self._parse(response, action)
        unsigned_xdr = body.get("xdr")
        if not unsigned_xdr:
            raise EscrowApiError(
                f"Escrow API response to {action} missing xdr",
                status_code=response.status_code,
                detail=body,
            )
        return str(unsigned_xdr)

    async def send_transaction(self, signed_xdr: str) -> dict[str, Any]:
        """Forward a signed escrow transaction. Not retried."""
        try:
            response = await self._client.post(
                f"{self._base_url}/helper/send-transaction",
                json={"xdr": signed_xdr},
                headers=self._headers,
            )
        except httpx.TransportError as exc:
            raise EscrowApiError(f"Escrow API unreachable: {exc}") from exc
        return self._parse(response, "send transaction")

    @staticmethod
    def _parse(response: httpx.Response, action: str) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}
        if response.is_error:
            logger.warning(
                "escrow_api.error",
                action=action,
                status=response.status_code,
                detail=body,
            )
            raise EscrowApiError(
                f"Escrow API failed to {action} (HTTP {response.status_code})",
                status_code=response.status_code,
                detail=body,
            )
        return body if isinstance(body, dict) else {"result": body}
