"""Horizon client — account sequence lookups and transaction submission.

Only the two Horizon calls the settlement flow needs:

    GET  /accounts/{account_id}   -> current sequence number
    POST /transactions            -> submit a signed envelope

Reads retry on transport errors with exponential backoff. Submissions are
never retried here: a timed-out submission may still land, and the caller must
look the transaction up before sending it again.
"""

from __future__ import annotations

from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from freelance_marketplace.config import get_settings
from freelance_marketplace.logging_config import get_logger

logger = get_logger(__name__)


class HorizonError(Exception):
    """Horizon answered with a non-success status (or could not be reached)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        result_codes: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.result_codes = result_codes or {}


class AccountNotFoundError(HorizonError):
    """The account does not exist on the network (never funded)."""


class HorizonClient:
    """Thin async wrapper over the Horizon REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.horizon_url).rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout_seconds or settings.http_timeout_seconds,
        )
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get_account(self, account_id: str) -> httpx.Response:
        return await self._client.get(f"{self._base_url}/accounts/{account_id}")

    async def load_sequence(self, account_id: str) -> int:
        """Return the account's current sequence number.

        Raises:
            AccountNotFoundError: The account is not on the ledger.
            HorizonError: Any other failure.
        """
        try:
            response = await self._get_account(account_id)
        except httpx.TransportError as exc:
            raise HorizonError(f"Horizon unreachable: {exc}") from exc

        if response.status_code == 404:
            raise AccountNotFoundError(
                f"Account not found on network: {account_id}",
                status_code=404,
            )
        if response.is_error:
            raise HorizonError(
                f"Horizon returned {response.status_code} for account lookup",
                status_code=response.status_code,
            )

        data = response.json()
        try:
            return int(data["sequence"])
        except (KeyError, TypeError, ValueError) as exc:
            raise HorizonError("Horizon account response has no sequence") from exc

    async def submit_transaction(self, envelope_xdr: str) -> dict[str, Any]:
        """Submit a signed envelope and return Horizon's JSON body.

        Raises:
            HorizonError: With result_codes from `extras` when Horizon rejects it.
        """
        logger.info("horizon.submitting", xdr_length=len(envelope_xdr))
        try:
            response = await self._client.post(
                f"{self._base_url}/transactions",
                data={"tx": envelope_xdr},
            )
        except httpx.TransportError as exc:
            raise HorizonError(f"Horizon unreachable: {exc}") from exc

        body = _json_or_empty(response)
        if response.is_error:
            extras = body.get("extras") or {}
            result_codes = extras.get("result_codes") or {}
            title = body.get("title") or f"HTTP {response.status_code}"
            logger.warning(
                "horizon.submission_rejected",
                status=response.status_code,
                title=title,
                result_codes=result_codes,
            )
            raise HorizonError(
                f"{title}: {result_codes}" if result_codes else title,
                status_code=response.status_code,
                result_codes=result_codes,
            )

        logger.info("horizon.submitted", tx_hash=body.get("hash"))
        return body


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
