"""Tests for handing out unsigned artifacts and submitting signed ones.

Horizon is exercised through HorizonClient on an httpx.MockTransport, so the
form encoding and error parsing are covered too.
"""

from __future__ import annotations

from unittest.mock import AsyncMock
from urllib.parse import parse_qs

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from stellar_sdk import Account, Asset, Keypair, Network, TransactionBuilder

from freelance_marketplace.domain.enums import SettlementChannel
from freelance_marketplace.domain.exceptions import (
    DuplicateOperationError,
    SettlementError,
    ValidationError,
)
from freelance_marketplace.infrastructure.escrow_api import EscrowApiClient, EscrowApiError
from freelance_marketplace.infrastructure.stellar.horizon import HorizonClient
from freelance_marketplace.services.signing_gateway import ExternalSigningGateway

PASSPHRASE = Network.TESTNET_NETWORK_PASSPHRASE


def _envelope(sign: bool = True) -> str:
    signer = Keypair.random()
    envelope = (
        TransactionBuilder(Account(signer.public_key, 7), PASSPHRASE, base_fee=100)
        .append_payment_op(Keypair.random().public_key, Asset.native(), "1")
        .set_timeout(300)
        .build()
    )
    if sign:
        envelope.sign(signer)
    return envelope.to_xdr()


def _horizon(handler) -> HorizonClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HorizonClient(base_url="https://horizon.test", http_client=client)


def _gateway(horizon: HorizonClient, **kwargs) -> ExternalSigningGateway:
    return ExternalSigningGateway(
        horizon=horizon,
        network_name="TESTNET",
        network_passphrase=PASSPHRASE,
        **kwargs,
    )


def _accepting(seen: list[str]):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/transactions"
        seen.append(parse_qs(request.content.decode())["tx"][0])
        return httpx.Response(200, json={"hash": "abc123", "ledger": 99, "successful": True})

    return handler


def _rejecting(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        400,
        json={
            "title": "Transaction Failed",
            "extras": {"result_codes": {"transaction": "tx_bad_seq"}},
        },
    )


class TestHandOut:
    def test_signing_request(self, horizon) -> None:
        request = _gateway(horizon).hand_out("AAAA", purpose="payment", job_id="j-1")
        assert request.to_dict() == {
            "xdr": "AAAA",
            "purpose": "payment",
            "network": "TESTNET",
            "network_passphrase": PASSPHRASE,
            "job_id": "j-1",
        }


class TestSubmitNetwork:
    @pytest.mark.asyncio
    async def test_forwards_envelope_untouched(self) -> None:
        seen: list[str] = []
        signed = _envelope()

        result = await _gateway(_horizon(_accepting(seen))).submit(signed)

        assert seen == [signed]
        assert result["hash"] == "abc123"
        assert result["result"]["ledger"] == 99

    @pytest.mark.asyncio
    async def test_rejection_carries_result_codes(self) -> None:
        with pytest.raises(SettlementError) as exc_info:
            await _gateway(_horizon(_rejecting)).submit(_envelope())
        assert exc_info.value.result_codes == {"transaction": "tx_bad_seq"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("signed_xdr", [None, "", "   "])
    async def test_missing_envelope(self, horizon, signed_xdr) -> None:
        with pytest.raises(ValidationError):
            await _gateway(horizon).submit(signed_xdr)

    @pytest.mark.asyncio
    async def test_garbage_envelope(self, horizon) -> None:
        with pytest.raises(ValidationError, match="not a valid transaction envelope"):
            await _gateway(horizon).submit("definitely-not-xdr")

    @pytest.mark.asyncio
    async def test_unsigned_envelope(self, horizon) -> None:
        with pytest.raises(ValidationError, match="no signatures"):
            await _gateway(horizon).submit(_envelope(sign=False))
        assert horizon.submitted == []


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_duplicate_submission_is_rejected(self, horizon) -> None:
        redis = AsyncMock()
        redis.set.side_effect = [True, None]
        gateway = _gateway(horizon, redis=redis)
        signed = _envelope()

        await gateway.submit(signed)
        with pytest.raises(DuplicateOperationError):
            await gateway.submit(signed)

        assert len(horizon.submitted) == 1
        assert redis.set.await_args.kwargs["nx"] is True

    @pytest.mark.asyncio
    async def test_failed_submission_releases_key(self) -> None:
        redis = AsyncMock()
        redis.set.return_value = True
        gateway = _gateway(_horizon(_rejecting), redis=redis)

        with pytest.raises(SettlementError):
            await gateway.submit(_envelope())

        redis.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_redis_outage_does_not_block_settlement(self, horizon) -> None:
        redis = AsyncMock()
        redis.set.side_effect = RedisConnectionError("redis down")

        result = await _gateway(horizon, redis=redis).submit(_envelope())

        assert result["hash"] == "hash-1"


class TestSubmitEscrow:
    @pytest.mark.asyncio
    async def test_escrow_channel(self, horizon) -> None:
        escrow_api = AsyncMock(spec=EscrowApiClient)
        escrow_api.send_transaction.return_value = {"status": "SUCCESS", "txHash": "esc-hash"}
        signed = _envelope()

        result = await _gateway(horizon, escrow_api=escrow_api).submit(
            signed, channel=SettlementChannel.ESCROW
        )

        escrow_api.send_transaction.assert_awaited_once_with(signed)
        assert result["hash"] == "esc-hash"
        assert horizon.submitted == []

    @pytest.mark.asyncio
    async def test_escrow_channel_without_api(self, horizon) -> None:
        with pytest.raises(SettlementError, match="not configured"):
            await _gateway(horizon).submit(_envelope(), channel=SettlementChannel.ESCROW)

    @pytest.mark.asyncio
    async def test_escrow_rejection(self, horizon) -> None:
        escrow_api = AsyncMock(spec=EscrowApiClient)
        escrow_api.send_transaction.side_effect = EscrowApiError("bad xdr", status_code=400)
        with pytest.raises(SettlementError, match="bad xdr"):
            await _gateway(horizon, escrow_api=escrow_api).submit(
                _envelope(), channel=SettlementChannel.ESCROW
            )
