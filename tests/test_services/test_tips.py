"""Tests for tip preparation and on-chain tip reads."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock

import pytest
from stellar_sdk import Keypair

from freelance_marketplace.domain.exceptions import (
    JobNotFoundError,
    SettlementError,
    ValidationError,
)
from freelance_marketplace.infrastructure.stellar.soroban import (
    LedgerTip,
    SorobanRpcError,
    TippingContractClient,
)
from freelance_marketplace.services.tips import MAX_MESSAGE_LENGTH, TipService

TIPPING_CONTRACT = "CCTIPPINGCONTRACT"
TOKEN = "CDLZFC3SYJYDZT7K67VZ75HPJVIEUVNIXF47ZG2FB2RMQQVU2HHGCYSC"


@pytest.fixture
def contract() -> AsyncMock:
    client = AsyncMock(spec=TippingContractClient)
    client.contract_id = TIPPING_CONTRACT
    return client


@pytest.fixture
def tips(store, contract) -> TipService:
    return TipService(store, contract, network_name="TESTNET", default_token=TOKEN)


@pytest.fixture
def parties() -> tuple[str, str]:
    return Keypair.random().public_key, Keypair.random().public_key


class TestPrepareTip:
    @pytest.mark.asyncio
    async def test_standalone_tip(self, tips, parties) -> None:
        sender, recipient = parties

        invocation = await tips.prepare_tip(sender, recipient, "2.5", message="  Thanks!  ")

        assert invocation.to_dict() == {
            "contract_id": TIPPING_CONTRACT,
            "function_name": "send_tip",
            "job_id": "",
            "from": sender,
            "to": recipient,
            "token": TOKEN,
            "amount": "25000000",
            "display_amount": "2.5000000",
            "message": "Thanks!",
            "network": "TESTNET",
        }

    @pytest.mark.asyncio
    async def test_tip_for_a_job(self, tips, post_job, parties) -> None:
        job = await post_job()
        invocation = await tips.prepare_tip(*parties, "1", job_id=str(job.id))
        assert invocation.job_id == str(job.id)

    @pytest.mark.asyncio
    async def test_unknown_job(self, tips, parties) -> None:
        with pytest.raises(JobNotFoundError):
            await tips.prepare_tip(*parties, "1", job_id=str(uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_cannot_tip_yourself(self, tips, parties) -> None:
        sender, _ = parties
        with pytest.raises(ValidationError, match="yourself"):
            await tips.prepare_tip(sender, sender, "1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [None, "", "0", "-3", "abc", "0.00000001", True])
    async def test_amount_must_be_positive(self, tips, parties, amount) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await tips.prepare_tip(*parties, amount)
        assert exc_info.value.field == "amount"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"sender": "GNOTAKEY"}, "from"),
            ({"recipient": ""}, "to"),
            ({"token": "not-a-contract"}, "token"),
            ({"message": "x" * (MAX_MESSAGE_LENGTH + 1)}, "message"),
        ],
    )
    async def test_rejects_bad_input(self, tips, parties, overrides, field: str) -> None:
        sender, recipient = parties
        request = {"sender": sender, "recipient": recipient, "amount": "1"}
        request.update(overrides)
        with pytest.raises(ValidationError) as exc_info:
            await tips.prepare_tip(**request)
        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_contract_not_configured(self, store, parties) -> None:
        with pytest.raises(SettlementError, match="not configured"):
            await TipService(store, None, default_token=TOKEN).prepare_tip(*parties, "1")


class TestTipReads:
    @pytest.mark.asyncio
    async def test_tips_received(self, tips, contract, parties) -> None:
        sender, recipient = parties
        tip = LedgerTip(
            id=0,
            job_id="",
            sender=sender,
            recipient=recipient,
            amount=10_000_000,
            message="",
            timestamp=1_700_000_000,
        )
        contract.get_tips_received.return_value = [tip]

        assert await tips.tips_received(recipient) == [tip]
        contract.get_tips_received.assert_awaited_once_with(recipient)

    @pytest.mark.asyncio
    async def test_total_received(self, tips, contract, parties) -> None:
        _, recipient = parties
        contract.get_total_tips_received.return_value = 35_000_000

        assert await tips.total_received(recipient) == {
            "address": recipient,
            "total": "35000000",
            "total_amount": "3.5000000",
        }

    @pytest.mark.asyncio
    async def test_without_contract_nothing_was_received(self, store, parties) -> None:
        _, recipient = parties
        service = TipService(store, None, default_token=TOKEN)

        assert await service.tips_received(recipient) == []
        assert (await service.total_received(recipient))["total"] == "0"

    @pytest.mark.asyncio
    async def test_rpc_failure(self, tips, contract, parties) -> None:
        contract.get_tips_received.side_effect = SorobanRpcError("node down")
        with pytest.raises(SettlementError, match="Failed to fetch tips"):
            await tips.tips_received(parties[1])

    @pytest.mark.asyncio
    async def test_address_is_validated(self, tips) -> None:
        with pytest.raises(ValidationError):
            await tips.total_received("not-an-address")
