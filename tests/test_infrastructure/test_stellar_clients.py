"""Tests for the Horizon, Soroban RPC and escrow API clients over httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest
from stellar_sdk import Keypair, Network, TransactionEnvelope, scval

from freelance_marketplace.infrastructure.escrow_api import EscrowApiClient, EscrowApiError
from freelance_marketplace.infrastructure.stellar.horizon import (
    AccountNotFoundError,
    HorizonClient,
    HorizonError,
)
from freelance_marketplace.infrastructure.stellar.soroban import (
    ReviewsContractClient,
    SorobanRpcClient,
    SorobanRpcError,
    TippingContractClient,
)

CONTRACT_ID = "CDLZFC3SYJYDZT7K67VZ75HPJVIEUVNIXF47ZG2FB2RMQQVU2HHGCYSC"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Horizon
# ---------------------------------------------------------------------------


class TestHorizonClient:
    @pytest.mark.asyncio
    async def test_load_sequence(self) -> None:
        account = Keypair.random().public_key

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"/accounts/{account}"
            return httpx.Response(200, json={"id": account, "sequence": "123456789012"})

        horizon = HorizonClient(base_url="https://horizon.test/", http_client=_client(handler))
        assert await horizon.load_sequence(account) == 123456789012

    @pytest.mark.asyncio
    async def test_unfunded_account(self) -> None:
        horizon = HorizonClient(
            base_url="https://horizon.test",
            http_client=_client(lambda request: httpx.Response(404, json={"status": 404})),
        )
        with pytest.raises(AccountNotFoundError):
            await horizon.load_sequence(Keypair.random().public_key)

    @pytest.mark.asyncio
    async def test_server_error_is_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        horizon = HorizonClient(base_url="https://horizon.test", http_client=_client(handler))
        with pytest.raises(HorizonError) as exc_info:
            await horizon.load_sequence(Keypair.random().public_key)
        assert exc_info.value.status_code == 503
        assert len(calls) == 1


# ---------------------------------------------------------------------------
# Soroban / reviews contract
# ---------------------------------------------------------------------------


def _simulation(value) -> dict:
    return {"jsonrpc": "2.0", "id": 1, "result": {"results": [{"xdr": value.to_xdr()}]}}


class TestReviewsContractClient:
    @pytest.mark.asyncio
    async def test_get_user_reviews(self) -> None:
        reviewer, reviewee = Keypair.random().public_key, Keypair.random().public_key
        review = scval.to_map(
            {
                scval.to_symbol("id"): scval.to_uint64(7),
                scval.to_symbol("job_id"): scval.to_string("job-1"),
                scval.to_symbol("reviewer"): scval.to_address(reviewer),
                scval.to_symbol("reviewee"): scval.to_address(reviewee),
                scval.to_symbol("rating"): scval.to_uint32(5),
                scval.to_symbol("comment"): scval.to_string("Great"),
                scval.to_symbol("timestamp"): scval.to_uint64(1_700_000_000),
            }
        )
        calls: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            payload = json.loads(request.content)
            calls.append(payload)
            return httpx.Response(200, json=_simulation(scval.to_vec([review])))

        rpc = SorobanRpcClient(
            rpc_url="https://rpc.test",
            network_passphrase=Network.TESTNET_NETWORK_PASSPHRASE,
            http_client=_client(handler),
        )
        [parsed] = await ReviewsContractClient(rpc, CONTRACT_ID).get_user_reviews(reviewee)

        assert parsed.rating == 5
        assert parsed.reviewer == reviewer
        assert parsed.reviewee == reviewee
        assert parsed.job_id == "job-1"
        assert parsed.comment == "Great"
        assert calls[0]["method"] == "simulateTransaction"
        envelope = TransactionEnvelope.from_xdr(
            calls[0]["params"]["transaction"], Network.TESTNET_NETWORK_PASSPHRASE
        )
        assert envelope.transaction.source.account_id == reviewee

    @pytest.mark.asyncio
    async def test_has_reviewed_job(self) -> None:
        rpc = SorobanRpcClient(
            rpc_url="https://rpc.test",
            http_client=_client(lambda request: httpx.Response(200, json=_simulation(scval.to_bool(True)))),
        )
        contract = ReviewsContractClient(rpc, CONTRACT_ID)
        assert await contract.has_reviewed_job("job-1", Keypair.random().public_key) is True

    @pytest.mark.asyncio
    async def test_simulation_error(self) -> None:
        body = {"jsonrpc": "2.0", "id": 1, "result": {"error": "HostError: contract panicked"}}
        rpc = SorobanRpcClient(
            rpc_url="https://rpc.test",
            http_client=_client(lambda request: httpx.Response(200, json=body)),
        )
        with pytest.raises(SorobanRpcError, match="Simulation failed"):
            await ReviewsContractClient(rpc, CONTRACT_ID).get_user_reviews(Keypair.random().public_key)


class TestTippingContractClient:
    @pytest.fixture
    def rpc_for(self):
        def _rpc(value) -> SorobanRpcClient:
            return SorobanRpcClient(
                rpc_url="https://rpc.test",
                network_passphrase=Network.TESTNET_NETWORK_PASSPHRASE,
                http_client=_client(lambda request: httpx.Response(200, json=_simulation(value))),
            )

        return _rpc

    @pytest.mark.asyncio
    async def test_get_tips_received(self, rpc_for) -> None:
        sender, recipient = Keypair.random().public_key, Keypair.random().public_key
        tip = scval.to_map(
            {
                scval.to_symbol("amount"): scval.to_int128(50_000_000),
                scval.to_symbol("from"): scval.to_address(sender),
                scval.to_symbol("id"): scval.to_uint64(3),
                scval.to_symbol("job_id"): scval.to_string(""),
                scval.to_symbol("message"): scval.to_string("Thanks!"),
                scval.to_symbol("timestamp"): scval.to_uint64(1_700_000_000),
                scval.to_symbol("to"): scval.to_address(recipient),
            }
        )

        contract = TippingContractClient(rpc_for(scval.to_vec([tip])), CONTRACT_ID)
        [parsed] = await contract.get_tips_received(recipient)

        assert (parsed.id, parsed.amount, parsed.message) == (3, 50_000_000, "Thanks!")
        assert parsed.sender == sender
        assert parsed.recipient == recipient
        assert parsed.job_id == ""
        assert parsed.to_dict()["amount"] == "50000000"

    @pytest.mark.asyncio
    async def test_get_total_tips_received(self, rpc_for) -> None:
        contract = TippingContractClient(rpc_for(scval.to_int128(75_000_000)), CONTRACT_ID)
        assert await contract.get_total_tips_received(Keypair.random().public_key) == 75_000_000


# ---------------------------------------------------------------------------
# Escrow API
# ---------------------------------------------------------------------------


class TestEscrowApiClient:
    @pytest.mark.asyncio
    async def test_create_single_release(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"escrow_id": "esc-9", "xdr": "AAAAunsigned"})

        client = EscrowApiClient(
            base_url="https://escrow.test", api_key="secret", http_client=_client(handler)
        )
        result = await client.create_single_release(
            service_provider="GEMPLOYEE",
            approver="GEMPLOYER",
            receiver="GEMPLOYEE",
            dispute_resolver="GEMPLOYER",
            deadline=1_800_000_000,
            amount="500000000",
            token=CONTRACT_ID,
        )

        assert result == {"escrow_id": "esc-9", "xdr": "AAAAunsigned"}
        assert seen[0].url.path == "/deployer/single-release"
        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert json.loads(seen[0].content)["amount"] == "500000000"

    @pytest.mark.asyncio
    async def test_error_status(self) -> None:
        client = EscrowApiClient(
            base_url="https://escrow.test",
            api_key="secret",
            http_client=_client(lambda request: httpx.Response(422, json={"message": "bad deadline"})),
        )
        with pytest.raises(EscrowApiError) as exc_info:
            await client.send_transaction("AAAAsigned")
        assert exc_info.value.status_code == 422
        assert exc_info.value.detail == {"message": "bad deadline"}

    @pytest.mark.asyncio
    async def test_incomplete_response(self) -> None:
        client = EscrowApiClient(
            base_url="https://escrow.test",
            api_key="secret",
            http_client=_client(lambda request: httpx.Response(200, json={"escrow_id": "esc-9"})),
        )
        with pytest.raises(EscrowApiError, match="missing"):
            await client.create_single_release("G1", "G2", "G1", "G2", 1, "1", CONTRACT_ID)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("method", "args", "path", "payload"),
        [
            (
                "fund_escrow",
                ("esc-9", "GEMPLOYER", "125000000"),
                "/escrow/single-release/fund-escrow",
                {"escrow_id": "esc-9", "funder": "GEMPLOYER", "amount": "125000000"},
            ),
            (
                "approve_milestone",
                ("esc-9", "GEMPLOYER"),
                "/escrow/single-release/approve-milestone",
                {"escrow_id": "esc-9", "approver": "GEMPLOYER"},
            ),
            (
                "release_funds",
                ("esc-9", "GEMPLOYEE"),
                "/escrow/single-release/release-funds",
                {"escrow_id": "esc-9", "receiver": "GEMPLOYEE"},
            ),
        ],
    )
    async def test_lifecycle_steps_return_unsigned_xdr(self, method, args, path, payload) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"xdr": "AAAAstep"})

        client = EscrowApiClient(
            base_url="https://escrow.test", api_key="secret", http_client=_client(handler)
        )

        assert await getattr(client, method)(*args) == "AAAAstep"
        assert seen[0].url.path == path
        assert json.loads(seen[0].content) == payload

    @pytest.mark.asyncio
    async def test_step_without_xdr(self) -> None:
        client = EscrowApiClient(
            base_url="https://escrow.test",
            api_key="secret",
            http_client=_client(lambda request: httpx.Response(200, json={"status": "ok"})),
        )
        with pytest.raises(EscrowApiError, match="missing xdr"):
            await client.release_funds("esc-9", "GEMPLOYEE")

    @pytest.mark.asyncio
    async def test_get_escrow(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"escrow_id": "esc-9", "balance": "0"})

        client = EscrowApiClient(
            base_url="https://escrow.test", api_key="secret", http_client=_client(handler)
        )

        assert await client.get_escrow("esc-9") == {"escrow_id": "esc-9", "balance": "0"}
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/escrow/single-release/get-escrow"
        assert seen[0].url.params["escrow_id"] == "esc-9"
