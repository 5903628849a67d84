"""HTTP-level tests: routes, error mapping and the approval response shape.

The app is built by create_app() and driven through httpx.ASGITransport; the
lifespan never runs, and the store and network clients are swapped for fakes
via dependency_overrides.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from stellar_sdk import Keypair

from freelance_marketplace.api.deps import get_lifecycle_engine, get_redis_client, get_store
from freelance_marketplace.config import Settings
from freelance_marketplace.infrastructure.clients import (
    get_escrow_api_client,
    get_horizon_client,
    get_reviews_client,
    get_tipping_client,
)
from freelance_marketplace.infrastructure.escrow_api import EscrowApiClient
from freelance_marketplace.infrastructure.stellar.soroban import LedgerTip, TippingContractClient
from freelance_marketplace.main import create_app
from freelance_marketplace.services.escrow_coordinator import EscrowCoordinator
from freelance_marketplace.services.job_lifecycle import JobLifecycleEngine
from tests.fakes import EMPLOYEE, EMPLOYER, STRANGER

JOB = {
    "employer_id": EMPLOYER,
    "employer_name": "Acme",
    "title": "Landing page copy",
    "description": "Write the copy for a product landing page",
    "price": "50.00",
    "currency": "XLM",
    "tags": "copywriting, marketing",
}


def _app(store, horizon):
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_horizon_client] = lambda: horizon
    app.dependency_overrides[get_escrow_api_client] = lambda: None
    app.dependency_overrides[get_reviews_client] = lambda: None
    app.dependency_overrides[get_tipping_client] = lambda: None
    app.dependency_overrides[get_redis_client] = lambda: None
    return app


@asynccontextmanager
async def _serve(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


@pytest_asyncio.fixture
async def client(store, horizon):
    async with _serve(_app(store, horizon)) as http:
        yield http


@pytest.fixture
def escrow_api() -> AsyncMock:
    api = AsyncMock(spec=EscrowApiClient)
    api.create_single_release.return_value = {"escrow_id": "esc-1", "xdr": "AAAAdeploy"}
    return api


@pytest_asyncio.fixture
async def escrow_client(store, horizon, reservations, escrow_api):
    """Client whose lifecycle engine has escrow switched on."""
    app = _app(store, horizon)
    settings = Settings(escrow_enabled=True, escrow_api_key="test-key")
    app.dependency_overrides[get_lifecycle_engine] = lambda: JobLifecycleEngine(
        store=store,
        reservations=reservations,
        escrow=EscrowCoordinator(client=escrow_api, settings=settings),
    )
    async with _serve(app) as http:
        yield http


@pytest.fixture
def tipping_contract() -> AsyncMock:
    contract = AsyncMock(spec=TippingContractClient)
    contract.contract_id = "CCTIPPINGCONTRACT"
    return contract


@pytest_asyncio.fixture
async def tips_client(store, horizon, tipping_contract):
    app = _app(store, horizon)
    app.dependency_overrides[get_tipping_client] = lambda: tipping_contract
    async with _serve(app) as http:
        yield http


async def _create_job(client: httpx.AsyncClient, **overrides) -> str:
    response = await client.post("/api/jobs", json={**JOB, **overrides})
    assert response.status_code == 201, response.text
    return response.json()["job_id"]


class TestJobRoutes:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client) -> None:
        job_id = await _create_job(client)

        response = await client.get(f"/api/jobs/{job_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "open"
        assert body["tags"] == ["copywriting", "marketing"]
        assert float(body["price"]) == 50.0
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_missing_field_is_400(self, client) -> None:
        response = await client.post("/api/jobs", json={**JOB, "title": ""})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_malformed_body_is_400(self, client) -> None:
        response = await client.post("/api/jobs", json={**JOB, "price": "fifty"})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unknown_job_is_404(self, client) -> None:
        response = await client.get("/api/jobs/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404
        assert response.json()["error"] == "JOB_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_list_filters(self, client) -> None:
        claimed = await _create_job(client)
        await _create_job(client, title="Still open")
        await client.post(f"/api/jobs/{claimed}/claim", json={"employee_id": EMPLOYEE})

        open_jobs = (await client.get("/api/jobs", params={"status": "open"})).json()
        mine = (await client.get(f"/api/jobs/employee/{EMPLOYEE}")).json()
        posted = (await client.get(f"/api/jobs/employer/{EMPLOYER}")).json()

        assert [j["title"] for j in open_jobs] == ["Still open"]
        assert [j["id"] for j in mine] == [claimed]
        assert len(posted) == 2

    @pytest.mark.asyncio
    async def test_second_claim_is_rejected(self, client) -> None:
        job_id = await _create_job(client)

        first = await client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": EMPLOYEE})
        second = await client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": STRANGER})

        assert first.status_code == 200
        effects = {e["name"]: e["status"] for e in first.json()["effects"]}
        assert effects["notification"] == "applied"
        assert effects["payment_reservation"] == "skipped"
        assert second.status_code == 400
        assert second.json()["error"] == "JOB_NOT_AVAILABLE"

    @pytest.mark.asyncio
    async def test_status_endpoint(self, client) -> None:
        job_id = await _create_job(client)
        await client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": EMPLOYEE})

        body = (await client.get(f"/api/jobs/{job_id}/status")).json()

        assert body["status"] == "in_progress"
        assert body["employee_id"] == EMPLOYEE
        assert set(body["allowed_events"]) == {"submit", "withdraw"}

    @pytest.mark.asyncio
    async def test_invalid_transition_is_400(self, client) -> None:
        job_id = await _create_job(client)
        response = await client.post(f"/api/jobs/{job_id}/approve", json={"employer_id": EMPLOYER})
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_STATE_TRANSITION"


class TestSettlementFlow:
    @pytest.mark.asyncio
    async def test_approve_returns_payment_to_sign(self, client) -> None:
        employer_address = Keypair.random().public_key
        employee_address = Keypair.random().public_key
        for user_id, address in ((EMPLOYER, employer_address), (EMPLOYEE, employee_address)):
            response = await client.post(f"/api/users/{user_id}/wallets", json={"address": address})
            assert response.status_code == 201

        job_id = await _create_job(client)
        await client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": EMPLOYEE})
        submitted = await client.post(f"/api/jobs/{job_id}/submit", json={"employee_id": EMPLOYEE})
        assert submitted.status_code == 200

        forbidden = await client.post(f"/api/jobs/{job_id}/approve", json={"employer_id": STRANGER})
        assert forbidden.status_code == 403

        response = await client.post(f"/api/jobs/{job_id}/approve", json={"employer_id": EMPLOYER})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["amount"] == "50.0000000"
        assert body["from"] == employer_address
        assert body["to"] == employee_address
        assert body["network"] == "TESTNET"
        assert body["signing"]["xdr"] == body["xdrs"]["payment"]
        assert body["signing"]["purpose"] == "payment"

    @pytest.mark.asyncio
    async def test_approve_without_wallets(self, client) -> None:
        job_id = await _create_job(client)
        await client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": EMPLOYEE})
        await client.post(f"/api/jobs/{job_id}/submit")

        response = await client.post(f"/api/jobs/{job_id}/approve")

        assert response.status_code == 200
        assert "xdrs" not in response.json()

    @pytest.mark.asyncio
    async def test_unsigned_submission_is_400(self, client) -> None:
        response = await client.post("/api/jobs/submit-xdr", json={"signed_xdr": "junk"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_review_without_contract_is_500(self, client, register_wallet) -> None:
        await register_wallet(EMPLOYER)
        await register_wallet(EMPLOYEE)
        job_id = await _create_job(client)
        await client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": EMPLOYEE})
        await client.post(f"/api/jobs/{job_id}/submit")
        await client.post(f"/api/jobs/{job_id}/approve")

        response = await client.post(
            f"/api/jobs/{job_id}/review", json={"reviewer_id": EMPLOYER, "rating": 5}
        )

        assert response.status_code == 500
        assert response.json()["error"] == "SETTLEMENT_FAILED"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("field", "value"),
        [("price", "1000000000000"), ("currency", "EUR")],
    )
    async def test_unsettleable_job_is_400(self, client, field: str, value: str) -> None:
        response = await client.post("/api/jobs", json={**JOB, field: value})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_release_without_escrow_is_400(self, client) -> None:
        job_id = await _create_job(client)
        await client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": EMPLOYEE})
        await client.post(f"/api/jobs/{job_id}/submit")
        await client.post(f"/api/jobs/{job_id}/approve")

        response = await client.post(f"/api/jobs/{job_id}/release", json={"employee_id": EMPLOYEE})

        assert response.status_code == 400
        assert response.json()["error"] == "CONFLICT"


class TestEscrowRoutes:
    @pytest_asyncio.fixture
    async def job_id(self, escrow_client, register_wallet) -> str:
        await register_wallet(EMPLOYER)
        await register_wallet(EMPLOYEE)
        job_id = await _create_job(escrow_client)
        claimed = await escrow_client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": EMPLOYEE})
        assert claimed.json()["escrow"]["escrow_id"] == "esc-1"
        return job_id

    @pytest.mark.asyncio
    async def test_fund(self, escrow_client, escrow_api, job_id) -> None:
        escrow_api.fund_escrow.return_value = "AAAAfund"

        response = await escrow_client.post(
            f"/api/jobs/{job_id}/escrow/fund", json={"employer_id": EMPLOYER}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["escrow_id"] == "esc-1"
        assert body["signing"]["xdr"] == "AAAAfund"
        assert body["signing"]["purpose"] == "escrow_fund"

    @pytest.mark.asyncio
    async def test_approve_then_release(self, escrow_client, escrow_api, job_id) -> None:
        escrow_api.approve_milestone.return_value = "AAAAapprove"
        escrow_api.release_funds.return_value = "AAAArelease"
        await escrow_client.post(f"/api/jobs/{job_id}/submit")

        approved = (await escrow_client.post(f"/api/jobs/{job_id}/approve")).json()
        assert approved["xdrs"]["escrow_approval"] == "AAAAapprove"
        assert approved["escrow_signing"]["purpose"] == "escrow_approval"

        forbidden = await escrow_client.post(f"/api/jobs/{job_id}/release", json={"employee_id": STRANGER})
        assert forbidden.status_code == 403

        response = await escrow_client.post(f"/api/jobs/{job_id}/release", json={"employee_id": EMPLOYEE})
        assert response.status_code == 200
        assert response.json()["signing"]["xdr"] == "AAAArelease"
        assert response.json()["signing"]["purpose"] == "escrow_release"

    @pytest.mark.asyncio
    async def test_escrow_state(self, escrow_client, escrow_api, job_id) -> None:
        escrow_api.get_escrow.return_value = {"escrow_id": "esc-1", "balance": "0"}

        response = await escrow_client.get(f"/api/jobs/{job_id}/escrow")

        assert response.status_code == 200
        assert response.json()["escrow"] == {"escrow_id": "esc-1", "balance": "0"}


class TestWithdrawAndDelete:
    @pytest.mark.asyncio
    async def test_withdraw(self, client) -> None:
        job_id = await _create_job(client)
        await client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": EMPLOYEE})

        response = await client.post(f"/api/jobs/{job_id}/withdraw", json={"employer_id": EMPLOYER})

        assert response.status_code == 200
        assert (await client.get(f"/api/jobs/{job_id}")).json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_delete_guard(self, client) -> None:
        claimed = await _create_job(client)
        await client.post(f"/api/jobs/{claimed}/claim", json={"employee_id": EMPLOYEE})
        unclaimed = await _create_job(client)

        refused = await client.delete(f"/api/jobs/{claimed}", params={"employer_id": EMPLOYER})
        deleted = await client.delete(f"/api/jobs/{unclaimed}", params={"employer_id": EMPLOYER})

        assert refused.status_code == 400
        assert deleted.status_code == 200
        assert (await client.get(f"/api/jobs/{unclaimed}")).status_code == 404


class TestUserRoutes:
    @pytest.mark.asyncio
    async def test_wallet_lifecycle(self, client) -> None:
        address = Keypair.random().public_key
        created = await client.post(
            f"/api/users/{EMPLOYER}/wallets", json={"address": address, "label": "Main"}
        )
        duplicate = await client.post(f"/api/users/{EMPLOYER}/wallets", json={"address": address})
        invalid = await client.post(f"/api/users/{EMPLOYER}/wallets", json={"address": "GNOPE"})

        assert created.status_code == 201
        assert duplicate.json()["error"] == "WALLET_EXISTS"
        assert invalid.status_code == 400

        wallet_id = created.json()["id"]
        assert (await client.delete(f"/api/users/{EMPLOYER}/wallets/{wallet_id}")).status_code == 200
        assert (await client.get(f"/api/users/{EMPLOYER}/wallets")).json() == []

    @pytest.mark.asyncio
    async def test_notifications_and_conversations(self, client) -> None:
        job_id = await _create_job(client)
        await client.post(f"/api/jobs/{job_id}/claim", json={"employee_id": EMPLOYEE})

        unread = await client.get(f"/api/users/{EMPLOYER}/notifications", params={"unread_only": True})
        assert [n["notification_type"] for n in unread.json()] == ["job_claimed"]
        marked = await client.post(f"/api/users/{EMPLOYER}/notifications/read")
        assert marked.json() == {"updated": 1}

        [conversation] = (await client.get(f"/api/users/{EMPLOYEE}/conversations")).json()
        messages = (await client.get(f"/api/conversations/{conversation['id']}/messages")).json()
        assert messages[0]["sender_id"] == EMPLOYEE

    @pytest.mark.asyncio
    async def test_reviews_without_contract(self, client) -> None:
        assert (await client.get(f"/api/users/{EMPLOYEE}/reviews")).json() == []
        rating = (await client.get(f"/api/users/{EMPLOYEE}/average-rating")).json()
        assert rating == {"average_rating": 0.0, "total_reviews": 0, "user_address": None}


class TestTipRoutes:
    @pytest.mark.asyncio
    async def test_send_tip(self, tips_client) -> None:
        sender, recipient = Keypair.random().public_key, Keypair.random().public_key

        response = await tips_client.post(
            "/api/tips", json={"from": sender, "to": recipient, "amount": "3", "message": "Nice"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["needs_signing"] is True
        assert body["xdr_data"]["function_name"] == "send_tip"
        assert body["xdr_data"]["from"] == sender
        assert body["xdr_data"]["amount"] == "30000000"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-1"])
    async def test_non_positive_amount_is_400(self, tips_client, amount: str) -> None:
        sender, recipient = Keypair.random().public_key, Keypair.random().public_key
        response = await tips_client.post(
            "/api/tips", json={"from": sender, "to": recipient, "amount": amount}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_self_tip_is_400(self, tips_client) -> None:
        address = Keypair.random().public_key
        response = await tips_client.post("/api/tips", json={"from": address, "to": address, "amount": "1"})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_received_and_total(self, tips_client, tipping_contract) -> None:
        sender, recipient = Keypair.random().public_key, Keypair.random().public_key
        tipping_contract.get_tips_received.return_value = [
            LedgerTip(
                id=1,
                job_id="",
                sender=sender,
                recipient=recipient,
                amount=20_000_000,
                message="Thanks",
                timestamp=1_700_000_000,
            )
        ]
        tipping_contract.get_total_tips_received.return_value = 20_000_000

        received = await tips_client.get(f"/api/tips/received/{recipient}")
        total = await tips_client.get(f"/api/tips/total/{recipient}")

        assert received.status_code == 200
        [tip] = received.json()
        assert (tip["from"], tip["to"], tip["amount"]) == (sender, recipient, "20000000")
        assert total.json() == {"address": recipient, "total": "20000000", "total_amount": "2.0000000"}

    @pytest.mark.asyncio
    async def test_unsigned_submission_is_400(self, tips_client) -> None:
        response = await tips_client.post("/api/tips/submit", json={"signed_xdr": "junk"})
        assert response.status_code == 400
