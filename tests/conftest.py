"""Shared test fixtures for the Freelance Marketplace test suite.

Provides:
    - An in-memory MarketplaceStore and a Horizon double
    - A lifecycle engine wired to both
    - Factory helpers for posting jobs and registering wallets
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from stellar_sdk import Keypair, Network

from freelance_marketplace.infrastructure.database.orm_models import Wallet
from freelance_marketplace.services.escrow_coordinator import EscrowCoordinator
from freelance_marketplace.services.job_lifecycle import JobLifecycleEngine
from freelance_marketplace.services.payment_reservation import PaymentReservationBuilder
from tests.fakes import EMPLOYER, FakeHorizon, FakeMarketplaceStore

# ---------------------------------------------------------------------------
# Infrastructure doubles
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> FakeMarketplaceStore:
    return FakeMarketplaceStore()


@pytest.fixture
def horizon() -> FakeHorizon:
    return FakeHorizon()


@pytest.fixture
def reservations(horizon: FakeHorizon) -> PaymentReservationBuilder:
    return PaymentReservationBuilder(
        horizon,
        network_passphrase=Network.TESTNET_NETWORK_PASSPHRASE,
        network_name="TESTNET",
    )


@pytest.fixture
def engine(store: FakeMarketplaceStore, reservations: PaymentReservationBuilder) -> JobLifecycleEngine:
    """Engine with escrow switched off (the default configuration)."""
    return JobLifecycleEngine(store=store, reservations=reservations, escrow=EscrowCoordinator())


# ---------------------------------------------------------------------------
# Domain Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def employer_address() -> str:
    return Keypair.random().public_key


@pytest.fixture
def employee_address() -> str:
    return Keypair.random().public_key


@pytest.fixture
def register_wallet(store: FakeMarketplaceStore):
    async def _register(user_id: str, address: str | None = None) -> Wallet:
        return await store.wallets.create(
            Wallet(user_id=user_id, address=address or Keypair.random().public_key)
        )

    return _register


@pytest.fixture
def post_job(engine: JobLifecycleEngine):
    async def _post(price: str = "50.00", **overrides):
        data = {
            "employer_id": EMPLOYER,
            "title": "Landing page copy",
            "description": "Write the copy for a product landing page",
            "price": Decimal(price),
            "currency": "XLM",
            "tags": ["copywriting", "marketing"],
        }
        data.update(overrides)
        return await engine.post_job(**data)

    return _post
