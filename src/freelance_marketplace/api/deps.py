"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject the database
session, the marketplace store and the services built on it.
Tests override get_store (and the client getters) with in-memory fakes.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from freelance_marketplace.domain.repositories import MarketplaceStore
from freelance_marketplace.infrastructure.clients import (
    get_escrow_api_client,
    get_horizon_client,
    get_reviews_client,
    get_tipping_client,
)
from freelance_marketplace.infrastructure.database.engine import get_async_session
from freelance_marketplace.infrastructure.database.repositories import SqlMarketplaceStore
from freelance_marketplace.infrastructure.escrow_api import EscrowApiClient
from freelance_marketplace.infrastructure.redis_client import get_redis_or_none
from freelance_marketplace.infrastructure.stellar.horizon import HorizonClient
from freelance_marketplace.infrastructure.stellar.soroban import (
    ReviewsContractClient,
    TippingContractClient,
)
from freelance_marketplace.services.accounts import (
    ConversationService,
    NotificationService,
    WalletService,
)
from freelance_marketplace.services.escrow_coordinator import EscrowCoordinator
from freelance_marketplace.services.job_lifecycle import JobLifecycleEngine
from freelance_marketplace.services.payment_reservation import PaymentReservationBuilder
from freelance_marketplace.services.review_settlement import ReviewSettlement
from freelance_marketplace.services.signing_gateway import ExternalSigningGateway
from freelance_marketplace.services.tips import TipService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


async def get_store(
    session: AsyncSession = Depends(get_db_session),
) -> MarketplaceStore:
    """Provide the marketplace store bound to the current session."""
    return SqlMarketplaceStore(session)


def get_redis_client() -> aioredis.Redis | None:
    """Provide the Redis client, or None if it was unavailable at startup."""
    return get_redis_or_none()


def build_lifecycle_engine(
    store: MarketplaceStore,
    horizon: HorizonClient,
    escrow_api: EscrowApiClient | None,
) -> JobLifecycleEngine:
    return JobLifecycleEngine(
        store=store,
        reservations=PaymentReservationBuilder(horizon),
        escrow=EscrowCoordinator(client=escrow_api),
    )


async def get_lifecycle_engine(
    store: MarketplaceStore = Depends(get_store),
    horizon: HorizonClient = Depends(get_horizon_client),
    escrow_api: EscrowApiClient | None = Depends(get_escrow_api_client),
) -> JobLifecycleEngine:
    return build_lifecycle_engine(store, horizon, escrow_api)


async def get_review_settlement(
    store: MarketplaceStore = Depends(get_store),
    reviews: ReviewsContractClient | None = Depends(get_reviews_client),
) -> ReviewSettlement:
    return ReviewSettlement(store, reviews)


async def get_tip_service(
    store: MarketplaceStore = Depends(get_store),
    tips: TippingContractClient | None = Depends(get_tipping_client),
) -> TipService:
    return TipService(store, tips)


def get_signing_gateway(
    horizon: HorizonClient = Depends(get_horizon_client),
    escrow_api: EscrowApiClient | None = Depends(get_escrow_api_client),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> ExternalSigningGateway:
    return ExternalSigningGateway(horizon=horizon, escrow_api=escrow_api, redis=redis)


async def get_wallet_service(store: MarketplaceStore = Depends(get_store)) -> WalletService:
    return WalletService(store)


async def get_notification_service(
    store: MarketplaceStore = Depends(get_store),
) -> NotificationService:
    return NotificationService(store)


async def get_conversation_service(
    store: MarketplaceStore = Depends(get_store),
) -> ConversationService:
    return ConversationService(store)
