"""Shared outbound HTTP clients (Horizon, Soroban RPC, escrow API).

One httpx connection pool per upstream for the whole process, created on
first use and closed from the app lifespan. REST dependencies and MCP tools
both go through these getters.
"""

from __future__ import annotations

from freelance_marketplace.config import get_settings
from freelance_marketplace.infrastructure.escrow_api import EscrowApiClient
from freelance_marketplace.infrastructure.stellar.horizon import HorizonClient
from freelance_marketplace.infrastructure.stellar.soroban import (
    ReviewsContractClient,
    SorobanRpcClient,
    TippingContractClient,
)
from freelance_marketplace.logging_config import get_logger

logger = get_logger(__name__)

_horizon: HorizonClient | None = None
_soroban: SorobanRpcClient | None = None
_escrow_api: EscrowApiClient | None = None


def get_horizon_client() -> HorizonClient:
    global _horizon
    if _horizon is None:
        _horizon = HorizonClient()
    return _horizon


def _get_soroban() -> SorobanRpcClient:
    global _soroban
    if _soroban is None:
        _soroban = SorobanRpcClient()
    return _soroban


def get_escrow_api_client() -> EscrowApiClient | None:
    """The escrow API client, or None when escrow is not configured."""
    global _escrow_api
    if not get_settings().escrow_configured:
        return None
    if _escrow_api is None:
        _escrow_api = EscrowApiClient()
    return _escrow_api


def get_reviews_client() -> ReviewsContractClient | None:
    """The reviews contract reader, or None when no contract id is set."""
    contract_id = get_settings().reviews_contract_id
    if not contract_id:
        return None
    return ReviewsContractClient(_get_soroban(), contract_id)


def get_tipping_client() -> TippingContractClient | None:
    """The tipping contract reader, or None when no contract id is set."""
    contract_id = get_settings().tipping_contract_id
    if not contract_id:
        return None
    return TippingContractClient(_get_soroban(), contract_id)


async def close_clients() -> None:
    """Close every client that was opened. Called during app shutdown."""
    global _horizon, _soroban, _escrow_api
    for client in (_horizon, _soroban, _escrow_api):
        if client is not None:
            await client.aclose()
    _horizon = _soroban = _escrow_api = None
    logger.info("http_clients.closed")
