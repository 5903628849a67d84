"""Stellar network clients — Horizon and Soroban RPC."""

from freelance_marketplace.infrastructure.stellar.horizon import (
    AccountNotFoundError,
    HorizonClient,
    HorizonError,
)
from freelance_marketplace.infrastructure.stellar.soroban import (
    LedgerReview,
    ReviewsContractClient,
    SorobanRpcClient,
    SorobanRpcError,
)

__all__ = [
    "AccountNotFoundError",
    "HorizonClient",
    "HorizonError",
    "LedgerReview",
    "ReviewsContractClient",
    "SorobanRpcClient",
    "SorobanRpcError",
]
