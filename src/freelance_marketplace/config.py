"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup, so a malformed value fails fast with a clear error message.

Usage:
    from freelance_marketplace.config import get_settings
    settings = get_settings()
    print(settings.horizon_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Freelance Marketplace service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_version: str = "0.1.0"
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 3002

    # --- Database (PostgreSQL) ---
    database_url: str = (
        "postgresql+asyncpg://marketplace:marketplace_dev"
        "@localhost:5432/freelance_marketplace"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"
    redis_idempotency_ttl_seconds: int = 86400  # 24 hours

    # --- Stellar / Horizon ---
    horizon_url: str = "https://horizon-testnet.stellar.org"
    stellar_network_passphrase: str = "Test SDF Network ; September 2015"
    stellar_network_name: str = "TESTNET"
    stellar_base_fee: int = 100
    payment_timeout_seconds: int = 300
    # Issuer of the USDC credit asset (Circle testnet); empty disables USDC jobs
    usdc_asset_issuer: str = "GBBD47IF6LWK7P7MDEVSCWR7DPUWV3NY3DTQEVFL4NAT4AQH3ZLLFLA5"

    # --- Soroban RPC / reviews contract ---
    soroban_rpc_url: str = "https://soroban-testnet.stellar.org"
    reviews_contract_id: str = ""
    tipping_contract_id: str = ""

    # --- Escrow API (Trustless Work) ---
    escrow_enabled: bool = False
    escrow_api_url: str = "https://api.trustlesswork.com"
    escrow_api_key: str = ""
    escrow_token_contract: str = "CDLZFC3SYJYDZT7K67VZ75HPJVIEUVNIXF47ZG2FB2RMQQVU2HHGCYSC"
    escrow_dispute_resolver: str = ""
    escrow_deadline_days: int = 30

    # --- Outbound HTTP ---
    http_timeout_seconds: float = 15.0

    # --- CORS (the wallet UI runs on its own origin) ---
    cors_origins: list[str] = ["*"]

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def escrow_configured(self) -> bool:
        """Escrow creation runs only when switched on and an API key is present."""
        return self.escrow_enabled and bool(self.escrow_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
