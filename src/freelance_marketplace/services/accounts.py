"""Wallets, notifications and conversations for a user.

Plain CRUD around the store. The lifecycle engine only reads wallets and
writes notifications/conversations as side effects; these services are what
the /users routes use.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from stellar_sdk import StrKey

from freelance_marketplace.domain.exceptions import (
    ConflictError,
    ConversationNotFoundError,
    ValidationError,
    WalletNotFoundError,
)
from freelance_marketplace.infrastructure.database.orm_models import Wallet
from freelance_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from freelance_marketplace.domain.repositories import MarketplaceStore
    from freelance_marketplace.infrastructure.database.orm_models import (
        Conversation,
        Message,
        Notification,
    )

logger = get_logger(__name__)

MAX_LABEL_LENGTH = 100


class WalletService:
    def __init__(self, store: MarketplaceStore) -> None:
        self._store = store

    async def list_wallets(self, user_id: str) -> list[Wallet]:
        return await self._store.wallets.list_for_user(user_id)

    async def add_wallet(self, user_id: str, address: str | None, label: str | None = None) -> Wallet:
        """Register a Stellar account (G...) for the user."""
        address = (address or "").strip()
        if not StrKey.is_valid_ed25519_public_key(address):
            raise ValidationError("address must be a Stellar public key (G...)", field="address")
        label = (label or "").strip()
        if len(label) > MAX_LABEL_LENGTH:
            raise ValidationError(f"label must be at most {MAX_LABEL_LENGTH} characters", field="label")

        existing = await self._store.wallets.list_for_user(user_id)
        if any(w.address == address for w in existing):
            raise ConflictError("Wallet already registered", code="WALLET_EXISTS")

        wallet = await self._store.wallets.create(Wallet(user_id=user_id, address=address, label=label))
        await self._store.commit()
        logger.info("wallet.added", user_id=user_id, wallet_id=str(wallet.id))
        return wallet

    async def remove_wallet(self, user_id: str, wallet_id: str) -> None:
        try:
            wallet_uuid = uuid.UUID(str(wallet_id))
        except ValueError as err:
            raise ValidationError("Invalid wallet id", field="wallet_id") from err
        if not await self._store.wallets.delete(user_id, wallet_uuid):
            raise WalletNotFoundError(str(wallet_id))
        await self._store.commit()
        logger.info("wallet.removed", user_id=user_id, wallet_id=str(wallet_uuid))


class NotificationService:
    def __init__(self, store: MarketplaceStore) -> None:
        self._store = store

    async def list_notifications(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        return await self._store.notifications.list_for_user(user_id, unread_only=unread_only)

    async def mark_all_read(self, user_id: str) -> int:
        updated = await self._store.notifications.mark_all_read(user_id)
        await self._store.commit()
        logger.info("notification.marked_read", user_id=user_id, updated=updated)
        return updated


class ConversationService:
    def __init__(self, store: MarketplaceStore) -> None:
        self._store = store

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        return await self._store.conversations.list_for_user(user_id)

    async def list_messages(self, conversation_id: str) -> list[Message]:
        try:
            conversation_uuid = uuid.UUID(str(conversation_id))
        except ValueError as err:
            raise ConversationNotFoundError(str(conversation_id)) from err
        if await self._store.conversations.get_by_id(conversation_uuid) is None:
            raise ConversationNotFoundError(str(conversation_id))
        return await self._store.conversations.list_messages(conversation_uuid)
