"""Database infrastructure — engine, ORM models, and repositories."""

from freelance_marketplace.infrastructure.database.engine import (
    close_db,
    get_async_session,
    init_db,
)
from freelance_marketplace.infrastructure.database.orm_models import (
    Base,
    Conversation,
    Job,
    Message,
    Notification,
    Wallet,
)
from freelance_marketplace.infrastructure.database.repositories import (
    SqlConversationRepository,
    SqlJobRepository,
    SqlMarketplaceStore,
    SqlNotificationRepository,
    SqlWalletRepository,
)

__all__ = [
    "Base",
    "Conversation",
    "Job",
    "Message",
    "Notification",
    "Wallet",
    "SqlConversationRepository",
    "SqlJobRepository",
    "SqlMarketplaceStore",
    "SqlNotificationRepository",
    "SqlWalletRepository",
    "get_async_session",
    "init_db",
    "close_db",
]
