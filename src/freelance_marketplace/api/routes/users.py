"""Per-user REST API routes.

Routes:
    GET    /api/users/{id}/reviews                  — Reviews received (on-chain)
    GET    /api/users/{id}/average-rating           — Average of those reviews
    GET    /api/users/{id}/wallets                  — Registered wallets
    POST   /api/users/{id}/wallets                  — Register a wallet
    DELETE /api/users/{id}/wallets/{wallet_id}      — Remove a wallet
    GET    /api/users/{id}/notifications            — Notifications (?unread_only=)
    POST   /api/users/{id}/notifications/read       — Mark all as read
    GET    /api/users/{id}/conversations            — Conversations of the user
    GET    /api/conversations/{id}/messages         — Messages in a conversation
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from freelance_marketplace.api.deps import (
    get_conversation_service,
    get_notification_service,
    get_review_settlement,
    get_wallet_service,
)
from freelance_marketplace.schemas.jobs import MessageResponse
from freelance_marketplace.schemas.users import (
    AddWalletRequest,
    AverageRatingResponse,
    ConversationResponse,
    MarkReadResponse,
    MessageItemResponse,
    NotificationResponse,
    ReviewResponse,
    WalletResponse,
)
from freelance_marketplace.services.accounts import (
    ConversationService,
    NotificationService,
    WalletService,
)
from freelance_marketplace.services.review_settlement import ReviewSettlement

router = APIRouter(prefix="/api", tags=["Users"])


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/reviews", response_model=list[ReviewResponse])
async def get_user_reviews(
    user_id: str,
    reviews: ReviewSettlement = Depends(get_review_settlement),
) -> list[ReviewResponse]:
    """Empty when the user has no wallet or no reviews contract is configured."""
    return [ReviewResponse(**r.to_dict()) for r in await reviews.user_reviews(user_id)]


@router.get("/users/{user_id}/average-rating", response_model=AverageRatingResponse)
async def get_average_rating(
    user_id: str,
    reviews: ReviewSettlement = Depends(get_review_settlement),
) -> AverageRatingResponse:
    return AverageRatingResponse(**await reviews.average_rating(user_id))


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/wallets", response_model=list[WalletResponse])
async def list_wallets(
    user_id: str,
    wallets: WalletService = Depends(get_wallet_service),
) -> list[WalletResponse]:
    return [WalletResponse.model_validate(w) for w in await wallets.list_wallets(user_id)]


@router.post("/users/{user_id}/wallets", response_model=WalletResponse, status_code=201)
async def add_wallet(
    user_id: str,
    request: AddWalletRequest,
    wallets: WalletService = Depends(get_wallet_service),
) -> WalletResponse:
    wallet = await wallets.add_wallet(user_id, request.address, request.label)
    return WalletResponse.model_validate(wallet)


@router.delete("/users/{user_id}/wallets/{wallet_id}", response_model=MessageResponse)
async def remove_wallet(
    user_id: str,
    wallet_id: str,
    wallets: WalletService = Depends(get_wallet_service),
) -> MessageResponse:
    await wallets.remove_wallet(user_id, wallet_id)
    return MessageResponse(message="Wallet removed")


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    user_id: str,
    unread_only: bool = Query(default=False),
    notifications: NotificationService = Depends(get_notification_service),
) -> list[NotificationResponse]:
    items = await notifications.list_notifications(user_id, unread_only=unread_only)
    return [NotificationResponse.model_validate(n) for n in items]


@router.post("/users/{user_id}/notifications/read", response_model=MarkReadResponse)
async def mark_notifications_read(
    user_id: str,
    notifications: NotificationService = Depends(get_notification_service),
) -> MarkReadResponse:
    return MarkReadResponse(updated=await notifications.mark_all_read(user_id))


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    user_id: str,
    conversations: ConversationService = Depends(get_conversation_service),
) -> list[ConversationResponse]:
    items = await conversations.list_conversations(user_id)
    return [ConversationResponse.model_validate(c) for c in items]


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[MessageItemResponse],
)
async def list_messages(
    conversation_id: str,
    conversations: ConversationService = Depends(get_conversation_service),
) -> list[MessageItemResponse]:
    items = await conversations.list_messages(conversation_id)
    return [MessageItemResponse.model_validate(m) for m in items]
