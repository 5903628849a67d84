"""Pydantic schemas for the per-user API: wallets, notifications, conversations, reviews."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AddWalletRequest(BaseModel):
    address: str | None = Field(default=None, description="Stellar public key (G..., 56 chars)")
    label: str | None = Field(default=None, max_length=100)


class WalletResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    address: str
    label: str
    created_at: datetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    message: str
    notification_type: str
    job_id: uuid.UUID | None
    is_read: bool
    created_at: datetime


class MarkReadResponse(BaseModel):
    updated: int


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_a: str
    user_b: str
    job_id: uuid.UUID | None
    created_at: datetime


class MessageItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: str
    body: str
    created_at: datetime


class ReviewResponse(BaseModel):
    id: int
    job_id: str
    reviewer: str
    reviewee: str
    rating: int
    comment: str
    timestamp: int


class AverageRatingResponse(BaseModel):
    average_rating: float
    total_reviews: int
    user_address: str | None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    redis: str = "unknown"
