"""Pydantic schemas for the jobs API.

These schemas define the request/response shapes for the REST API and MCP
tools. They are separate from the ORM models to keep the API and database
layers apart. Business validation (identity format, price, currency) lives in
the lifecycle engine; the schemas only pin down types.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from freelance_marketplace.domain.enums import SettlementChannel

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateJobRequest(BaseModel):
    """Request body for posting a job."""

    employer_id: str | None = Field(default=None, description="Identity of the posting employer")
    employer_name: str | None = Field(default=None, max_length=255)
    title: str | None = Field(default=None, examples=["Landing page copy"])
    description: str | None = Field(default=None)
    price: Decimal | None = Field(default=None, description="Price in `currency` units", examples=["50.00"])
    currency: str | None = Field(default=None, examples=["XLM"])
    tags: list[str] | str | None = Field(
        default=None,
        description="List of tags or a comma-separated string; duplicates are dropped",
    )


class ClaimJobRequest(BaseModel):
    employee_id: str | None = Field(default=None, description="Identity of the claiming freelancer")


class SubmitJobRequest(BaseModel):
    employee_id: str | None = Field(
        default=None,
        description="When given, must match the job's freelancer",
    )


class ApproveJobRequest(BaseModel):
    employer_id: str | None = Field(
        default=None,
        description="When given, must match the job's employer",
    )


class EmployerActionRequest(BaseModel):
    """Body for withdraw and delete: the requesting employer."""

    employer_id: str | None = None


class EmployeeActionRequest(BaseModel):
    """Body for escrow release: the requesting freelancer."""

    employee_id: str | None = None


class SubmitSignedXdrRequest(BaseModel):
    signed_xdr: str | None = Field(default=None, description="Base64 signed transaction envelope")
    channel: SettlementChannel = Field(
        default=SettlementChannel.NETWORK,
        description="'network' submits to Horizon; 'escrow' goes through the escrow API",
    )


class CreateReviewRequest(BaseModel):
    reviewer_id: str | None = None
    rating: int = Field(..., description="Whole stars, 1 to 5")
    comment: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class JobResponse(BaseModel):
    """Response schema for a job."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employer_id: str
    employer_name: str | None
    employee_id: str | None
    title: str
    description: str
    tags: list[str]
    price: Decimal
    currency: str
    status: str
    escrow_id: str | None
    payment_reservation: str | None
    created_at: datetime
    updated_at: datetime


class JobCreatedResponse(BaseModel):
    job_id: uuid.UUID
    message: str = "Job created successfully"


class EffectOutcomeResponse(BaseModel):
    name: str
    status: str
    detail: str | None = None
    error: str | None = None


class ClaimResponse(BaseModel):
    message: str = "Job claimed successfully"
    job_id: uuid.UUID
    effects: list[EffectOutcomeResponse]
    escrow: dict | None = Field(
        default=None,
        description="Unsigned escrow deployment for the client to sign, when escrow is enabled",
    )


class MessageResponse(BaseModel):
    message: str


class SuccessResponse(BaseModel):
    success: bool = True
    message: str


class JobStatusResponse(BaseModel):
    """Lightweight status check response."""

    job_id: uuid.UUID
    status: str
    employee_id: str | None
    has_payment_reservation: bool
    escrow_id: str | None
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )


class SubmitSignedXdrResponse(BaseModel):
    success: bool = True
    hash: str | None
    result: dict


class ReviewPreparedResponse(BaseModel):
    success: bool = True
    needs_signing: bool = True
    xdr_data: dict


class EscrowStepResponse(BaseModel):
    """An escrow fund or release transaction waiting for a wallet signature."""

    success: bool = True
    job_id: uuid.UUID
    escrow_id: str
    signing: dict = Field(description="Unsigned XDR plus network details for the wallet")


class EscrowDetailsResponse(BaseModel):
    job_id: uuid.UUID
    escrow_id: str
    escrow: dict
