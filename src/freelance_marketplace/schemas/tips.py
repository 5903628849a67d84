"""Pydantic schemas for the tips API."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class SendTipRequest(BaseModel):
    """Request body for tipping another user; the field names follow the contract."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: str | None = Field(default=None, description="Job the tip is for; omit for a standalone tip")
    sender: str | None = Field(default=None, alias="from", description="Tipper's Stellar public key")
    recipient: str | None = Field(default=None, alias="to", description="Recipient's Stellar public key")
    token: str | None = Field(default=None, description="Token contract id; defaults to the USDC contract")
    amount: Decimal | None = Field(default=None, examples=["5.00"])
    message: str | None = Field(default=None)


class SubmitTipRequest(BaseModel):
    signed_xdr: str | None = Field(default=None, description="Base64 signed send_tip transaction")


class TipPreparedResponse(BaseModel):
    success: bool = True
    needs_signing: bool = True
    message: str = "Tip prepared. Sign it with your wallet and submit it."
    xdr_data: dict


class TipSubmittedResponse(BaseModel):
    success: bool = True
    message: str = "Tip sent successfully"
    hash: str | None
    result: dict


class TipResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    job_id: str
    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")
    amount: str = Field(description="Amount in stroops")
    message: str
    timestamp: int


class TipTotalResponse(BaseModel):
    address: str
    total: str = Field(description="Sum of received tips in stroops")
    total_amount: str
