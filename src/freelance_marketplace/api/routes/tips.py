"""Tip REST API routes.

Routes:
    POST /api/tips                       Prepare a send_tip invocation to sign
    POST /api/tips/submit                Submit the signed tip transaction
    GET  /api/tips/received/{address}    Tips received by an account
    GET  /api/tips/total/{address}       Total tips received, in stroops
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from freelance_marketplace.api.deps import get_signing_gateway, get_tip_service
from freelance_marketplace.schemas.tips import (
    SendTipRequest,
    SubmitTipRequest,
    TipPreparedResponse,
    TipResponse,
    TipSubmittedResponse,
    TipTotalResponse,
)
from freelance_marketplace.services.signing_gateway import ExternalSigningGateway
from freelance_marketplace.services.tips import TipService

router = APIRouter(prefix="/api/tips", tags=["Tips"])


@router.post("", response_model=TipPreparedResponse, summary="Prepare a tip for signing")
async def send_tip(
    request: SendTipRequest,
    tips: TipService = Depends(get_tip_service),
) -> TipPreparedResponse:
    invocation = await tips.prepare_tip(
        sender=request.sender,
        recipient=request.recipient,
        amount=request.amount,
        token=request.token,
        job_id=request.job_id,
        message=request.message,
    )
    return TipPreparedResponse(xdr_data=invocation.to_dict())


@router.post("/submit", response_model=TipSubmittedResponse, summary="Submit a signed tip")
async def submit_tip(
    request: SubmitTipRequest,
    gateway: ExternalSigningGateway = Depends(get_signing_gateway),
) -> TipSubmittedResponse:
    result = await gateway.submit(request.signed_xdr)
    return TipSubmittedResponse(hash=result["hash"], result=result["result"])


@router.get("/received/{address}", response_model=list[TipResponse], summary="Tips received")
async def tips_received(
    address: str,
    tips: TipService = Depends(get_tip_service),
) -> list[TipResponse]:
    return [
        TipResponse(
            id=tip.id,
            job_id=tip.job_id,
            sender=tip.sender,
            recipient=tip.recipient,
            amount=str(tip.amount),
            message=tip.message,
            timestamp=tip.timestamp,
        )
        for tip in await tips.tips_received(address)
    ]


@router.get("/total/{address}", response_model=TipTotalResponse, summary="Total tips received")
async def total_tips(
    address: str,
    tips: TipService = Depends(get_tip_service),
) -> TipTotalResponse:
    return TipTotalResponse(**await tips.total_received(address))
