"""Job REST API routes.

These endpoints are the HTTP interface to the job lifecycle. The MCP tools in
mcp_server/tools.py call the same engine, so both surfaces share one set of
rules.

Routes:
    GET    /api/jobs                        List jobs (optional ?status=)
    POST   /api/jobs                        Post a job
    POST   /api/jobs/submit-xdr             Submit a signed transaction
    GET    /api/jobs/employer/{user_id}     Jobs posted by an employer
    GET    /api/jobs/employee/{user_id}     Jobs claimed by a freelancer
    GET    /api/jobs/{id}                   Get a job
    GET    /api/jobs/{id}/status            Status + allowed next events
    POST   /api/jobs/{id}/claim             Claim an open job
    POST   /api/jobs/{id}/submit            Submit work
    POST   /api/jobs/{id}/approve           Approve work, get payment to sign
    POST   /api/jobs/{id}/payment           Regenerate payment for a completed job
    POST   /api/jobs/{id}/withdraw          Employer cancels a claimed job
    POST   /api/jobs/{id}/escrow/fund       Employer deposits the price into the escrow
    GET    /api/jobs/{id}/escrow            Escrow state from the escrow API
    POST   /api/jobs/{id}/release           Freelancer withdraws an approved escrow
    POST   /api/jobs/{id}/review            Prepare a review for signing
    DELETE /api/jobs/{id}                   Delete an unclaimed job
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from freelance_marketplace.api.deps import (
    get_lifecycle_engine,
    get_review_settlement,
    get_signing_gateway,
)
from freelance_marketplace.logging_config import get_logger
from freelance_marketplace.schemas.jobs import (
    ApproveJobRequest,
    ClaimJobRequest,
    ClaimResponse,
    CreateJobRequest,
    CreateReviewRequest,
    EffectOutcomeResponse,
    EmployeeActionRequest,
    EmployerActionRequest,
    EscrowDetailsResponse,
    EscrowStepResponse,
    JobCreatedResponse,
    JobResponse,
    JobStatusResponse,
    MessageResponse,
    ReviewPreparedResponse,
    SubmitJobRequest,
    SubmitSignedXdrRequest,
    SubmitSignedXdrResponse,
    SuccessResponse,
)
from freelance_marketplace.services.job_lifecycle import (
    ApprovalOutcome,
    EscrowStep,
    JobLifecycleEngine,
)
from freelance_marketplace.services.review_settlement import ReviewSettlement
from freelance_marketplace.services.signing_gateway import ExternalSigningGateway

router = APIRouter(prefix="/api/jobs", tags=["Jobs"])
logger = get_logger(__name__)


def _approval_response(outcome: ApprovalOutcome, gateway: ExternalSigningGateway) -> dict:
    body = outcome.to_response()
    if outcome.payment is not None:
        body["signing"] = gateway.hand_out(
            outcome.payment.xdr, purpose="payment", job_id=str(outcome.job.id)
        ).to_dict()
    if outcome.escrow_approval is not None:
        body["escrow_signing"] = gateway.hand_out(
            outcome.escrow_approval, purpose="escrow_approval", job_id=str(outcome.job.id)
        ).to_dict()
    return body


def _escrow_step_response(step: EscrowStep, gateway: ExternalSigningGateway) -> EscrowStepResponse:
    return EscrowStepResponse(
        job_id=step.job_id,
        escrow_id=step.escrow_id,
        signing=gateway.hand_out(step.xdr, purpose=step.purpose, job_id=step.job_id).to_dict(),
    )


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("", response_model=list[JobResponse], summary="List jobs")
async def list_jobs(
    status: str | None = Query(default=None, description="Filter by status"),
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> list[JobResponse]:
    jobs = await engine.list_jobs(status)
    return [JobResponse.model_validate(j) for j in jobs]


@router.post("", response_model=JobCreatedResponse, status_code=201, summary="Post a job")
async def create_job(
    request: CreateJobRequest,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> JobCreatedResponse:
    """Create a new job in `open` state."""
    job = await engine.post_job(
        employer_id=request.employer_id,
        title=request.title,
        description=request.description,
        price=request.price,
        currency=request.currency,
        tags=request.tags,
        employer_name=request.employer_name,
    )
    return JobCreatedResponse(job_id=job.id)


# ---------------------------------------------------------------------------
# Signed artifact hand-back (declared before /{job_id} routes)
# ---------------------------------------------------------------------------


@router.post(
    "/submit-xdr",
    response_model=SubmitSignedXdrResponse,
    summary="Submit a signed transaction",
)
async def submit_signed_xdr(
    request: SubmitSignedXdrRequest,
    gateway: ExternalSigningGateway = Depends(get_signing_gateway),
) -> SubmitSignedXdrResponse:
    """Forward a wallet-signed envelope to the network (or the escrow API)."""
    result = await gateway.submit(request.signed_xdr, channel=request.channel)
    return SubmitSignedXdrResponse(hash=result["hash"], result=result["result"])


@router.get(
    "/employer/{user_id}",
    response_model=list[JobResponse],
    summary="Jobs posted by an employer",
)
async def list_employer_jobs(
    user_id: str,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> list[JobResponse]:
    jobs = await engine.list_by_employer(user_id)
    return [JobResponse.model_validate(j) for j in jobs]


@router.get(
    "/employee/{user_id}",
    response_model=list[JobResponse],
    summary="Jobs claimed by a freelancer",
)
async def list_employee_jobs(
    user_id: str,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> list[JobResponse]:
    jobs = await engine.list_by_employee(user_id)
    return [JobResponse.model_validate(j) for j in jobs]


# ---------------------------------------------------------------------------
# Single job
# ---------------------------------------------------------------------------


@router.get("/{job_id}", response_model=JobResponse, summary="Get job details")
async def get_job(
    job_id: str,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> JobResponse:
    return JobResponse.model_validate(await engine.get_job(job_id))


@router.get("/{job_id}/status", response_model=JobStatusResponse, summary="Get job status")
async def get_job_status(
    job_id: str,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> JobStatusResponse:
    """Return the current status and allowed next events."""
    return JobStatusResponse(**await engine.get_status(job_id))


@router.post("/{job_id}/claim", response_model=ClaimResponse, summary="Claim a job")
async def claim_job(
    job_id: str,
    request: ClaimJobRequest,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
    gateway: ExternalSigningGateway = Depends(get_signing_gateway),
) -> ClaimResponse:
    """Claim an open job. Side-effect failures are reported in `effects`."""
    outcome = await engine.claim(job_id, request.employee_id)

    escrow = None
    if outcome.escrow is not None:
        escrow = {
            "escrow_id": outcome.escrow.escrow_id,
            **gateway.hand_out(outcome.escrow.xdr, purpose="escrow", job_id=job_id).to_dict(),
        }
    return ClaimResponse(
        job_id=outcome.job.id,
        effects=[EffectOutcomeResponse(**e.to_dict()) for e in outcome.effects],
        escrow=escrow,
    )


@router.post("/{job_id}/submit", response_model=MessageResponse, summary="Submit work")
async def submit_work(
    job_id: str,
    request: SubmitJobRequest | None = None,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> MessageResponse:
    await engine.submit(job_id, submitter_id=request.employee_id if request else None)
    return MessageResponse(message="Work submitted successfully")


@router.post("/{job_id}/approve", summary="Approve submitted work")
async def approve_work(
    job_id: str,
    request: ApproveJobRequest | None = None,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
    gateway: ExternalSigningGateway = Depends(get_signing_gateway),
) -> dict:
    """Complete the job. With both wallets present the body carries `xdrs.payment`."""
    outcome = await engine.approve(job_id, approver_id=request.employer_id if request else None)
    return _approval_response(outcome, gateway)


@router.post("/{job_id}/payment", summary="Regenerate payment for a completed job")
async def retry_payment(
    job_id: str,
    request: ApproveJobRequest | None = None,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
    gateway: ExternalSigningGateway = Depends(get_signing_gateway),
) -> dict:
    outcome = await engine.retry_payment(job_id, requester_id=request.employer_id if request else None)
    return _approval_response(outcome, gateway)


@router.post("/{job_id}/withdraw", response_model=SuccessResponse, summary="Withdraw a claimed job")
async def withdraw_job(
    job_id: str,
    request: EmployerActionRequest,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> SuccessResponse:
    await engine.withdraw(job_id, request.employer_id)
    return SuccessResponse(message="Job withdrawn successfully")


@router.post(
    "/{job_id}/escrow/fund",
    response_model=EscrowStepResponse,
    summary="Fund the job's escrow",
)
async def fund_escrow(
    job_id: str,
    request: EmployerActionRequest,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
    gateway: ExternalSigningGateway = Depends(get_signing_gateway),
) -> EscrowStepResponse:
    """Unsigned deposit for the employer; submit it signed with channel=escrow."""
    step = await engine.fund_escrow(job_id, request.employer_id)
    return _escrow_step_response(step, gateway)


@router.get("/{job_id}/escrow", response_model=EscrowDetailsResponse, summary="Get escrow state")
async def get_escrow(
    job_id: str,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> EscrowDetailsResponse:
    return EscrowDetailsResponse(**await engine.escrow_details(job_id))


@router.post(
    "/{job_id}/release",
    response_model=EscrowStepResponse,
    summary="Release escrowed funds to the freelancer",
)
async def release_escrow(
    job_id: str,
    request: EmployeeActionRequest,
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
    gateway: ExternalSigningGateway = Depends(get_signing_gateway),
) -> EscrowStepResponse:
    """Unsigned withdrawal for the freelancer once the job is completed."""
    step = await engine.release_escrow(job_id, request.employee_id)
    return _escrow_step_response(step, gateway)


@router.post(
    "/{job_id}/review",
    response_model=ReviewPreparedResponse,
    summary="Prepare a review for signing",
)
async def create_review(
    job_id: str,
    request: CreateReviewRequest,
    reviews: ReviewSettlement = Depends(get_review_settlement),
) -> ReviewPreparedResponse:
    invocation = await reviews.prepare_review(
        job_id=job_id,
        reviewer_id=request.reviewer_id,
        rating=request.rating,
        comment=request.comment,
    )
    return ReviewPreparedResponse(xdr_data=invocation.to_dict())


@router.delete("/{job_id}", response_model=MessageResponse, summary="Delete an unclaimed job")
async def delete_job(
    job_id: str,
    request: EmployerActionRequest | None = None,
    employer_id: str | None = Query(default=None),
    engine: JobLifecycleEngine = Depends(get_lifecycle_engine),
) -> MessageResponse:
    """Hard-delete an open job. The employer id may come in the body or the query."""
    requester = (request.employer_id if request else None) or employer_id
    await engine.delete(job_id, requester)
    return MessageResponse(message="Job deleted successfully")
