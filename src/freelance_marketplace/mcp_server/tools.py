"""MCP Tool definitions for the Freelance Marketplace.

These tools expose the job lifecycle via the Model Context Protocol, so an
agent can browse, claim and complete jobs programmatically.

Tools:
    - list_open_jobs: Browse jobs that can be claimed
    - claim_job: Claim an open job
    - submit_work: Mark claimed work as submitted
    - approve_work: Approve submitted work and get the payment to sign
    - check_job_status: Current status and allowed next events

The MCP server is mounted into FastAPI at /mcp via app.mount().
Each tool opens its own unit of work (no FastAPI Depends available).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from freelance_marketplace.api.deps import build_lifecycle_engine
from freelance_marketplace.domain.exceptions import MarketplaceError
from freelance_marketplace.infrastructure.clients import (
    get_escrow_api_client,
    get_horizon_client,
)
from freelance_marketplace.infrastructure.database.engine import session_scope
from freelance_marketplace.infrastructure.database.repositories import SqlMarketplaceStore
from freelance_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from freelance_marketplace.services.job_lifecycle import JobLifecycleEngine

logger = get_logger(__name__)

# Initialize the MCP server
# This will be mounted into the FastAPI app in main.py
mcp = FastMCP(
    "Freelance Marketplace",
    json_response=True,
)


@asynccontextmanager
async def _lifecycle_engine() -> AsyncIterator[JobLifecycleEngine]:
    async with session_scope() as session:
        yield build_lifecycle_engine(
            SqlMarketplaceStore(session),
            get_horizon_client(),
            get_escrow_api_client(),
        )


def _error_result(tool: str, exc: Exception) -> dict:
    if isinstance(exc, MarketplaceError):
        logger.info(f"mcp.{tool}.rejected", code=exc.code, error=exc.message)
        return {"error": exc.code, "message": exc.message}
    logger.exception(f"mcp.{tool}.error")
    return {"error": "INTERNAL_ERROR", "message": str(exc)}


@mcp.tool()
async def list_open_jobs(tag: str = "") -> dict:
    """List jobs that are open for claiming.

    Args:
        tag: Only return jobs carrying this tag (optional).

    Returns:
        The open jobs with id, title, price and tags.
    """
    try:
        async with _lifecycle_engine() as engine:
            jobs = await engine.list_jobs("open")
            if tag:
                jobs = [j for j in jobs if tag in (j.tags or [])]
            return {
                "jobs": [
                    {
                        "job_id": str(j.id),
                        "title": j.title,
                        "description": j.description,
                        "price": str(j.price),
                        "currency": j.currency,
                        "tags": j.tags,
                        "employer_id": j.employer_id,
                    }
                    for j in jobs
                ],
                "count": len(jobs),
            }
    except Exception as exc:
        return _error_result("list_open_jobs", exc)


@mcp.tool()
async def claim_job(job_id: str, employee_id: str) -> dict:
    """Claim an open job.

    Args:
        job_id: UUID of the job.
        employee_id: Your user id.

    Returns:
        The claimed job and the outcome of each follow-up step
        (payment reservation, escrow, notification, conversation).
    """
    try:
        async with _lifecycle_engine() as engine:
            outcome = await engine.claim(job_id, employee_id)
            return {
                "job_id": str(outcome.job.id),
                "status": outcome.job.status,
                "effects": [e.to_dict() for e in outcome.effects],
                "message": "Job claimed. Submit your work when ready.",
            }
    except Exception as exc:
        return _error_result("claim_job", exc)


@mcp.tool()
async def submit_work(job_id: str, employee_id: str = "") -> dict:
    """Mark a claimed job as submitted for the employer's review.

    Args:
        job_id: UUID of the job.
        employee_id: Your user id (checked against the job when given).
    """
    try:
        async with _lifecycle_engine() as engine:
            job = await engine.submit(job_id, submitter_id=employee_id or None)
            return {
                "job_id": str(job.id),
                "status": job.status,
                "message": "Work submitted. Waiting for employer approval.",
            }
    except Exception as exc:
        return _error_result("submit_work", exc)


@mcp.tool()
async def approve_work(job_id: str, employer_id: str = "") -> dict:
    """Approve submitted work.

    Args:
        job_id: UUID of the job.
        employer_id: Your user id (checked against the job when given).

    Returns:
        When both parties have wallets: the unsigned payment XDR to sign with
        the employer's wallet, plus amount/from/to/network.
    """
    try:
        async with _lifecycle_engine() as engine:
            outcome = await engine.approve(job_id, approver_id=employer_id or None)
            return {"job_id": str(outcome.job.id), **outcome.to_response()}
    except Exception as exc:
        return _error_result("approve_work", exc)


@mcp.tool()
async def check_job_status(job_id: str) -> dict:
    """Check the current status of a job.

    Args:
        job_id: UUID of the job.

    Returns:
        Current status and the events allowed next.
    """
    try:
        async with _lifecycle_engine() as engine:
            return await engine.get_status(job_id)
    except Exception as exc:
        return _error_result("check_job_status", exc)
