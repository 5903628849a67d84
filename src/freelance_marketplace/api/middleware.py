"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware — injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware — catches domain exceptions -> structured JSON errors
    3. CORSMiddleware — the browser client calls the API cross-origin

Every error body has the same shape: {"error": <code>, "message": <text>}.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from freelance_marketplace.config import get_settings
from freelance_marketplace.domain.exceptions import (
    AuthorizationError,
    ConflictError,
    DuplicateOperationError,
    InvalidStateTransitionError,
    MarketplaceError,
    NotFoundError,
    PaymentGenerationError,
    SettlementError,
    ValidationError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)


def _error(status_code: int, code: str, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": code, "message": message, **extra},
    )


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Use client-provided ID or generate one
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        # Bind to structlog context for all log entries in this request
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except ValidationError as exc:
            logger.info("request.invalid", error=exc.message, field=exc.field)
            return _error(400, exc.code, exc.message)
        except NotFoundError as exc:
            logger.info("resource.not_found", error=exc.message, code=exc.code)
            return _error(404, exc.code, exc.message)
        except InvalidStateTransitionError as exc:
            logger.warning(
                "state_machine.invalid_transition",
                current=exc.current_state,
                attempted=exc.attempted_event,
            )
            return _error(400, exc.code, exc.message)
        except ConflictError as exc:
            logger.warning("job.conflict", error=exc.message, code=exc.code)
            return _error(400, exc.code, exc.message)
        except AuthorizationError as exc:
            logger.warning("request.forbidden", error=exc.message)
            return _error(403, exc.code, exc.message)
        except DuplicateOperationError as exc:
            logger.warning("idempotency.duplicate", error=exc.message)
            return _error(409, exc.code, exc.message)
        except PaymentGenerationError as exc:
            logger.error("payment.generation_error", job_id=exc.job_id, reason=exc.reason)
            return _error(500, exc.code, exc.message, job_id=exc.job_id)
        except SettlementError as exc:
            logger.error("settlement.error", error=exc.message, result_codes=exc.result_codes)
            return _error(500, exc.code, exc.message, result_codes=exc.result_codes)
        except MarketplaceError as exc:
            logger.error("domain.error", error=exc.message, code=exc.code)
            return _error(400, exc.code, exc.message)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return _error(500, "INTERNAL_ERROR", "An unexpected error occurred")


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters are a 400 like any other validation failure."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    logger.info("request.invalid", error=message)
    return _error(400, "VALIDATION_ERROR", message)


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware on the FastAPI application.

    Middleware is applied bottom-up: the last one added runs first.
    """
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # CORS (runs first)
    origins = get_settings().cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handling (runs second)
    app.add_middleware(ErrorHandlerMiddleware)

    # Request ID (runs last = outermost)
    app.add_middleware(RequestIDMiddleware)
