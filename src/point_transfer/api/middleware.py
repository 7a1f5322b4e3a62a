"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware — injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware — domain exceptions -> structured JSON errors
    3. CORSMiddleware — browser access from the frontend origin
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from point_transfer.domain.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    PointTransferError,
    PostCommitPersistenceError,
    StateConflictError,
    TransferValidationError,
    UpstreamError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

    from point_transfer.config import Settings

logger = structlog.get_logger(__name__)


def _error_response(status_code: int, exc: PointTransferError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": exc.code,
            "message": exc.message,
            "retryable": exc.retryable,
        },
    )


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

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
        except (TransferValidationError, InsufficientBalanceError) as exc:
            logger.info("request.rejected", code=exc.code, error=exc.message)
            return _error_response(400, exc)
        except NotFoundError as exc:
            logger.warning("request.not_found", code=exc.code, error=exc.message)
            return _error_response(404, exc)
        except StateConflictError as exc:
            logger.warning("request.state_conflict", code=exc.code, error=exc.message)
            return _error_response(409, exc)
        except UpstreamError as exc:
            logger.error("request.upstream_failure", code=exc.code, error=exc.message)
            return _error_response(503, exc)
        except PostCommitPersistenceError as exc:
            logger.critical(
                "request.reconciliation_required",
                transfer_id=exc.transfer_id,
                sender_id=exc.sender_id,
                points=exc.points,
            )
            return _error_response(500, exc)
        except PointTransferError as exc:
            logger.error("domain.error", code=exc.code, error=exc.message)
            return _error_response(500, exc)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "retryable": False,
                },
            )


# ---------------------------------------------------------------------------
# 3. Request-level exception handlers
# ---------------------------------------------------------------------------
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Answer malformed request bodies with 400 in the domain error shape."""
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in errors
    )
    logger.info("request.invalid", error=message)
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "VALIDATION_ERROR",
            "message": message or "Invalid request",
            "retryable": False,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": "UNAUTHORIZED" if exc.status_code == 401 else "HTTP_ERROR",
            "message": str(exc.detail),
            "retryable": False,
        },
        headers=exc.headers,
    )


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI application.

    Middleware is applied bottom-up, so the last added runs first.
    """
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-User-ID", "Idempotency-Key"],
    )

    app.add_middleware(ErrorHandlerMiddleware)

    app.add_middleware(RequestIDMiddleware)
