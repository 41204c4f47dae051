"""HTTP-level failures raised before a request reaches the sandbox.

A program that fails to compile, crashes or runs out of time is not an
error here; it comes back as an ``ExecutionResult`` with a 200. These
exceptions cover the gatekeeping around execution: a missing token,
admission rejections and a switched-off sandbox.

    raise TooManyRequestsError(detail="Rate limit exceeded", caller="alice")

``register_exception_handlers(app)`` renders any of them as an
``ErrorResponse`` body with the matching status code.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    error: str
    detail: str | None = None
    context: dict[str, Any] | None = None


class APIError(Exception):
    status_code: int = 500
    error: str = "internal_error"
    detail: str = "Internal server error"

    def __init__(self, detail: str | None = None, **context: Any) -> None:
        self.detail = detail or type(self).detail
        self.context = context or None
        super().__init__(self.detail)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.error, detail=self.detail, context=self.context)


class UnauthorizedError(APIError):
    """401: missing or wrong bearer token."""

    status_code = 401
    error = "unauthorized"
    detail = "Authentication required"


class TooManyRequestsError(APIError):
    """429: caller over its rate limit, or no execution slot free."""

    status_code = 429
    error = "rate_limited"
    detail = "Too many executions"


class ServiceUnavailableError(APIError):
    """503: sandbox disabled or not started."""

    status_code = 503
    error = "service_unavailable"
    detail = "Execution service unavailable"


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.warning("%s %s rejected with %d: %s", request.method, request.url.path, exc.status_code, exc.detail)
    body = exc.to_response().model_dump(exclude_none=True)
    return JSONResponse(status_code=exc.status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
