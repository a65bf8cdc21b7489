from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hypixel_gateway.core.errors import GatewayError, RateLimitedError


class ErrorEnvelope(BaseModel):
    """The only failure shape ever returned to clients."""

    success: bool = False
    cause: str


def ok(payload: Any) -> JSONResponse:
    """Pass the upstream payload through unchanged."""
    return JSONResponse(status_code=200, content=payload)


def error_response(exc: GatewayError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorEnvelope(cause=exc.cause).model_dump(),
        headers=headers,
    )
