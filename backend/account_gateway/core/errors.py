"""
Gateway exceptions and their JSON rendering.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised at startup when the gateway configuration is invalid."""


class GatewayError(Exception):
    """
    An error that maps directly onto an HTTP response.

    The JSON body always carries ``ok: false`` and ``statusCode``; ``code``
    and ``error`` are included only when set.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        error: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.error = error

    def with_defaults(
        self,
        status_code: int,
        message: Optional[str] = None,
        error: Optional[str] = None,
    ) -> "GatewayError":
        """Fill in whatever the raiser left unset."""
        self.status_code = self.status_code or status_code
        self.message = self.message or message
        self.error = self.error or error
        return self

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "ok": False,
            "statusCode": self.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
            "message": self.message,
        }
        if self.code:
            body["code"] = self.code
        if self.error:
            body["error"] = self.error
        return body


class StoreError(GatewayError):
    """A failure reported by the document store."""

    def __init__(self, status_code: int, error: str, reason: str):
        super().__init__(message=reason, status_code=status_code, error=error)


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render a GatewayError as the gateway's JSON error body."""
    body = exc.to_dict()
    if body["statusCode"] >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=body["statusCode"], content=body)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body validation failures as a 400 gateway error."""
    errors = exc.errors()
    message = "Invalid request body."
    if errors:
        first = errors[0]
        field = ".".join(part for part in first.get("loc", ()) if isinstance(part, str) and part != "body")
        message = f"Invalid value for {field}: {first.get('msg')}" if field else first.get("msg", message)
    error = GatewayError(message, status.HTTP_400_BAD_REQUEST, code="invalid_params")
    return await gateway_error_handler(request, error)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the gateway error handlers on an application."""
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
