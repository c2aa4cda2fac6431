"""
Error Types
===========

A single exception hierarchy shared by the stores, the HTTP routes and the
realtime gateway. Each error carries a ``kind`` (reported to socket clients)
and an HTTP status (used by the FastAPI exception handlers).
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("chatserver.errors")


class ChatError(Exception):
    """Base class for every error the service reports to a client."""

    kind: str = "Internal"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, partial: Any = None):
        super().__init__(message)
        self.message = message
        # Whatever was loaded before the failure, for callers that want it.
        self.partial = partial

    def to_frame(self) -> Dict[str, Any]:
        """Structured error frame written back to the originating socket."""
        return {
            "status": "error",
            "kind": self.kind,
            "message": self.message,
        }

    def to_response_body(self, service: Optional[str] = None) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "httpStatusCode": self.status_code,
            "error": self.kind,
            "service": service,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class BadInput(ChatError):
    """Malformed frame, body or identifier."""

    kind = "BadInput"
    status_code = status.HTTP_400_BAD_REQUEST


class BadRequest(ChatError):
    """Well-formed request that cannot be honoured."""

    kind = "BadRequest"
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(ChatError):
    kind = "Unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFound(ChatError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ChatError):
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT


class Internal(ChatError):
    kind = "Internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# =============================================================================
# FastAPI Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI, service_name: str) -> None:
    """
    Map service errors to the unified JSON error body.

    Args:
        app: Application to install the handlers on
        service_name: Reported in the ``service`` field of every error body
    """

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                f"Request failed: {exc.message}",
                extra={"path": request.url.path, "kind": exc.kind},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response_body(service_name),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = BadInput("Invalid request data")
        body = error.to_response_body(service_name)
        body["details"] = [
            {"loc": list(item.get("loc", ())), "msg": item.get("msg")}
            for item in exc.errors()
        ]
        return JSONResponse(status_code=error.status_code, content=body)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )
        error = Internal("Internal Server Error")
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_response_body(service_name),
        )
