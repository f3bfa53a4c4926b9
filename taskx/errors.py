"""Domain errors and their HTTP rendering.

Calendar and reminder code raises these; route handlers let them propagate
and the handlers registered here turn them into the JSON envelope the web
client understands::

    {"error": "Google Calendar not connected", "needsIntegration": true}

Status code mapping:
- ``Unauthorized`` -> 401
- ``NotFound`` -> 404
- ``IntegrationNotConnected`` -> 400 (needsIntegration)
- ``AuthExpired`` -> 401 (needsIntegration)
- ``IntegrationError`` -> 400
- ``UpstreamError`` -> 502 (raw provider message in ``details``)
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TaskXError(Exception):
    status_code = 500
    needs_integration = False

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        if self.needs_integration:
            payload["needsIntegration"] = True
        return payload


class Unauthorized(TaskXError):
    status_code = 401


class NotFound(TaskXError):
    status_code = 404


class IntegrationNotConnected(TaskXError):
    status_code = 400
    needs_integration = True

    def __init__(self, message: str = "Google Calendar not connected", details: Optional[str] = None):
        super().__init__(message, details)


class AuthExpired(TaskXError):
    status_code = 401
    needs_integration = True

    def __init__(self, message: str = "Authentication expired", details: Optional[str] = None):
        super().__init__(message, details)


class IntegrationError(TaskXError):
    """The OAuth authorization code could not be exchanged."""
    status_code = 400


class UpstreamError(TaskXError):
    """Calendar, mail or SMS provider failure."""
    status_code = 502


async def _handle_taskx_error(request: Request, exc: TaskXError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def register_error_handlers(app: FastAPI) -> None:
    """Attach the domain exception handler to the application."""
    app.add_exception_handler(TaskXError, _handle_taskx_error)  # type: ignore[arg-type]
