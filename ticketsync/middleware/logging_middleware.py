"""
Logging Middleware - Request/Response logging

Requests under the client and admin routers are tagged with the ticket their
session is on after the request ran, both in the log record and in an
`X-Ticket-Id` response header.
"""
import logging
import time
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ticketsync.utils.logger import get_logger

logger = get_logger(__name__)

QUIET_PATHS = ("/api/v1/health", "/api/v1/client/state", "/api/v1/admin/state")

# Router prefix -> (app.state attribute, session field holding the ticket id)
SESSION_TICKET_FIELDS = {
    "/api/v1/client": ("customer_chat", "current_ticket_id"),
    "/api/v1/admin": ("admin_console", "selected_ticket_id"),
}

TICKET_HEADER = "X-Ticket-Id"


def session_ticket_id(request: Request) -> Optional[str]:
    """Ticket the session behind this path is on, if any"""
    for prefix, (attribute, field) in SESSION_TICKET_FIELDS.items():
        if request.url.path.startswith(prefix):
            session = getattr(request.app.state, attribute, None)
            return getattr(session, field, None)
    return None


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request and response with its duration and ticket

    Domain errors come back as 4xx responses and are logged as warnings;
    5xx responses and unhandled errors as errors.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        # Health checks and state polling are too noisy
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.time()
        method = request.method
        path = request.url.path

        logger.info(
            f"→ {method} {path}",
            extra={
                "method": method,
                "path": path,
                "client": request.client.host if request.client else "unknown",
                "ticket_id": session_ticket_id(request),
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                f"✗ {method} {path} ERROR ({duration_ms}ms): {e}",
                extra={"method": method, "path": path, "error": str(e), "duration_ms": duration_ms},
                exc_info=True
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        ticket_id = session_ticket_id(request)
        logger.log(
            level_for_status(response.status_code),
            f"← {method} {path} {response.status_code} ({duration_ms}ms)"
            + (f" [{ticket_id}]" if ticket_id else ""),
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "ticket_id": ticket_id,
            }
        )
        response.headers["X-Process-Time"] = str(duration_ms)
        if ticket_id:
            response.headers[TICKET_HEADER] = ticket_id
        return response
