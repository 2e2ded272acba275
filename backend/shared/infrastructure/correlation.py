"""
Request and checkout correlation.

Adds correlation IDs to every terminal request and to every checkout session,
so a single payment can be followed through the logs of this service and of
the backend order service (the request ID is forwarded as X-Request-ID).
"""

import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Context variables (task-local under asyncio)
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
checkout_id_var: ContextVar[str] = ContextVar("checkout_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def get_checkout_id() -> str:
    """Get the checkout ID bound to the current task."""
    return checkout_id_var.get()


def new_checkout_id() -> str:
    return uuid.uuid4().hex


def bind_checkout_id(checkout_id: str) -> None:
    """Bind a checkout ID to the current task for the rest of its work."""
    checkout_id_var.set(checkout_id)


def outgoing_headers() -> dict[str, str]:
    """Headers propagated on calls to the backend."""
    request_id = request_id_var.get()
    return {REQUEST_ID_HEADER: request_id} if request_id else {}


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs to all requests.

    - If X-Request-ID header is present, uses that value
    - Otherwise generates a new UUID
    - Sets the ID in context for logging and backend calls
    - Returns the ID in response headers
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        token = request_id_var.set(request_id)
        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_var.reset(token)


class CorrelationIdFilter:
    """
    Logging filter that adds request_id and checkout_id to log records.

    Usage:
        import logging
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.checkout_id = checkout_id_var.get() or "-"
        return True
