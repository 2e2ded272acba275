"""
Infrastructure module: correlation IDs for logs and backend calls.
"""

from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    CorrelationIdMiddleware,
    bind_checkout_id,
    get_checkout_id,
    get_request_id,
    new_checkout_id,
    outgoing_headers,
)

__all__ = [
    "CorrelationIdFilter",
    "CorrelationIdMiddleware",
    "bind_checkout_id",
    "get_checkout_id",
    "get_request_id",
    "new_checkout_id",
    "outgoing_headers",
]
