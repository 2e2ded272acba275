"""
Centralized checkout exceptions for consistent error handling.

Every error logs itself (with context) when raised and carries the HTTP status
the terminal API answers with. None of them is fatal: each one leaves the
checkout in a well-defined state the operator can retry from.

Usage:
    from shared.utils.exceptions import RedemptionError, SettlementError

    raise RedemptionError("Points must be redeemed in steps of 100", points=150)
    raise SettlementError("Stock insuffisant pour \"Pizza Regina\"", table_number=4)
"""

from typing import Any

from fastapi import status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class CheckoutError(Exception):
    """
    Base exception with automatic logging.

    All checkout exceptions inherit from this class to ensure consistent
    logging and response format.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    log_level: str = "warning"

    def __init__(self, detail: str, **log_context: Any):
        self.detail = detail
        self.context = log_context

        log_fn = getattr(logger, self.log_level, logger.warning)
        log_fn(detail, error=type(self).__name__, status_code=self.status_code, **log_context)

        super().__init__(detail)


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(CheckoutError):
    """
    Missing or invalid operator input (400). Recovered locally by re-prompting.

    Usage:
        raise ValidationError("Name and phone are required", field="phone")
    """

    status_code = status.HTTP_400_BAD_REQUEST


class EmptyCartError(ValidationError):
    """Checkout requested on a table without items."""

    def __init__(self, table_number: int, **log_context: Any):
        super().__init__(
            f"Table {table_number} has no items to pay",
            table_number=table_number,
            **log_context,
        )


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(CheckoutError):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Table", 12)
    """

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"
        super().__init__(detail, entity=entity, entity_id=entity_id, **log_context)


class TableNotFoundError(NotFoundError):
    """Table is not open."""

    def __init__(self, table_number: int, **log_context: Any):
        super().__init__("Table", table_number, **log_context)


class CheckoutNotFoundError(NotFoundError):
    """No checkout in progress for the table."""

    def __init__(self, table_number: int, **log_context: Any):
        super().__init__("Checkout for table", table_number, **log_context)


class CustomerNotFoundError(NotFoundError):
    """Customer unknown to the directory."""

    def __init__(self, customer_id: str | None = None, **log_context: Any):
        super().__init__("Customer", customer_id, **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(CheckoutError):
    """Operation conflicts with the current state (409)."""

    status_code = status.HTTP_409_CONFLICT


class InvalidTransitionError(ConflictError):
    """Event not accepted by the current checkout phase."""

    def __init__(self, phase: str, event: str, **log_context: Any):
        self.phase = phase
        self.event = event
        super().__init__(
            f"'{event}' is not allowed while checkout is {phase}",
            phase=phase,
            event=event,
            **log_context,
        )


class TableBusyError(ConflictError):
    """A checkout is already in flight for the table."""

    def __init__(self, table_number: int, phase: str, **log_context: Any):
        super().__init__(
            f"Table {table_number} already has a checkout in progress ({phase})",
            table_number=table_number,
            phase=phase,
            **log_context,
        )


class RedemptionError(ConflictError):
    """
    Loyalty points could not be redeemed (insufficient or misaligned points,
    or rejected by the backend). The customer step is not advanced.
    """


# =============================================================================
# 502 / 503 Upstream Errors
# =============================================================================


class SettlementError(CheckoutError):
    """
    Order submission rejected or not delivered (502).

    The draft is preserved and the payment step re-opens.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    log_level = "error"

    GENERIC_MESSAGE = "Payment could not be recorded, please try again"
    INTERRUPTED_MESSAGE = "Payment outcome unknown, check the order history before retrying"


class BackendError(CheckoutError):
    """
    Backend answered with an error status.

    `server_message` holds the backend's own explanation when it sent one.
    """

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        operation: str,
        upstream_status: int,
        server_message: str | None = None,
        **log_context: Any,
    ):
        self.operation = operation
        self.upstream_status = upstream_status
        self.server_message = server_message
        detail = f"Backend rejected {operation} ({upstream_status})"
        if server_message:
            detail = f"{detail}: {server_message}"
        super().__init__(
            detail,
            operation=operation,
            upstream_status=upstream_status,
            **log_context,
        )


class BackendUnavailableError(CheckoutError):
    """Backend could not be reached, timed out, or the circuit is open (503)."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    log_level = "error"

    def __init__(self, operation: str, reason: str, retry_after: float | None = None, **log_context: Any):
        self.operation = operation
        self.retry_after = retry_after
        super().__init__(
            f"Backend unavailable during {operation}: {reason}",
            operation=operation,
            retry_after=retry_after,
            **log_context,
        )


# =============================================================================
# Warnings
# =============================================================================


class ReconciliationWarning(UserWarning):
    """
    Post-settlement customer re-fetch failed.

    Never raised: the receipt proceeds with pointsEarned=0 and carries the
    warning text.
    """
