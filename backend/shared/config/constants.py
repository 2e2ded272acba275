"""
Centralized constants for the checkout service.
Avoid magic strings and repeated constants.

Usage:
    from shared.config.constants import CheckoutPhase, PaymentMethod

    if session.phase == CheckoutPhase.SETTLING:
        ...
"""

from decimal import Decimal
from enum import Enum
from typing import Final


# =============================================================================
# Checkout
# =============================================================================


class CheckoutPhase(str, Enum):
    """Checkout state machine phases."""

    CART_EDITING = "CART_EDITING"
    AWAITING_CUSTOMER_DECISION = "AWAITING_CUSTOMER_DECISION"
    AWAITING_PAYMENT_METHOD = "AWAITING_PAYMENT_METHOD"
    SETTLING = "SETTLING"
    RECEIPT_READY = "RECEIPT_READY"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    """Payment methods accepted at the terminal."""

    CB = "CB"
    CASH = "CASH"
    CONTACTLESS = "CONTACTLESS"


class DiscountType(str, Enum):
    """Manual discount kinds."""

    PERCENT = "PERCENT"
    FIXED = "FIXED"


# Joins the human-readable fragments of a discount reason
DISCOUNT_REASON_SEPARATOR: Final[str] = " + "

# Display precision for money (internal math keeps full precision)
MONEY_QUANTUM: Final[Decimal] = Decimal("0.01")


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    MIN_TABLE_NUMBER: Final[int] = 1
    MAX_TABLE_NUMBER: Final[int] = 999

    MAX_NAME_LENGTH: Final[int] = 200
    MAX_PHONE_LENGTH: Final[int] = 30
    MAX_SEARCH_TERM_LENGTH: Final[int] = 100
