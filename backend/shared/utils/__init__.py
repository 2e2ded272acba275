"""
Utilities module: Exceptions, backend schemas.
"""

from shared.utils.exceptions import (
    CheckoutError,
    ValidationError,
    NotFoundError,
    ConflictError,
    RedemptionError,
    SettlementError,
    ReconciliationWarning,
)
from shared.utils.schemas import (
    Customer,
    LoyaltyConfig,
    OrderPayload,
    CertifiedOrder,
)

__all__ = [
    # exceptions
    "CheckoutError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "RedemptionError",
    "SettlementError",
    "ReconciliationWarning",
    # schemas
    "Customer",
    "LoyaltyConfig",
    "OrderPayload",
    "CertifiedOrder",
]
