"""
Shared module for cross-cutting concerns of the POS checkout service.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Checkout phases, payment methods, limits

- shared.infrastructure: Runtime plumbing
  - correlation.py: Request / checkout correlation IDs

- shared.utils: Utilities
  - exceptions.py: Checkout exceptions with auto-logging
  - schemas.py: Backend wire-format schemas (camelCase)

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.constants import CheckoutPhase, PaymentMethod
    from shared.utils.exceptions import RedemptionError, SettlementError
    from shared.utils.schemas import Customer, OrderPayload
"""
