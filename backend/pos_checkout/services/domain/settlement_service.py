"""
Settlement Reconciler.

Submits the frozen draft to the backend and turns the certified order into
the receipt. Locally computed totals never leave the terminal: the payload
carries items, discount and customer only, and every amount printed on the
receipt comes back from the backend.
"""

import warnings
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from shared.config.logging import checkout_logger as logger
from shared.config.settings import Settings
from shared.utils.exceptions import (
    BackendError,
    BackendUnavailableError,
    NotFoundError,
    ReconciliationWarning,
    SettlementError,
)
from shared.utils.schemas import CertifiedOrder, OrderItem, OrderPayload
from pos_checkout.services.backend import BackendClient
from .checkout_machine import TransactionDraft
from .discount_service import round_money

REFETCH_WARNING = "Loyalty balance could not be refreshed; points earned not shown"


@dataclass(frozen=True)
class ReceiptLine:
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class Receipt:
    """Ticket data. Monetary fields are the backend-certified values."""

    shop_name: str
    shop_address: str
    shop_phone: str
    footer: str
    order_id: str | None
    issued_at: str
    table_number: int
    salesperson_id: str
    lines: tuple[ReceiptLine, ...]
    subtotal: Decimal
    discount_amount: Decimal
    discount_reason: str | None
    total: Decimal
    payment_method: str | None
    customer_name: str | None = None
    points_earned: int = 0
    loyalty_balance: int | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class SettlementOutcome:
    order: CertifiedOrder
    points_earned: int
    receipt: Receipt


class SettlementReconciler:
    """
    Domain service for order submission and post-settlement reconciliation.

    Usage:
        reconciler = SettlementReconciler(client, settings)
        outcome = await reconciler.settle(draft)
    """

    def __init__(self, client: BackendClient, settings: Settings):
        self._client = client
        self._settings = settings

    def build_payload(self, draft: TransactionDraft) -> OrderPayload:
        """Minimal order: no subtotal, no final total."""
        if draft.payment_method is None:
            raise ValueError("Draft has no payment method")

        discount = round_money(draft.discount_amount)
        return OrderPayload(
            salesperson_id=draft.salesperson_id,
            table_number=draft.table_number,
            payment_method=draft.payment_method,
            customer_id=draft.customer_id,
            discount_amount=discount,
            discount_reason=draft.discount_reason if discount > 0 else None,
            items=[OrderItem(id=line.product_id, quantity=line.quantity) for line in draft.lines],
        )

    async def submit(self, draft: TransactionDraft) -> CertifiedOrder:
        """
        Submit the order.

        Raises:
            SettlementError: with the backend's message when it sent one
        """
        payload = self.build_payload(draft)
        try:
            order = await self._client.submit_order(payload)
        except BackendError as e:
            raise SettlementError(
                e.server_message or SettlementError.GENERIC_MESSAGE,
                table_number=draft.table_number,
                upstream_status=e.upstream_status,
            ) from e
        except BackendUnavailableError as e:
            raise SettlementError(
                SettlementError.GENERIC_MESSAGE,
                table_number=draft.table_number,
                reason=e.detail,
            ) from e

        logger.info(
            "Order certified",
            order_id=order.id,
            table_number=draft.table_number,
            total_amount=str(order.total_amount),
            discount_amount=str(order.discount_amount),
        )
        return order

    async def points_earned(self, draft: TransactionDraft) -> tuple[int, int | None, str | None]:
        """
        Re-fetch the customer and compute the points delta.

        Returns:
            (points_earned, new_balance, warning). A failed re-fetch gives
            (0, None, warning) and never blocks the receipt.
        """
        if draft.customer is None:
            return 0, None, None

        try:
            refreshed = await self._client.get_customer(draft.customer.customer_id)
        except (BackendError, BackendUnavailableError, NotFoundError) as e:
            logger.warning(
                REFETCH_WARNING,
                customer_id=draft.customer.customer_id,
                reason=e.detail,
            )
            warnings.warn(REFETCH_WARNING, ReconciliationWarning, stacklevel=2)
            return 0, None, REFETCH_WARNING

        earned = max(0, refreshed.loyalty_points - draft.customer.previous_points)
        return earned, refreshed.loyalty_points, None

    def build_receipt(
        self,
        draft: TransactionDraft,
        order: CertifiedOrder,
        points_earned: int,
        loyalty_balance: int | None,
        warning: str | None,
    ) -> Receipt:
        # Certified total is after discount; the backend ignores unknown items,
        # so the subtotal is derived from its figures rather than the cart
        subtotal = order.total_amount + order.discount_amount
        return Receipt(
            shop_name=self._settings.shop_name,
            shop_address=self._settings.shop_address,
            shop_phone=self._settings.shop_phone,
            footer=self._settings.ticket_footer,
            order_id=order.id,
            issued_at=order.date or datetime.now(timezone.utc).isoformat(),
            table_number=order.table_number or draft.table_number,
            salesperson_id=order.salesperson_id or draft.salesperson_id,
            lines=tuple(
                ReceiptLine(
                    product_id=line.product_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in draft.lines
            ),
            subtotal=subtotal,
            discount_amount=order.discount_amount,
            discount_reason=order.discount_reason,
            total=order.total_amount,
            payment_method=order.payment_method or draft.payment_method.value,
            customer_name=draft.customer.customer.name if draft.customer else None,
            points_earned=points_earned,
            loyalty_balance=loyalty_balance,
            warnings=(warning,) if warning else (),
        )

    async def settle(self, draft: TransactionDraft) -> SettlementOutcome:
        """Submit, reconcile loyalty, build the receipt."""
        order = await self.submit(draft)
        earned, balance, warning = await self.points_earned(draft)
        receipt = self.build_receipt(draft, order, earned, balance, warning)
        return SettlementOutcome(order=order, points_earned=earned, receipt=receipt)
