"""
Domain Services.

Structure:
    Router (thin controller)
        ↓
    CheckoutCoordinator (side effects, one session per table)
        ↓
    transition() (pure state machine) + compute_discounts() (pure calculator)
        ↓
    CustomerDirectory / SettlementReconciler (backend adapters)

Usage:
    from pos_checkout.services.domain import TableRegistry, CheckoutCoordinator

    registry = TableRegistry()
    registry.open_table(4).cart.add(product)
    await coordinator.begin(4, salesperson_id="u1")
"""

from .cart_service import Cart, CartLine, Product, Table, TableRegistry, TableSummary
from .discount_service import (
    DiscountBreakdown,
    DiscountState,
    can_redeem,
    clamp_points,
    compute_discounts,
    max_redeemable,
    parse_amount,
    round_money,
)
from .customer_service import CustomerDirectory, CustomerSelection, collation_key
from .checkout_machine import (
    AwaitingCustomerDecision,
    AwaitingPaymentMethod,
    Cancelled,
    CartEditing,
    CheckoutState,
    ReceiptReady,
    Settling,
    TransactionDraft,
    transition,
)
from .settlement_service import Receipt, ReceiptLine, SettlementOutcome, SettlementReconciler
from .checkout_service import CheckoutCoordinator, CheckoutSession

__all__ = [
    # Cart
    "Cart",
    "CartLine",
    "Product",
    "Table",
    "TableRegistry",
    "TableSummary",
    # Discounts
    "DiscountBreakdown",
    "DiscountState",
    "can_redeem",
    "clamp_points",
    "compute_discounts",
    "max_redeemable",
    "parse_amount",
    "round_money",
    # Customers
    "CustomerDirectory",
    "CustomerSelection",
    "collation_key",
    # State machine
    "AwaitingCustomerDecision",
    "AwaitingPaymentMethod",
    "Cancelled",
    "CartEditing",
    "CheckoutState",
    "ReceiptReady",
    "Settling",
    "TransactionDraft",
    "transition",
    # Settlement
    "Receipt",
    "ReceiptLine",
    "SettlementOutcome",
    "SettlementReconciler",
    # Coordinator
    "CheckoutCoordinator",
    "CheckoutSession",
]
