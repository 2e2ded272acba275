"""
Checkout State Machine.

One frozen record per phase plus a single pure transition(state, event)
function. States carry everything the phase needs, so impossible
combinations (a payment step with no committed discount, a receipt without a
certified order) cannot be represented.

    CartEditing --PayRequested--> AwaitingCustomerDecision
    AwaitingCustomerDecision --Confirmed|Skipped--> AwaitingPaymentMethod
    AwaitingPaymentMethod --PaymentChosen--> Settling
    Settling --SettlementSucceeded--> ReceiptReady
    Settling --SettlementFailed--> AwaitingPaymentMethod
    ReceiptReady --ReceiptClosed--> CartEditing
    CartEditing | AwaitingCustomerDecision | AwaitingPaymentMethod --Cancel--> Cancelled

Side effects (config fetch, redemption, settlement) are performed by the
coordinator; their outcomes come back in as events.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Union

from shared.config.constants import CheckoutPhase, PaymentMethod
from shared.utils.exceptions import EmptyCartError, InvalidTransitionError
from shared.utils.schemas import CertifiedOrder, LoyaltyConfig
from .cart_service import CartLine
from .customer_service import CustomerSelection
from .discount_service import DiscountBreakdown, DiscountState, compute_discounts

if TYPE_CHECKING:
    from .settlement_service import Receipt

ZERO = Decimal("0")


# =============================================================================
# Draft
# =============================================================================


@dataclass(frozen=True)
class TransactionDraft:
    """
    Transaction being checked out. Replaced, never mutated.

    lines is a snapshot of the cart at "pay": later edits to the table's cart
    do not reach a draft already in flight.
    """

    checkout_id: str
    table_number: int
    salesperson_id: str
    subtotal: Decimal
    lines: tuple[CartLine, ...]
    customer: CustomerSelection | None = None
    points_to_redeem: int = 0
    discount_amount: Decimal = ZERO
    discount_reason: str | None = None
    final_total: Decimal | None = None
    payment_method: PaymentMethod | None = None
    server_order: CertifiedOrder | None = None
    points_earned: int = 0

    @property
    def customer_id(self) -> str | None:
        return self.customer.customer_id if self.customer else None

    @property
    def previous_points(self) -> int | None:
        return self.customer.previous_points if self.customer else None


# =============================================================================
# States
# =============================================================================


@dataclass(frozen=True)
class CartEditing:
    table_number: int
    phase = CheckoutPhase.CART_EDITING


@dataclass(frozen=True)
class AwaitingCustomerDecision:
    draft: TransactionDraft
    config: LoyaltyConfig
    selection: CustomerSelection | None = None
    discount: DiscountState = field(default_factory=DiscountState)
    currency: str = "€"
    phase = CheckoutPhase.AWAITING_CUSTOMER_DECISION

    @property
    def table_number(self) -> int:
        return self.draft.table_number

    @property
    def breakdown(self) -> DiscountBreakdown:
        """Advisory numbers for the current inputs (recomputed on each read)."""
        return compute_discounts(
            self.draft.subtotal,
            self.config,
            self.discount,
            customer_points=self.selection.customer.loyalty_points if self.selection else None,
            currency=self.currency,
        )


@dataclass(frozen=True)
class AwaitingPaymentMethod:
    draft: TransactionDraft
    last_error: str | None = None
    phase = CheckoutPhase.AWAITING_PAYMENT_METHOD

    @property
    def table_number(self) -> int:
        return self.draft.table_number


@dataclass(frozen=True)
class Settling:
    draft: TransactionDraft
    phase = CheckoutPhase.SETTLING

    @property
    def table_number(self) -> int:
        return self.draft.table_number


@dataclass(frozen=True)
class ReceiptReady:
    draft: TransactionDraft
    receipt: "Receipt"
    phase = CheckoutPhase.RECEIPT_READY

    @property
    def table_number(self) -> int:
        return self.draft.table_number


@dataclass(frozen=True)
class Cancelled:
    table_number: int
    phase = CheckoutPhase.CANCELLED


CheckoutState = Union[
    CartEditing,
    AwaitingCustomerDecision,
    AwaitingPaymentMethod,
    Settling,
    ReceiptReady,
    Cancelled,
]


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class PayRequested:
    checkout_id: str
    salesperson_id: str
    subtotal: Decimal
    lines: tuple[CartLine, ...]
    config: LoyaltyConfig
    currency: str = "€"


@dataclass(frozen=True)
class CustomerSelected:
    selection: CustomerSelection


@dataclass(frozen=True)
class CustomerCleared:
    pass


@dataclass(frozen=True)
class DiscountChanged:
    discount: DiscountState


@dataclass(frozen=True)
class Confirmed:
    pass


@dataclass(frozen=True)
class Skipped:
    pass


@dataclass(frozen=True)
class PaymentChosen:
    method: PaymentMethod


@dataclass(frozen=True)
class SettlementSucceeded:
    order: CertifiedOrder
    points_earned: int
    receipt: "Receipt"


@dataclass(frozen=True)
class SettlementFailed:
    reason: str


@dataclass(frozen=True)
class ReceiptClosed:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


CheckoutEvent = Union[
    PayRequested,
    CustomerSelected,
    CustomerCleared,
    DiscountChanged,
    Confirmed,
    Skipped,
    PaymentChosen,
    SettlementSucceeded,
    SettlementFailed,
    ReceiptClosed,
    Cancel,
]


# =============================================================================
# Transitions
# =============================================================================


def _pay(state: CartEditing, event: PayRequested) -> AwaitingCustomerDecision:
    if not event.lines:
        raise EmptyCartError(state.table_number)
    draft = TransactionDraft(
        checkout_id=event.checkout_id,
        table_number=state.table_number,
        salesperson_id=event.salesperson_id,
        subtotal=event.subtotal,
        lines=tuple(event.lines),
        final_total=event.subtotal,
    )
    return AwaitingCustomerDecision(draft=draft, config=event.config, currency=event.currency)


def _select_customer(state: AwaitingCustomerDecision, event: CustomerSelected) -> AwaitingCustomerDecision:
    # A different customer means a different balance: redemption starts over
    return replace(
        state,
        selection=event.selection,
        discount=replace(state.discount, points_to_redeem=0),
    )


def _clear_customer(state: AwaitingCustomerDecision, event: CustomerCleared) -> AwaitingCustomerDecision:
    return replace(
        state,
        selection=None,
        discount=replace(state.discount, points_to_redeem=0),
    )


def _change_discount(state: AwaitingCustomerDecision, event: DiscountChanged) -> AwaitingCustomerDecision:
    return replace(state, discount=event.discount)


def _confirm(state: AwaitingCustomerDecision, event: Confirmed) -> AwaitingPaymentMethod:
    breakdown = state.breakdown
    draft = replace(
        state.draft,
        customer=state.selection,
        points_to_redeem=breakdown.points_to_redeem,
        discount_amount=breakdown.total_discount,
        discount_reason=breakdown.reason,
        final_total=breakdown.final_total,
    )
    return AwaitingPaymentMethod(draft=draft)


def _skip(state: AwaitingCustomerDecision, event: Skipped) -> AwaitingPaymentMethod:
    draft = replace(
        state.draft,
        customer=None,
        points_to_redeem=0,
        discount_amount=ZERO,
        discount_reason=None,
        final_total=state.draft.subtotal,
    )
    return AwaitingPaymentMethod(draft=draft)


def _choose_payment(state: AwaitingPaymentMethod, event: PaymentChosen) -> Settling:
    return Settling(draft=replace(state.draft, payment_method=event.method))


def _settled(state: Settling, event: SettlementSucceeded) -> ReceiptReady:
    order = event.order
    # Certified figures replace the advisory ones computed locally
    draft = replace(
        state.draft,
        discount_amount=order.discount_amount,
        discount_reason=order.discount_reason,
        final_total=order.total_amount,
        server_order=order,
        points_earned=event.points_earned,
    )
    return ReceiptReady(draft=draft, receipt=event.receipt)


def _settlement_failed(state: Settling, event: SettlementFailed) -> AwaitingPaymentMethod:
    return AwaitingPaymentMethod(draft=state.draft, last_error=event.reason)


def _close_receipt(state: ReceiptReady, event: ReceiptClosed) -> CartEditing:
    return CartEditing(table_number=state.table_number)


def _cancel(state, event: Cancel) -> Cancelled:
    return Cancelled(table_number=state.table_number)


_TRANSITIONS: dict[tuple[type, type], Callable] = {
    (CartEditing, PayRequested): _pay,
    (AwaitingCustomerDecision, CustomerSelected): _select_customer,
    (AwaitingCustomerDecision, CustomerCleared): _clear_customer,
    (AwaitingCustomerDecision, DiscountChanged): _change_discount,
    (AwaitingCustomerDecision, Confirmed): _confirm,
    (AwaitingCustomerDecision, Skipped): _skip,
    (AwaitingPaymentMethod, PaymentChosen): _choose_payment,
    (Settling, SettlementSucceeded): _settled,
    (Settling, SettlementFailed): _settlement_failed,
    (ReceiptReady, ReceiptClosed): _close_receipt,
    (CartEditing, Cancel): _cancel,
    (AwaitingCustomerDecision, Cancel): _cancel,
    (AwaitingPaymentMethod, Cancel): _cancel,
}


def accepts(state: CheckoutState, event_type: type) -> bool:
    return (type(state), event_type) in _TRANSITIONS


def transition(state: CheckoutState, event: CheckoutEvent) -> CheckoutState:
    """
    Apply an event to a state and return the next state.

    Raises:
        InvalidTransitionError: event not accepted in the current phase
        EmptyCartError: pay requested with no lines
    """
    handler = _TRANSITIONS.get((type(state), type(event)))
    if handler is None:
        raise InvalidTransitionError(
            state.phase.value,
            type(event).__name__,
            table_number=state.table_number,
        )
    return handler(state, event)
