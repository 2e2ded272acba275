"""
Checkout Domain Service.

Coordinates one checkout session per table: performs the side effects
(loyalty config fetch, redemption, settlement) and feeds their outcomes to the
pure state machine.

Concurrency: everything runs on one event loop. A session is registered
before the first await of "pay" and is moved to SETTLING before the order is
submitted, so a second payment attempt for the same table is refused rather
than queued. While a side effect is awaited, other mutating calls on that
session are refused as well.
"""

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import Iterator, cast

from shared.config.constants import CheckoutPhase, PaymentMethod
from shared.config.logging import checkout_logger as logger
from shared.config.settings import Settings
from shared.infrastructure.correlation import bind_checkout_id, new_checkout_id
from shared.utils.exceptions import (
    CheckoutNotFoundError,
    ConflictError,
    EmptyCartError,
    InvalidTransitionError,
    SettlementError,
    TableBusyError,
)
from .cart_service import TableRegistry
from .checkout_machine import (
    AwaitingCustomerDecision,
    AwaitingPaymentMethod,
    Cancel,
    Cancelled,
    CartEditing,
    CheckoutEvent,
    CheckoutState,
    Confirmed,
    CustomerCleared,
    CustomerSelected,
    DiscountChanged,
    PaymentChosen,
    PayRequested,
    ReceiptClosed,
    SettlementFailed,
    SettlementSucceeded,
    Skipped,
    accepts,
    transition,
)
from .customer_service import CustomerDirectory
from .discount_service import DiscountState
from .settlement_service import SettlementReconciler


@dataclass
class CheckoutSession:
    table_number: int
    checkout_id: str
    state: CheckoutState
    # Label of the side effect currently awaited, if any
    pending: str | None = field(default=None)

    @property
    def phase(self) -> CheckoutPhase:
        return self.state.phase


class CheckoutCoordinator:
    """
    Domain service driving checkouts.

    Usage:
        coordinator = CheckoutCoordinator(registry, directory, reconciler, settings)
        await coordinator.begin(4, salesperson_id="u1")
        await coordinator.confirm(4)
        await coordinator.pay(4, PaymentMethod.CB)
        coordinator.close(4)
    """

    def __init__(
        self,
        registry: TableRegistry,
        directory: CustomerDirectory,
        reconciler: SettlementReconciler,
        settings: Settings,
    ):
        self._registry = registry
        self._directory = directory
        self._reconciler = reconciler
        self._settings = settings
        self._sessions: dict[int, CheckoutSession] = {}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def session(self, table_number: int) -> CheckoutSession:
        session = self._sessions.get(table_number)
        if session is None:
            raise CheckoutNotFoundError(table_number)
        return session

    def state(self, table_number: int) -> CheckoutState:
        return self.session(table_number).state

    def phase_of(self, table_number: int) -> CheckoutPhase:
        """Phase of the table, CART_EDITING when no checkout is open."""
        session = self._sessions.get(table_number)
        return session.phase if session else CheckoutPhase.CART_EDITING

    def ensure_cart_editable(self, table_number: int) -> None:
        """Refuse cart edits while the table has a checkout open."""
        session = self._sessions.get(table_number)
        if session is not None:
            raise TableBusyError(table_number, session.phase.value)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _open_session(self, table_number: int) -> CheckoutSession:
        session = self.session(table_number)
        bind_checkout_id(session.checkout_id)
        return session

    def _require(self, session: CheckoutSession, event_type: type) -> None:
        if not accepts(session.state, event_type):
            raise InvalidTransitionError(
                session.phase.value,
                event_type.__name__,
                table_number=session.table_number,
            )

    @contextmanager
    def _exclusive(self, session: CheckoutSession, label: str) -> Iterator[None]:
        if session.pending is not None:
            raise ConflictError(
                f"Table {session.table_number} is busy ({session.pending})",
                table_number=session.table_number,
                pending=session.pending,
            )
        session.pending = label
        try:
            yield
        finally:
            session.pending = None

    def _apply(self, session: CheckoutSession, event: CheckoutEvent) -> CheckoutState:
        previous = session.phase
        session.state = transition(session.state, event)
        if session.phase != previous:
            logger.info(
                "Checkout phase changed",
                table_number=session.table_number,
                event=type(event).__name__,
                old_phase=previous.value,
                new_phase=session.phase.value,
            )
        return session.state

    def _drop(self, session: CheckoutSession) -> None:
        self._sessions.pop(session.table_number, None)

    def _finish_settlement(self, session: CheckoutSession, settlement: asyncio.Future) -> CheckoutState:
        table_number = session.table_number
        if settlement.cancelled():
            logger.warning("Settlement interrupted, outcome unknown", table_number=table_number)
            return self._apply(session, SettlementFailed(reason=SettlementError.INTERRUPTED_MESSAGE))

        error = settlement.exception()
        if isinstance(error, SettlementError):
            return self._apply(session, SettlementFailed(reason=error.detail))
        if error is not None:
            logger.error("Unexpected settlement failure", table_number=table_number, exc_info=error)
            return self._apply(session, SettlementFailed(reason=SettlementError.GENERIC_MESSAGE))

        outcome = settlement.result()
        state = self._apply(
            session,
            SettlementSucceeded(
                order=outcome.order,
                points_earned=outcome.points_earned,
                receipt=outcome.receipt,
            ),
        )
        self._registry.release(table_number)
        logger.info(
            "Checkout settled",
            table_number=table_number,
            order_id=outcome.order.id,
            points_earned=outcome.points_earned,
        )
        return state

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def begin(self, table_number: int, salesperson_id: str) -> CheckoutState:
        """
        "Pay": snapshot the cart and open the customer/discount step.

        Raises:
            TableBusyError: a checkout is already open for the table
            EmptyCartError: nothing to pay
        """
        table = self._registry.get(table_number)

        existing = self._sessions.get(table_number)
        if existing is not None:
            raise TableBusyError(table_number, existing.phase.value)
        if not table.cart:
            raise EmptyCartError(table_number)

        # Snapshot now: edits made while the config loads must not reach the draft
        lines = table.cart.snapshot()
        subtotal = table.cart.total()

        session = CheckoutSession(
            table_number=table_number,
            checkout_id=new_checkout_id(),
            state=CartEditing(table_number=table_number),
        )
        self._sessions[table_number] = session
        bind_checkout_id(session.checkout_id)
        logger.info(
            "Checkout started",
            table_number=table_number,
            salesperson_id=salesperson_id,
            subtotal=str(subtotal),
        )

        try:
            with self._exclusive(session, "loading loyalty config"):
                config = await self._directory.loyalty_config()
            return self._apply(
                session,
                PayRequested(
                    checkout_id=session.checkout_id,
                    salesperson_id=salesperson_id,
                    subtotal=subtotal,
                    lines=lines,
                    config=config,
                    currency=self._settings.currency_symbol,
                ),
            )
        except Exception:
            self._drop(session)
            raise

    async def select_customer(self, table_number: int, customer_id: str) -> CheckoutState:
        session = self._open_session(table_number)
        self._require(session, CustomerSelected)
        with self._exclusive(session, "loading customer"):
            customer = await self._directory.get(customer_id)
        selection = self._directory.select(customer)
        return self._apply(session, CustomerSelected(selection=selection))

    def clear_customer(self, table_number: int) -> CheckoutState:
        session = self._open_session(table_number)
        with self._exclusive(session, "clearing customer"):
            return self._apply(session, CustomerCleared())

    def change_discount(self, table_number: int, discount: DiscountState) -> CheckoutState:
        session = self._open_session(table_number)
        with self._exclusive(session, "changing discount"):
            return self._apply(session, DiscountChanged(discount=discount))

    async def confirm(self, table_number: int) -> CheckoutState:
        """
        Commit customer and discount. Points are redeemed on the backend
        first; if that fails the step is not advanced.
        """
        session = self._open_session(table_number)
        self._require(session, Confirmed)
        state = cast(AwaitingCustomerDecision, session.state)

        with self._exclusive(session, "redeeming points"):
            points = state.breakdown.points_to_redeem
            if state.selection is not None and points > 0:
                await self._directory.redeem(state.selection, points, state.config)
            return self._apply(session, Confirmed())

    def skip(self, table_number: int) -> CheckoutState:
        session = self._open_session(table_number)
        with self._exclusive(session, "skipping"):
            return self._apply(session, Skipped())

    async def pay(self, table_number: int, method: PaymentMethod) -> CheckoutState:
        """
        Settle with the chosen payment method.

        On success the table is released and the receipt is ready. On failure
        the payment step re-opens with the reason, the cart is untouched and
        the SettlementError propagates.

        The settlement runs in its own task: if the caller is cancelled while
        the backend is answering, the outcome is still applied when it arrives.
        """
        session = self._open_session(table_number)
        self._require(session, PaymentChosen)

        with self._exclusive(session, "settling"):
            settling = self._apply(session, PaymentChosen(method=method))
            settlement = asyncio.ensure_future(self._reconciler.settle(settling.draft))
            try:
                await asyncio.wait({settlement})
            except asyncio.CancelledError:
                logger.warning("Payment request cancelled during settlement", table_number=table_number)
                settlement.add_done_callback(partial(self._finish_settlement, session))
                raise

        state = self._finish_settlement(session, settlement)
        # Re-raise the settlement failure, if any
        settlement.result()
        return state

    def cancel(self, table_number: int) -> Cancelled:
        """Discard the draft. No backend call; refused once settling began."""
        session = self._open_session(table_number)
        with self._exclusive(session, "cancelling"):
            state = self._apply(session, Cancel())
        self._drop(session)
        return state

    def close(self, table_number: int) -> CheckoutState:
        """Close the receipt; the table is free for a new cycle."""
        session = self._open_session(table_number)
        state = self._apply(session, ReceiptClosed())
        self._drop(session)
        logger.info("Receipt closed", table_number=table_number)
        return state

    def last_error(self, table_number: int) -> str | None:
        state = self.state(table_number)
        return state.last_error if isinstance(state, AwaitingPaymentMethod) else None
