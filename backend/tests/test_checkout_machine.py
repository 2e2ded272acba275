"""
Tests for the pure checkout state machine.
"""

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest

from shared.config.constants import CheckoutPhase, DiscountType, PaymentMethod
from shared.utils.exceptions import EmptyCartError, InvalidTransitionError
from shared.utils.schemas import CertifiedOrder
from pos_checkout.services.domain import Cart, CustomerSelection, DiscountState
from pos_checkout.services.domain.checkout_machine import (
    AwaitingCustomerDecision,
    AwaitingPaymentMethod,
    Cancel,
    Cancelled,
    CartEditing,
    Confirmed,
    CustomerCleared,
    CustomerSelected,
    DiscountChanged,
    PaymentChosen,
    PayRequested,
    ReceiptClosed,
    ReceiptReady,
    SettlementFailed,
    SettlementSucceeded,
    Settling,
    Skipped,
    transition,
)
from pos_checkout.services.domain.settlement_service import Receipt


@pytest.fixture
def cart(products):
    cart = Cart()
    cart.add(products["menu-50"])
    return cart


@pytest.fixture
def pay_event(cart, loyalty_config):
    return PayRequested(
        checkout_id="co-1",
        salesperson_id="u1",
        subtotal=cart.total(),
        lines=cart.snapshot(),
        config=loyalty_config,
    )


@pytest.fixture
def deciding(pay_event) -> AwaitingCustomerDecision:
    return transition(CartEditing(table_number=4), pay_event)


@pytest.fixture
def selection(make_customer):
    return CustomerSelection(customer=make_customer(points=250), previous_points=250)


def _receipt(total: Decimal) -> Receipt:
    return Receipt(
        shop_name="Shop",
        shop_address="Addr",
        shop_phone="01",
        footer="Bye",
        order_id="o1",
        issued_at="2026-10-19T12:30:00",
        table_number=4,
        salesperson_id="u1",
        lines=(),
        subtotal=total,
        discount_amount=Decimal("0"),
        discount_reason=None,
        total=total,
        payment_method="CB",
    )


class TestPay:
    """CART_EDITING -> AWAITING_CUSTOMER_DECISION."""

    def test_pay_seeds_draft_with_cart_copy(self, cart, deciding, products):
        assert deciding.phase == CheckoutPhase.AWAITING_CUSTOMER_DECISION
        assert deciding.draft.subtotal == Decimal("50.00")
        assert deciding.draft.final_total == Decimal("50.00")

        cart.add(products["coca"])

        assert len(deciding.draft.lines) == 1
        assert deciding.draft.subtotal == Decimal("50.00")

    def test_pay_with_empty_cart_refused(self, loyalty_config):
        event = PayRequested(
            checkout_id="co-1",
            salesperson_id="u1",
            subtotal=Decimal("0"),
            lines=(),
            config=loyalty_config,
        )

        with pytest.raises(EmptyCartError):
            transition(CartEditing(table_number=4), event)

    def test_states_are_immutable(self, deciding):
        with pytest.raises(FrozenInstanceError):
            deciding.draft.subtotal = Decimal("1")


class TestCustomerDecision:
    """Working inputs of AWAITING_CUSTOMER_DECISION."""

    def test_select_customer_resets_points(self, deciding, selection):
        state = transition(deciding, DiscountChanged(DiscountState(points_to_redeem=200)))
        state = transition(state, CustomerSelected(selection))

        assert state.selection == selection
        assert state.discount.points_to_redeem == 0

    def test_breakdown_follows_inputs(self, deciding, selection):
        state = transition(deciding, CustomerSelected(selection))
        state = transition(state, DiscountChanged(DiscountState(points_to_redeem=200)))

        assert state.breakdown.loyalty_discount == Decimal("10")
        assert state.breakdown.final_total == Decimal("40")

    def test_clear_customer_drops_loyalty(self, deciding, selection):
        state = transition(deciding, CustomerSelected(selection))
        state = transition(state, DiscountChanged(DiscountState(points_to_redeem=200)))
        state = transition(state, CustomerCleared())

        assert state.selection is None
        assert state.breakdown.loyalty_discount == Decimal("0")

    def test_confirm_commits_discount(self, deciding, selection):
        state = transition(deciding, CustomerSelected(selection))
        state = transition(
            state,
            DiscountChanged(
                DiscountState(points_to_redeem=200, manual_type=DiscountType.FIXED, manual_value=Decimal("5"))
            ),
        )

        confirmed = transition(state, Confirmed())

        assert isinstance(confirmed, AwaitingPaymentMethod)
        draft = confirmed.draft
        assert draft.customer == selection
        assert draft.previous_points == 250
        assert draft.points_to_redeem == 200
        assert draft.discount_amount == Decimal("15")
        assert draft.final_total == Decimal("35")
        assert draft.discount_reason == "Fidélité: 200 pts (-10.00€) + Remise fixe (-5.00€)"

    def test_skip_bypasses_with_no_discount(self, deciding, selection):
        state = transition(deciding, CustomerSelected(selection))
        state = transition(state, DiscountChanged(DiscountState(manual_value=Decimal("10"))))

        skipped = transition(state, Skipped())

        assert skipped.draft.customer is None
        assert skipped.draft.discount_amount == Decimal("0")
        assert skipped.draft.discount_reason is None
        assert skipped.draft.final_total == Decimal("50.00")


class TestSettlement:
    """AWAITING_PAYMENT_METHOD -> SETTLING -> RECEIPT_READY / retry."""

    @pytest.fixture
    def settling(self, deciding) -> Settling:
        paying = transition(deciding, Skipped())
        return transition(paying, PaymentChosen(PaymentMethod.CASH))

    def test_payment_method_freezes_draft(self, settling):
        assert settling.phase == CheckoutPhase.SETTLING
        assert settling.draft.payment_method == PaymentMethod.CASH

    def test_success_enriches_draft(self, settling):
        order = CertifiedOrder(total_amount=Decimal("47.50"), discount_amount=Decimal("2.50"))

        ready = transition(settling, SettlementSucceeded(order=order, points_earned=47, receipt=_receipt(Decimal("47.50"))))

        assert isinstance(ready, ReceiptReady)
        assert ready.draft.server_order == order
        assert ready.draft.points_earned == 47

    def test_success_replaces_local_totals_with_certified_ones(self, settling):
        assert settling.draft.final_total == Decimal("50")
        order = CertifiedOrder(
            total_amount=Decimal("47.50"),
            discount_amount=Decimal("2.50"),
            discount_reason="Remise automatique 5%",
        )

        ready = transition(settling, SettlementSucceeded(order=order, points_earned=47, receipt=_receipt(Decimal("47.50"))))

        assert ready.draft.final_total == Decimal("47.50")
        assert ready.draft.discount_amount == Decimal("2.50")
        assert ready.draft.discount_reason == "Remise automatique 5%"

    def test_failure_reopens_payment_with_reason(self, settling):
        retry = transition(settling, SettlementFailed(reason="Stock insuffisant"))

        assert isinstance(retry, AwaitingPaymentMethod)
        assert retry.last_error == "Stock insuffisant"
        assert retry.draft == settling.draft

    def test_close_receipt_starts_new_cycle(self, settling):
        order = CertifiedOrder(total_amount=Decimal("50"))
        ready = transition(settling, SettlementSucceeded(order=order, points_earned=0, receipt=_receipt(Decimal("50"))))

        assert transition(ready, ReceiptClosed()) == CartEditing(table_number=4)


class TestCancellation:
    """Cancel is accepted before SETTLING only."""

    def test_cancel_from_pre_settlement_states(self, deciding):
        paying = transition(deciding, Skipped())

        for state in (CartEditing(table_number=4), deciding, paying):
            assert transition(state, Cancel()) == Cancelled(table_number=4)

    def test_cancel_refused_while_settling(self, deciding):
        settling = transition(transition(deciding, Skipped()), PaymentChosen(PaymentMethod.CB))

        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(settling, Cancel())

        assert exc_info.value.phase == "SETTLING"
        assert exc_info.value.event == "Cancel"


class TestInvalidTransitions:
    """Events outside their phase are refused."""

    @pytest.mark.parametrize(
        "event",
        [Confirmed(), Skipped(), PaymentChosen(PaymentMethod.CB), ReceiptClosed(), SettlementFailed("x")],
    )
    def test_cart_editing_refuses_non_pay_events(self, event):
        with pytest.raises(InvalidTransitionError):
            transition(CartEditing(table_number=1), event)

    def test_payment_step_refuses_discount_edits(self, deciding):
        paying = transition(deciding, Skipped())

        with pytest.raises(InvalidTransitionError):
            transition(paying, DiscountChanged(DiscountState()))

    def test_cancelled_is_terminal(self):
        with pytest.raises(InvalidTransitionError):
            transition(Cancelled(table_number=1), Cancel())

    def test_second_pay_refused(self, deciding, pay_event):
        with pytest.raises(InvalidTransitionError):
            transition(deciding, pay_event)
