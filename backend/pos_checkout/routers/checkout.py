"""
Checkout router.
Drives the checkout of one table: pay, customer/discount step, payment,
receipt. Every endpoint answers with the resulting checkout state.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from shared.config.constants import Limits
from pos_checkout.core.dependencies import get_coordinator
from pos_checkout.routers.schemas import (
    BeginCheckoutInput,
    CheckoutOutput,
    DiscountInput,
    PaymentInput,
    SelectCustomerInput,
)
from pos_checkout.services.domain import CheckoutCoordinator, DiscountState


router = APIRouter(prefix="/api/tables/{table_number}/checkout", tags=["checkout"])

TableNumber = Annotated[int, Path(ge=Limits.MIN_TABLE_NUMBER, le=Limits.MAX_TABLE_NUMBER)]
Coordinator = Annotated[CheckoutCoordinator, Depends(get_coordinator)]


@router.post("", response_model=CheckoutOutput)
async def begin_checkout(
    body: BeginCheckoutInput,
    table_number: TableNumber,
    coordinator: Coordinator,
) -> CheckoutOutput:
    """
    "Pay": freeze a copy of the cart and open the customer/discount step.

    409 if the table already has a checkout open, 400 on an empty cart.
    """
    state = await coordinator.begin(table_number, body.salesperson_id)
    return CheckoutOutput.from_state(state)


@router.get("", response_model=CheckoutOutput)
def get_checkout(table_number: TableNumber, coordinator: Coordinator) -> CheckoutOutput:
    return CheckoutOutput.from_state(coordinator.state(table_number))


@router.put("/customer", response_model=CheckoutOutput)
async def select_customer(
    body: SelectCustomerInput,
    table_number: TableNumber,
    coordinator: Coordinator,
) -> CheckoutOutput:
    """Attach a customer; their current balance becomes the points baseline."""
    state = await coordinator.select_customer(table_number, body.customer_id)
    return CheckoutOutput.from_state(state)


@router.delete("/customer", response_model=CheckoutOutput)
def clear_customer(table_number: TableNumber, coordinator: Coordinator) -> CheckoutOutput:
    return CheckoutOutput.from_state(coordinator.clear_customer(table_number))


@router.put("/discount", response_model=CheckoutOutput)
def change_discount(
    body: DiscountInput,
    table_number: TableNumber,
    coordinator: Coordinator,
) -> CheckoutOutput:
    """Update redemption and manual discount inputs; returns the new breakdown."""
    discount = DiscountState.from_input(
        points_to_redeem=body.points_to_redeem,
        manual_type=body.manual_type,
        manual_value=body.manual_value,
    )
    return CheckoutOutput.from_state(coordinator.change_discount(table_number, discount))


@router.post("/confirm", response_model=CheckoutOutput)
async def confirm_checkout(table_number: TableNumber, coordinator: Coordinator) -> CheckoutOutput:
    """Redeem points if requested, then commit the discount. 409 if redemption fails."""
    return CheckoutOutput.from_state(await coordinator.confirm(table_number))


@router.post("/skip", response_model=CheckoutOutput)
def skip_customer_step(table_number: TableNumber, coordinator: Coordinator) -> CheckoutOutput:
    """Go to payment with no customer and no discount."""
    return CheckoutOutput.from_state(coordinator.skip(table_number))


@router.post("/payment", response_model=CheckoutOutput)
async def pay(
    body: PaymentInput,
    table_number: TableNumber,
    coordinator: Coordinator,
) -> CheckoutOutput:
    """
    Submit the order with the chosen payment method.

    502 with the backend's message if the order is rejected; the payment
    step stays open and GET returns the reason in lastError.
    """
    return CheckoutOutput.from_state(await coordinator.pay(table_number, body.method))


@router.post("/cancel", response_model=CheckoutOutput)
def cancel_checkout(table_number: TableNumber, coordinator: Coordinator) -> CheckoutOutput:
    """Discard the draft; refused while the order is being settled."""
    return CheckoutOutput.from_state(coordinator.cancel(table_number))


@router.post("/close", response_model=CheckoutOutput)
def close_receipt(table_number: TableNumber, coordinator: Coordinator) -> CheckoutOutput:
    return CheckoutOutput.from_state(coordinator.close(table_number))
