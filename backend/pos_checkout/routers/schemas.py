"""
Pydantic schemas for the terminal API.
Centralized to avoid circular imports between routers.

The POS front-end speaks camelCase JSON like the backend does. Money is
rounded to cents here, at the display boundary, and serialized as a string.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.config.constants import CheckoutPhase, DiscountType, Limits, PaymentMethod
from shared.utils.schemas import Customer
from pos_checkout.services.domain import (
    AwaitingCustomerDecision,
    AwaitingPaymentMethod,
    CartLine,
    CheckoutState,
    DiscountBreakdown,
    Receipt,
    ReceiptReady,
    TableSummary,
    TransactionDraft,
    can_redeem,
    round_money,
)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Tables & Cart
# =============================================================================


class ProductInput(ApiModel):
    product_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    unit_price: Decimal = Field(ge=0)


class RemoveItemInput(ApiModel):
    product_id: str = Field(min_length=1)


class CartLineOutput(ApiModel):
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal

    @classmethod
    def from_line(cls, line: CartLine) -> "CartLineOutput":
        return cls(
            product_id=line.product_id,
            name=line.name,
            unit_price=round_money(line.unit_price),
            quantity=line.quantity,
            line_total=round_money(line.line_total),
        )


class CartOutput(ApiModel):
    table_number: int
    lines: list[CartLineOutput]
    total: Decimal
    phase: CheckoutPhase
    # True while a checkout is open: edits are refused
    locked: bool


class TableSummaryOutput(ApiModel):
    number: int
    line_count: int
    item_count: int
    total: Decimal
    opened_at: datetime
    phase: CheckoutPhase

    @classmethod
    def from_summary(cls, summary: TableSummary, phase: CheckoutPhase) -> "TableSummaryOutput":
        return cls(
            number=summary.number,
            line_count=summary.line_count,
            item_count=summary.item_count,
            total=round_money(summary.total),
            opened_at=summary.opened_at,
            phase=phase,
        )


# =============================================================================
# Customers
# =============================================================================


class CustomerCreateInput(ApiModel):
    # Optional so that blanks reach the directory and come back as a 400
    name: str | None = None
    phone: str | None = None


# =============================================================================
# Checkout
# =============================================================================


class BeginCheckoutInput(ApiModel):
    salesperson_id: str = Field(min_length=1)


class SelectCustomerInput(ApiModel):
    customer_id: str = Field(min_length=1)


class DiscountInput(ApiModel):
    points_to_redeem: int = 0
    manual_type: DiscountType = DiscountType.PERCENT
    # Raw operator input; unusable values count as no discount
    manual_value: str | float | None = None


class PaymentInput(ApiModel):
    method: PaymentMethod


class DraftOutput(ApiModel):
    checkout_id: str
    table_number: int
    salesperson_id: str
    subtotal: Decimal
    lines: list[CartLineOutput]
    customer: Customer | None = None
    previous_points: int | None = None
    points_to_redeem: int
    discount_amount: Decimal
    discount_reason: str | None = None
    final_total: Decimal | None = None
    payment_method: PaymentMethod | None = None
    points_earned: int

    @classmethod
    def from_draft(cls, draft: TransactionDraft) -> "DraftOutput":
        return cls(
            checkout_id=draft.checkout_id,
            table_number=draft.table_number,
            salesperson_id=draft.salesperson_id,
            subtotal=round_money(draft.subtotal),
            lines=[CartLineOutput.from_line(line) for line in draft.lines],
            customer=draft.customer.customer if draft.customer else None,
            previous_points=draft.previous_points,
            points_to_redeem=draft.points_to_redeem,
            discount_amount=round_money(draft.discount_amount),
            discount_reason=draft.discount_reason,
            final_total=round_money(draft.final_total) if draft.final_total is not None else None,
            payment_method=draft.payment_method,
            points_earned=draft.points_earned,
        )


class BreakdownOutput(ApiModel):
    subtotal: Decimal
    points_to_redeem: int
    max_redeemable: int
    can_redeem: bool
    loyalty_discount: Decimal
    manual_discount: Decimal
    total_discount: Decimal
    final_total: Decimal
    auto_discount_applies: bool
    auto_discount_rate: Decimal
    auto_discount_preview: Decimal
    reason: str | None = None


class ReceiptLineOutput(ApiModel):
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class ReceiptOutput(ApiModel):
    shop_name: str
    shop_address: str
    shop_phone: str
    footer: str
    order_id: str | None = None
    issued_at: str
    table_number: int
    salesperson_id: str
    lines: list[ReceiptLineOutput]
    subtotal: Decimal
    discount_amount: Decimal
    discount_reason: str | None = None
    total: Decimal
    payment_method: str | None = None
    customer_name: str | None = None
    points_earned: int
    loyalty_balance: int | None = None
    warnings: list[str] = []

    @classmethod
    def from_receipt(cls, receipt: Receipt) -> "ReceiptOutput":
        return cls(
            shop_name=receipt.shop_name,
            shop_address=receipt.shop_address,
            shop_phone=receipt.shop_phone,
            footer=receipt.footer,
            order_id=receipt.order_id,
            issued_at=receipt.issued_at,
            table_number=receipt.table_number,
            salesperson_id=receipt.salesperson_id,
            lines=[
                ReceiptLineOutput(
                    product_id=line.product_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=round_money(line.unit_price),
                    line_total=round_money(line.line_total),
                )
                for line in receipt.lines
            ],
            subtotal=round_money(receipt.subtotal),
            discount_amount=round_money(receipt.discount_amount),
            discount_reason=receipt.discount_reason,
            total=round_money(receipt.total),
            payment_method=receipt.payment_method,
            customer_name=receipt.customer_name,
            points_earned=receipt.points_earned,
            loyalty_balance=receipt.loyalty_balance,
            warnings=list(receipt.warnings),
        )


class CheckoutOutput(ApiModel):
    table_number: int
    phase: CheckoutPhase
    draft: DraftOutput | None = None
    discount: DiscountInput | None = None
    breakdown: BreakdownOutput | None = None
    last_error: str | None = None
    receipt: ReceiptOutput | None = None

    @classmethod
    def from_state(cls, state: CheckoutState) -> "CheckoutOutput":
        output = cls(table_number=state.table_number, phase=state.phase)
        draft = getattr(state, "draft", None)
        if draft is not None:
            output.draft = DraftOutput.from_draft(draft)

        if isinstance(state, AwaitingCustomerDecision):
            if state.selection is not None:
                output.draft.customer = state.selection.customer
                output.draft.previous_points = state.selection.previous_points
            output.discount = DiscountInput(
                points_to_redeem=state.discount.points_to_redeem,
                manual_type=state.discount.manual_type,
                manual_value=str(state.discount.manual_value),
            )
            output.breakdown = _breakdown_output(state)
        elif isinstance(state, AwaitingPaymentMethod):
            output.last_error = state.last_error
        elif isinstance(state, ReceiptReady):
            output.receipt = ReceiptOutput.from_receipt(state.receipt)
        return output


def _breakdown_output(state: AwaitingCustomerDecision) -> BreakdownOutput:
    breakdown: DiscountBreakdown = state.breakdown
    shown = breakdown.display()
    balance = state.selection.customer.loyalty_points if state.selection else 0
    return BreakdownOutput(
        subtotal=shown["subtotal"],
        points_to_redeem=breakdown.points_to_redeem,
        max_redeemable=breakdown.max_redeemable,
        can_redeem=state.selection is not None and can_redeem(balance, state.config.redemption_step),
        loyalty_discount=shown["loyalty_discount"],
        manual_discount=shown["manual_discount"],
        total_discount=shown["total_discount"],
        final_total=shown["final_total"],
        auto_discount_applies=breakdown.auto_discount_applies,
        auto_discount_rate=state.config.auto_discount_rate,
        auto_discount_preview=shown["auto_discount_preview"],
        reason=breakdown.reason,
    )
