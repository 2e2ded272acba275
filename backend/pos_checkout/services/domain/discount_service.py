"""
Discount & Loyalty Calculator.

Pure functions: the same inputs always give the same breakdown, nothing is
memoized and nothing calls out. All amounts stay at full Decimal precision;
round_money() is applied only when a value is displayed or emitted.

Rules (parameterized by the backend's LoyaltyConfig):
- loyalty discount = (points_to_redeem / redemption_step) * discount_per_redemption,
  only with a customer; points are rounded down to a multiple of the step
  and capped by the balance
- manual discount: PERCENT -> min(subtotal * value / 100, subtotal),
  FIXED -> min(value, subtotal); unusable values count as 0
- total discount = min(loyalty + manual, subtotal)
- final total = max(subtotal - total discount, 0)
- the auto-discount is a hint only: it applies server-side when the subtotal
  exceeds the threshold and no other discount was chosen
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from shared.config.constants import DISCOUNT_REASON_SEPARATOR, MONEY_QUANTUM, DiscountType
from shared.utils.schemas import LoyaltyConfig

ZERO = Decimal("0")


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half-up. Display and emission only."""
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def parse_amount(raw: Any) -> Decimal:
    """
    Parse operator input into a non-negative Decimal.

    Never raises: blanks, garbage, negatives, NaN and infinities all give 0.
    """
    if raw is None or isinstance(raw, bool):
        return ZERO
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip().replace(",", ".")
        if not text:
            return ZERO
        try:
            value = Decimal(text)
        except InvalidOperation:
            return ZERO
    if not value.is_finite() or value < 0:
        return ZERO
    return value


def max_redeemable(balance: int, step: int) -> int:
    """Largest multiple of step not exceeding the balance."""
    if balance <= 0 or step <= 0:
        return 0
    return (balance // step) * step


def can_redeem(balance: int, step: int) -> bool:
    return step > 0 and balance >= step


def clamp_points(requested: int, balance: int, step: int) -> int:
    """Round requested points down to a multiple of step, capped by the balance."""
    if requested <= 0:
        return 0
    return max_redeemable(min(requested, balance), step)


@dataclass(frozen=True)
class DiscountState:
    """Operator inputs of the customer/discount step."""

    points_to_redeem: int = 0
    manual_type: DiscountType = DiscountType.PERCENT
    manual_value: Decimal = ZERO

    @classmethod
    def from_input(
        cls,
        points_to_redeem: Any = 0,
        manual_type: DiscountType | str = DiscountType.PERCENT,
        manual_value: Any = None,
    ) -> "DiscountState":
        try:
            points = int(points_to_redeem or 0)
        except (TypeError, ValueError):
            points = 0
        return cls(
            points_to_redeem=max(points, 0),
            manual_type=DiscountType(manual_type),
            manual_value=parse_amount(manual_value),
        )


@dataclass(frozen=True)
class DiscountBreakdown:
    """Advisory numbers shown while the operator decides. Full precision."""

    subtotal: Decimal
    points_to_redeem: int
    loyalty_discount: Decimal
    manual_discount: Decimal
    total_discount: Decimal
    final_total: Decimal
    max_redeemable: int
    auto_discount_applies: bool
    auto_discount_preview: Decimal
    reason: str | None

    def display(self) -> dict[str, Decimal]:
        """Monetary fields rounded for the screen."""
        return {
            "subtotal": round_money(self.subtotal),
            "loyalty_discount": round_money(self.loyalty_discount),
            "manual_discount": round_money(self.manual_discount),
            "total_discount": round_money(self.total_discount),
            "final_total": round_money(self.final_total),
            "auto_discount_preview": round_money(self.auto_discount_preview),
        }


def _format_rate(value: Decimal) -> str:
    # 10.00 -> "10", 12.50 -> "12.5"
    return format(value.normalize(), "f")


def build_reason(
    points_to_redeem: int,
    loyalty_discount: Decimal,
    manual_type: DiscountType,
    manual_value: Decimal,
    manual_discount: Decimal,
    currency: str = "€",
) -> str | None:
    """Human-readable description of each active source, or None."""
    parts = []
    if loyalty_discount > 0:
        parts.append(f"Fidélité: {points_to_redeem} pts (-{round_money(loyalty_discount)}{currency})")
    if manual_discount > 0:
        if manual_type == DiscountType.PERCENT:
            parts.append(f"Remise {_format_rate(manual_value)}% (-{round_money(manual_discount)}{currency})")
        else:
            parts.append(f"Remise fixe (-{round_money(manual_discount)}{currency})")
    return DISCOUNT_REASON_SEPARATOR.join(parts) or None


def compute_discounts(
    subtotal: Decimal,
    config: LoyaltyConfig,
    state: DiscountState,
    customer_points: int | None = None,
    currency: str = "€",
) -> DiscountBreakdown:
    """
    Compute the full discount breakdown.

    Args:
        subtotal: Cart subtotal (>= 0)
        config: Loyalty rules in effect for this checkout
        state: Operator inputs
        customer_points: Balance of the selected customer, None without customer
    """
    subtotal = max(subtotal, ZERO)
    step = config.redemption_step

    if customer_points is None:
        points = 0
        redeemable = 0
    else:
        points = clamp_points(state.points_to_redeem, customer_points, step)
        redeemable = max_redeemable(customer_points, step)

    loyalty_discount = Decimal(points) / Decimal(step) * config.discount_per_redemption

    if state.manual_type == DiscountType.PERCENT:
        manual_discount = min(subtotal * state.manual_value / Decimal(100), subtotal)
    else:
        manual_discount = min(state.manual_value, subtotal)

    total_discount = min(loyalty_discount + manual_discount, subtotal)
    final_total = max(subtotal - total_discount, ZERO)

    return DiscountBreakdown(
        subtotal=subtotal,
        points_to_redeem=points,
        loyalty_discount=loyalty_discount,
        manual_discount=manual_discount,
        total_discount=total_discount,
        final_total=final_total,
        max_redeemable=redeemable,
        auto_discount_applies=subtotal > config.auto_discount_threshold and total_discount == 0,
        auto_discount_preview=subtotal * config.auto_discount_rate / Decimal(100),
        reason=build_reason(
            points,
            loyalty_discount,
            state.manual_type,
            state.manual_value,
            manual_discount,
            currency,
        ),
    )
