"""
Property-based Testing with Hypothesis.

Invariants of the discount calculator and of the cart, checked over
generated inputs.
"""

from decimal import Decimal

from hypothesis import given, settings, strategies as st

from shared.config.constants import DiscountType
from shared.utils.schemas import LoyaltyConfig
from pos_checkout.services.domain import Cart, DiscountState, Product, compute_discounts

money = st.decimals(min_value=Decimal("0"), max_value=Decimal("10000"), places=2, allow_nan=False, allow_infinity=False)
rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("200"), places=2, allow_nan=False, allow_infinity=False)

# Field names go through model_validate: the model signature only exposes the camelCase aliases
configs = st.fixed_dictionaries(
    {
        "points_per_euro": st.integers(min_value=0, max_value=10),
        "redemption_step": st.integers(min_value=1, max_value=500),
        "discount_per_redemption": money,
        "auto_discount_rate": rates,
        "auto_discount_threshold": money,
    }
).map(LoyaltyConfig.model_validate)

discount_states = st.builds(
    DiscountState,
    points_to_redeem=st.integers(min_value=-1000, max_value=100_000),
    manual_type=st.sampled_from(list(DiscountType)),
    manual_value=st.one_of(money, rates),
)

customer_points = st.one_of(st.none(), st.integers(min_value=0, max_value=100_000))


class TestDiscountProperties:
    """Property-based tests for the calculator."""

    @given(subtotal=money, config=configs, state=discount_states, points=customer_points)
    @settings(max_examples=200)
    def test_final_total_within_bounds(self, subtotal, config, state, points):
        """Property: 0 <= finalTotal <= subtotal."""
        result = compute_discounts(subtotal, config, state, customer_points=points)

        assert Decimal("0") <= result.final_total <= subtotal
        assert Decimal("0") <= result.total_discount <= subtotal
        assert result.final_total == subtotal - result.total_discount

    @given(subtotal=money, config=configs, state=discount_states, points=customer_points)
    @settings(max_examples=100)
    def test_recomputation_is_idempotent(self, subtotal, config, state, points):
        """Property: identical inputs give identical outputs."""
        first = compute_discounts(subtotal, config, state, customer_points=points)
        second = compute_discounts(subtotal, config, state, customer_points=points)

        assert first == second

    @given(subtotal=money, config=configs, state=discount_states, points=st.integers(min_value=0, max_value=100_000))
    @settings(max_examples=200)
    def test_redemption_is_clamped_to_step_multiple(self, subtotal, config, state, points):
        """Property: redeemed points are a multiple of the step within floor(points/step)*step."""
        result = compute_discounts(subtotal, config, state, customer_points=points)
        cap = (points // config.redemption_step) * config.redemption_step

        assert result.points_to_redeem % config.redemption_step == 0
        assert 0 <= result.points_to_redeem <= cap
        assert result.points_to_redeem <= max(state.points_to_redeem, 0)
        assert result.max_redeemable == cap

    @given(subtotal=money, config=configs, state=discount_states, points=customer_points)
    @settings(max_examples=100)
    def test_auto_hint_only_without_discount(self, subtotal, config, state, points):
        """Property: the auto-discount hint never coexists with a local discount."""
        result = compute_discounts(subtotal, config, state, customer_points=points)

        if result.auto_discount_applies:
            assert result.total_discount == 0
            assert subtotal > config.auto_discount_threshold
        assert (result.reason is None) == (result.loyalty_discount == 0 and result.manual_discount == 0)


class TestCartProperties:
    """Property-based tests for the cart."""

    @given(
        operations=st.lists(
            st.tuples(st.booleans(), st.sampled_from(["a", "b", "c"])),
            max_size=40,
        )
    )
    @settings(max_examples=100)
    def test_total_matches_lines_after_any_edit_sequence(self, operations):
        """Property: total == sum(unit price x quantity), quantities stay >= 1."""
        catalogue = {
            "a": Product("a", "A", Decimal("9.50")),
            "b": Product("b", "B", Decimal("3.20")),
            "c": Product("c", "C", Decimal("12.00")),
        }
        cart = Cart()
        expected: dict[str, int] = {}

        for is_add, product_id in operations:
            if is_add:
                cart.add(catalogue[product_id])
                expected[product_id] = expected.get(product_id, 0) + 1
            else:
                cart.remove(product_id)
                if expected.get(product_id, 0) > 1:
                    expected[product_id] -= 1
                else:
                    expected.pop(product_id, None)

        assert {line.product_id: line.quantity for line in cart.lines} == expected
        assert all(line.quantity >= 1 for line in cart.lines)
        assert cart.total() == sum(
            (catalogue[pid].price * qty for pid, qty in expected.items()), Decimal("0")
        )
