"""
Tests for the Cart and TableRegistry domain services.
"""

from decimal import Decimal

import pytest

from pos_checkout.services.domain import Cart, TableRegistry
from shared.utils.exceptions import TableNotFoundError, ValidationError


class TestCart:
    """Tests for line merging, removal and totals."""

    def test_add_new_product_appends_line_with_quantity_one(self, products):
        cart = Cart()

        line = cart.add(products["margherita"])

        assert line.quantity == 1
        assert len(cart) == 1
        assert cart.total() == Decimal("9.50")

    def test_add_existing_product_merges_quantity(self, products):
        """A product appears at most once."""
        cart = Cart()
        cart.add(products["margherita"])
        cart.add(products["coca"])
        cart.add(products["margherita"])

        assert len(cart) == 2
        assert cart.lines[0].product_id == "margherita"
        assert cart.lines[0].quantity == 2
        assert cart.total() == Decimal("22.50")

    def test_remove_decrements_then_deletes(self, products):
        cart = Cart()
        cart.add(products["regina"])
        cart.add(products["regina"])

        line = cart.remove("regina")
        assert line.quantity == 1
        assert cart.total() == Decimal("12.00")

        assert cart.remove("regina") is None
        assert len(cart) == 0
        assert cart.total() == Decimal("0")

    def test_remove_absent_product_is_noop(self, products):
        changes = []
        cart = Cart(on_change=changes.append)
        cart.add(products["coca"])

        assert cart.remove("unknown") is None

        assert len(cart) == 1
        assert len(changes) == 1

    def test_total_follows_every_mutation(self, products):
        """The total is never a stale value."""
        cart = Cart()
        totals = []
        for product in (products["margherita"], products["coca"], products["margherita"]):
            cart.add(product)
            totals.append(cart.total())
        cart.remove("margherita")
        totals.append(cart.total())

        assert totals == [Decimal("9.50"), Decimal("13.00"), Decimal("22.50"), Decimal("13.00")]

    def test_listener_receives_snapshot(self, products):
        snapshots = []
        cart = Cart(on_change=snapshots.append)

        cart.add(products["margherita"])
        cart.add(products["margherita"])

        assert [s[0].quantity for s in snapshots] == [1, 2]

    def test_snapshot_is_isolated_from_later_edits(self, products):
        cart = Cart()
        cart.add(products["tiramisu"])
        snapshot = cart.snapshot()

        cart.add(products["tiramisu"])
        cart.add(products["coca"])

        assert len(snapshot) == 1
        assert snapshot[0].quantity == 1

    def test_clear_empties_cart(self, products):
        cart = Cart()
        cart.add(products["coca"])

        cart.clear()

        assert not cart
        assert cart.total() == Decimal("0")


class TestTableRegistry:
    """Tests for opening, releasing and listing tables."""

    def test_open_table_is_idempotent(self, products):
        registry = TableRegistry()
        table = registry.open_table(4)
        table.cart.add(products["coca"])

        again = registry.open_table(4)

        assert again is table
        assert len(again.cart) == 1

    @pytest.mark.parametrize("number", [0, -1, 1000])
    def test_open_table_rejects_out_of_range_numbers(self, number):
        with pytest.raises(ValidationError):
            TableRegistry().open_table(number)

    def test_get_unknown_table_raises(self):
        with pytest.raises(TableNotFoundError):
            TableRegistry().get(7)

    def test_cart_change_touches_table(self, products):
        table = TableRegistry().open_table(2)
        assert table.updated_at is None

        table.cart.add(products["coca"])

        assert table.updated_at is not None

    def test_release_clears_cart_and_closes_table(self, products):
        registry = TableRegistry()
        table = registry.open_table(3)
        table.cart.add(products["regina"])

        registry.release(3)

        assert 3 not in registry
        assert not table.cart
        with pytest.raises(TableNotFoundError):
            registry.get(3)

    def test_release_unknown_table_is_noop(self):
        TableRegistry().release(9)

    def test_overview_sorted_with_totals(self, products):
        registry = TableRegistry()
        registry.open_table(12).cart.add(products["menu-50"])
        five = registry.open_table(5)
        five.cart.add(products["coca"])
        five.cart.add(products["coca"])
        five.cart.add(products["tiramisu"])

        overview = registry.overview()

        assert [row.number for row in overview] == [5, 12]
        assert overview[0].line_count == 2
        assert overview[0].item_count == 3
        assert overview[0].total == Decimal("13.00")
        assert overview[1].total == Decimal("50.00")
