"""
Cart Domain Service.

Per-table carts and the registry of open tables. Everything here is
in-memory: the backend only learns about a cart when the order is settled.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from shared.config.constants import Limits
from shared.config.logging import tables_logger as logger
from shared.utils.exceptions import TableNotFoundError, ValidationError


@dataclass(frozen=True)
class Product:
    """Menu item as the terminal knows it (the catalogue lives in the backend)."""

    id: str
    name: str
    price: Decimal


@dataclass(frozen=True)
class CartLine:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int = 1

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


CartListener = Callable[[tuple[CartLine, ...]], None]


class Cart:
    """
    Mutable line-item collection for one table.

    A product appears at most once; adding it again merges quantities.
    Every mutation notifies the listener with the new snapshot.

    Usage:
        cart = Cart()
        cart.add(Product("p1", "Margherita", Decimal("9.50")))
        cart.total()  # Decimal("9.50")
    """

    def __init__(self, on_change: CartListener | None = None):
        # Insertion-ordered; keyed by product id
        self._lines: dict[str, CartLine] = {}
        self._on_change = on_change

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines.values())

    def add(self, product: Product) -> CartLine:
        """Append the product with quantity 1, or increment its existing line."""
        current = self._lines.get(product.id)
        if current is None:
            line = CartLine(
                product_id=product.id,
                name=product.name,
                unit_price=product.price,
            )
        else:
            line = CartLine(
                product_id=current.product_id,
                name=current.name,
                unit_price=current.unit_price,
                quantity=current.quantity + 1,
            )
        self._lines[product.id] = line
        self._notify()
        return line

    def remove(self, product_id: str) -> CartLine | None:
        """
        Decrement the line for product_id, deleting it at quantity 1.

        Removing an absent product is a no-op and returns None.
        """
        current = self._lines.get(product_id)
        if current is None:
            return None

        if current.quantity > 1:
            line = CartLine(
                product_id=current.product_id,
                name=current.name,
                unit_price=current.unit_price,
                quantity=current.quantity - 1,
            )
            self._lines[product_id] = line
        else:
            del self._lines[product_id]
            line = None
        self._notify()
        return line

    def total(self) -> Decimal:
        # Recomputed on every read
        return sum((line.line_total for line in self._lines.values()), Decimal("0"))

    def snapshot(self) -> tuple[CartLine, ...]:
        """Immutable copy of the lines; later edits never reach it."""
        return self.lines

    def clear(self) -> None:
        if not self._lines:
            return
        self._lines.clear()
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())


@dataclass
class Table:
    """An open table and its cart."""

    number: int
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime | None = None
    cart: Cart = field(init=False)

    def __post_init__(self) -> None:
        self.cart = Cart(on_change=self._cart_changed)

    def _cart_changed(self, lines: tuple[CartLine, ...]) -> None:
        self.updated_at = datetime.now(timezone.utc)
        logger.debug(
            "Cart updated",
            table_number=self.number,
            line_count=len(lines),
            item_count=sum(line.quantity for line in lines),
        )


@dataclass(frozen=True)
class TableSummary:
    """Row of the open-tables overview."""

    number: int
    line_count: int
    item_count: int
    total: Decimal
    opened_at: datetime


class TableRegistry:
    """
    Set of open tables, keyed by table number.

    Usage:
        registry = TableRegistry()
        table = registry.open_table(4)
        table.cart.add(product)
        registry.release(4)  # after settlement
    """

    def __init__(self):
        self._tables: dict[int, Table] = {}

    def __contains__(self, number: int) -> bool:
        return number in self._tables

    def open_table(self, number: int) -> Table:
        """Open the table, or return it if already open."""
        if not Limits.MIN_TABLE_NUMBER <= number <= Limits.MAX_TABLE_NUMBER:
            raise ValidationError(
                f"Table number must be between {Limits.MIN_TABLE_NUMBER} and {Limits.MAX_TABLE_NUMBER}",
                table_number=number,
            )

        table = self._tables.get(number)
        if table is None:
            table = Table(number=number)
            self._tables[number] = table
            logger.info("Table opened", table_number=number)
        return table

    def get(self, number: int) -> Table:
        table = self._tables.get(number)
        if table is None:
            raise TableNotFoundError(number)
        return table

    def release(self, number: int) -> None:
        """Clear the table's cart and drop it from the open set."""
        table = self._tables.pop(number, None)
        if table is None:
            return
        table.cart.clear()
        logger.info("Table released", table_number=number)

    def overview(self) -> list[TableSummary]:
        return [
            TableSummary(
                number=table.number,
                line_count=len(table.cart),
                item_count=sum(line.quantity for line in table.cart.lines),
                total=table.cart.total(),
                opened_at=table.opened_at,
            )
            for table in sorted(self._tables.values(), key=lambda t: t.number)
        ]
