"""
Tables router.
Open tables and edit their carts.

Cart edits are refused (409) while the table has a checkout open: the draft
already holds its own copy of the cart.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from shared.config.constants import CheckoutPhase, Limits
from shared.config.logging import tables_logger as logger
from pos_checkout.core.dependencies import get_coordinator, get_registry
from pos_checkout.routers.schemas import (
    CartLineOutput,
    CartOutput,
    ProductInput,
    RemoveItemInput,
    TableSummaryOutput,
)
from pos_checkout.services.domain import (
    CheckoutCoordinator,
    Product,
    Table,
    TableRegistry,
    round_money,
)


router = APIRouter(prefix="/api/tables", tags=["tables"])

TableNumber = Annotated[int, Path(ge=Limits.MIN_TABLE_NUMBER, le=Limits.MAX_TABLE_NUMBER)]


def _cart_output(table: Table, coordinator: CheckoutCoordinator) -> CartOutput:
    phase = coordinator.phase_of(table.number)
    return CartOutput(
        table_number=table.number,
        lines=[CartLineOutput.from_line(line) for line in table.cart.lines],
        total=round_money(table.cart.total()),
        phase=phase,
        locked=phase != CheckoutPhase.CART_EDITING,
    )


@router.get("", response_model=list[TableSummaryOutput])
def list_open_tables(
    registry: TableRegistry = Depends(get_registry),
    coordinator: CheckoutCoordinator = Depends(get_coordinator),
) -> list[TableSummaryOutput]:
    """Open tables sorted by number, with their running totals."""
    return [
        TableSummaryOutput.from_summary(summary, coordinator.phase_of(summary.number))
        for summary in registry.overview()
    ]


@router.post("/{table_number}/open", response_model=CartOutput)
def open_table(
    table_number: TableNumber,
    registry: TableRegistry = Depends(get_registry),
    coordinator: CheckoutCoordinator = Depends(get_coordinator),
) -> CartOutput:
    """Open the table (idempotent)."""
    table = registry.open_table(table_number)
    return _cart_output(table, coordinator)


@router.get("/{table_number}/cart", response_model=CartOutput)
def get_cart(
    table_number: TableNumber,
    registry: TableRegistry = Depends(get_registry),
    coordinator: CheckoutCoordinator = Depends(get_coordinator),
) -> CartOutput:
    return _cart_output(registry.get(table_number), coordinator)


@router.post("/{table_number}/cart/add", response_model=CartOutput)
def add_to_cart(
    body: ProductInput,
    table_number: TableNumber,
    registry: TableRegistry = Depends(get_registry),
    coordinator: CheckoutCoordinator = Depends(get_coordinator),
) -> CartOutput:
    """Add one unit of a product."""
    table = registry.get(table_number)
    coordinator.ensure_cart_editable(table_number)
    table.cart.add(Product(id=body.product_id, name=body.name, price=body.unit_price))
    logger.info("Item added", table_number=table_number, product_id=body.product_id)
    return _cart_output(table, coordinator)


@router.post("/{table_number}/cart/remove", response_model=CartOutput)
def remove_from_cart(
    body: RemoveItemInput,
    table_number: TableNumber,
    registry: TableRegistry = Depends(get_registry),
    coordinator: CheckoutCoordinator = Depends(get_coordinator),
) -> CartOutput:
    """Remove one unit of a product. Unknown products are ignored."""
    table = registry.get(table_number)
    coordinator.ensure_cart_editable(table_number)
    table.cart.remove(body.product_id)
    return _cart_output(table, coordinator)
