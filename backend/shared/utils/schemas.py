"""
Pydantic schemas for the backend order service wire format.

The backend speaks camelCase JSON; these models accept and emit it while
exposing snake_case attributes to Python code.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from shared.config.constants import PaymentMethod
from shared.config.settings import Settings


class BackendModel(BaseModel):
    """Base for every backend record: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        """Serialize to the backend's JSON shape (camelCase, no nulls)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Customers & Loyalty
# =============================================================================


class Customer(BackendModel):
    """Customer record owned by the backend directory."""

    id: str
    name: str
    phone: str
    loyalty_points: int = Field(default=0, ge=0)
    address: str | None = None
    city: str | None = None


class CreateCustomerRequest(BackendModel):
    name: str
    phone: str


class LoyaltyConfig(BackendModel):
    """Loyalty rules published by the backend (GET /customers/loyalty-config)."""

    points_per_euro: int = Field(ge=0)
    redemption_step: int = Field(gt=0)
    discount_per_redemption: Decimal = Field(ge=0)
    auto_discount_rate: Decimal = Field(ge=0)
    auto_discount_threshold: Decimal = Field(ge=0)

    @classmethod
    def fallback(cls, settings: Settings) -> "LoyaltyConfig":
        """Conservative rules used when the backend cannot provide its own."""
        return cls(
            points_per_euro=settings.fallback_points_per_euro,
            redemption_step=settings.fallback_redemption_step,
            discount_per_redemption=settings.fallback_discount_per_redemption,
            auto_discount_rate=settings.fallback_auto_discount_rate,
            auto_discount_threshold=settings.fallback_auto_discount_threshold,
        )


class RedeemPointsRequest(BackendModel):
    points: int = Field(gt=0)


class RedemptionResult(BackendModel):
    """Answer of POST /customers/{id}/redeem."""

    discount_amount: Decimal


# =============================================================================
# Orders
# =============================================================================


class OrderItem(BackendModel):
    """Order line as the backend wants it: product id and quantity only."""

    id: str
    quantity: int = Field(ge=1)


class OrderPayload(BackendModel):
    """
    Minimal order submitted at settlement.

    Subtotal and final total are deliberately absent: the backend prices the
    order from its own catalogue and decides on the auto-discount.
    """

    salesperson_id: str
    table_number: int
    payment_method: PaymentMethod
    customer_id: str | None = None
    discount_amount: Decimal = Decimal("0")
    discount_reason: str | None = None
    items: list[OrderItem]

    @field_serializer("discount_amount")
    def _serialize_discount(self, value: Decimal) -> float:
        return float(value)


class CertifiedOrder(BackendModel):
    """Order as persisted and priced by the backend."""

    id: str | None = None
    date: str | None = None
    table_number: int | None = None
    salesperson_id: str | None = None
    payment_method: str | None = None
    customer_id: str | None = None
    total_amount: Decimal
    discount_amount: Decimal = Decimal("0")
    discount_reason: str | None = None
    items: list[OrderItem] = Field(default_factory=list)

    @field_validator("discount_amount", mode="before")
    @classmethod
    def _null_discount_is_zero(cls, value):
        return Decimal("0") if value is None else value
