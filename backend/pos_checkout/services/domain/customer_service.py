"""
Customer Directory Domain Service.

Adapter over the backend customer directory: search, phone lookup, creation,
selection for a checkout, loyalty redemption and loyalty rules.
"""

import unicodedata
from dataclasses import dataclass

from shared.config.constants import Limits
from shared.config.logging import customers_logger as logger, mask_phone
from shared.config.settings import Settings
from shared.utils.exceptions import (
    BackendError,
    BackendUnavailableError,
    RedemptionError,
    ValidationError,
)
from shared.utils.schemas import Customer, LoyaltyConfig
from pos_checkout.services.backend import BackendClient


def collation_key(text: str) -> str:
    """Accent- and case-insensitive sort/match key ("Émile" ~ "emile")."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


@dataclass(frozen=True)
class CustomerSelection:
    """
    Customer attached to a checkout.

    previous_points is the balance at selection time, before any redemption,
    and is the baseline for the points-earned delta after settlement.
    """

    customer: Customer
    previous_points: int

    @property
    def customer_id(self) -> str:
        return self.customer.id


class CustomerDirectory:
    """
    Domain service for customer records and loyalty.

    Usage:
        directory = CustomerDirectory(client, settings)
        matches = await directory.search("dupont")
        selection = directory.select(matches[0])
    """

    def __init__(self, client: BackendClient, settings: Settings):
        self._client = client
        self._settings = settings

    async def search(self, query: str | None = None) -> list[Customer]:
        """
        Case-insensitive substring match over name and phone, ordered by name.

        An empty query returns the whole directory.
        """
        customers = await self._client.list_customers()
        term = collation_key((query or "").strip()[: Limits.MAX_SEARCH_TERM_LENGTH])

        if term:
            customers = [
                c for c in customers
                if term in collation_key(c.name) or term in collation_key(c.phone)
            ]

        customers.sort(key=lambda c: (collation_key(c.name), c.name, c.id))
        logger.debug("Customer search", query_length=len(term), results=len(customers))
        return customers

    async def find_by_phone(self, phone: str) -> Customer | None:
        phone = (phone or "").strip()
        if not phone:
            raise ValidationError("Phone is required", field="phone")
        customer = await self._client.find_customer_by_phone(phone)
        if customer is None:
            logger.info("No customer for phone", phone=mask_phone(phone))
        return customer

    async def get(self, customer_id: str) -> Customer:
        return await self._client.get_customer(customer_id)

    async def create(self, name: str | None, phone: str | None) -> Customer:
        """Create a customer. Name and phone are both required."""
        name = (name or "").strip()
        phone = (phone or "").strip()

        if not name or not phone:
            raise ValidationError(
                "Name and phone are required",
                field="name" if not name else "phone",
            )
        if len(name) > Limits.MAX_NAME_LENGTH:
            raise ValidationError(f"Name must be at most {Limits.MAX_NAME_LENGTH} characters", field="name")
        if len(phone) > Limits.MAX_PHONE_LENGTH:
            raise ValidationError(f"Phone must be at most {Limits.MAX_PHONE_LENGTH} characters", field="phone")

        customer = await self._client.create_customer(name, phone)
        logger.info("Customer created", customer_id=customer.id, phone=mask_phone(phone))
        return customer

    def select(self, customer: Customer) -> CustomerSelection:
        """Attach a customer, snapshotting the current balance."""
        logger.info(
            "Customer selected",
            customer_id=customer.id,
            loyalty_points=customer.loyalty_points,
        )
        return CustomerSelection(customer=customer, previous_points=customer.loyalty_points)

    async def redeem(self, selection: CustomerSelection, points: int, config: LoyaltyConfig) -> None:
        """
        Debit points from the customer's balance on the backend.

        Raises:
            RedemptionError: points not a positive multiple of the step, above
                the balance, or rejected by the backend
        """
        step = config.redemption_step
        balance = selection.customer.loyalty_points

        if points <= 0 or points % step != 0:
            raise RedemptionError(
                f"Points must be redeemed in steps of {step}",
                customer_id=selection.customer_id,
                points=points,
            )
        if points > balance:
            raise RedemptionError(
                f"Customer only has {balance} points",
                customer_id=selection.customer_id,
                points=points,
                balance=balance,
            )

        try:
            result = await self._client.redeem_points(selection.customer_id, points)
        except BackendError as e:
            raise RedemptionError(
                e.server_message or "Loyalty points could not be redeemed",
                customer_id=selection.customer_id,
                points=points,
                upstream_status=e.upstream_status,
            ) from e

        logger.info(
            "Loyalty points redeemed",
            customer_id=selection.customer_id,
            points=points,
            discount_amount=str(result.discount_amount),
        )

    async def loyalty_config(self) -> LoyaltyConfig:
        """Backend loyalty rules, or the configured fallback when unavailable."""
        try:
            return await self._client.fetch_loyalty_config()
        except (BackendError, BackendUnavailableError) as e:
            logger.warning("Using fallback loyalty config", reason=e.detail)
            return LoyaltyConfig.fallback(self._settings)
