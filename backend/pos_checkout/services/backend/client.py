"""
Async client for the backend order service.

Every call goes through the circuit breaker. Transport failures and 5xx
answers surface as BackendUnavailableError / BackendError; 4xx answers surface
as BackendError carrying the server's own message so callers can show it to
the operator.
"""

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter

from shared.config.logging import backend_logger as logger
from shared.config.settings import Settings, get_settings
from shared.infrastructure.correlation import outgoing_headers
from shared.utils.exceptions import (
    BackendError,
    BackendUnavailableError,
    CustomerNotFoundError,
)
from shared.utils.schemas import (
    CertifiedOrder,
    CreateCustomerRequest,
    Customer,
    LoyaltyConfig,
    OrderPayload,
    RedeemPointsRequest,
    RedemptionResult,
)
from .circuit_breaker import CircuitBreaker, CircuitBreakerError

ModelT = TypeVar("ModelT", bound=BaseModel)

_customer_list = TypeAdapter(list[Customer])


def server_message(response: httpx.Response) -> str | None:
    """Extract the human-readable error the backend sent, if any."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] or None

    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


class BackendClient:
    """Thin typed wrapper over the order service REST API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self.breaker = breaker or CircuitBreaker.from_settings("order-service", get_settings())

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "BackendClient":
        return cls(
            base_url=settings.backend_api_url,
            timeout=settings.backend_timeout_seconds,
            breaker=CircuitBreaker.from_settings("order-service", settings),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            async with self.breaker.call():
                response = await self._http.request(
                    method,
                    path,
                    json=json,
                    params=params,
                    headers=outgoing_headers(),
                )
                if response.status_code >= 500:
                    raise BackendError(operation, response.status_code, server_message(response))
        except CircuitBreakerError as e:
            raise BackendUnavailableError(operation, "circuit open", retry_after=e.retry_after) from e
        except httpx.HTTPError as e:
            raise BackendUnavailableError(operation, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            raise BackendError(operation, response.status_code, server_message(response))

        logger.debug("Backend call ok", operation=operation, status_code=response.status_code)
        return response

    @staticmethod
    def _parse(model: type[ModelT], response: httpx.Response, operation: str) -> ModelT:
        try:
            return model.model_validate(response.json())
        except ValueError as e:
            raise BackendError(operation, response.status_code, f"malformed response: {e}") from e

    # -------------------------------------------------------------------------
    # Loyalty
    # -------------------------------------------------------------------------

    async def fetch_loyalty_config(self) -> LoyaltyConfig:
        response = await self._request("GET", "/customers/loyalty-config", "loyalty config fetch")
        return self._parse(LoyaltyConfig, response, "loyalty config fetch")

    async def redeem_points(self, customer_id: str, points: int) -> RedemptionResult:
        body = RedeemPointsRequest(points=points).to_wire()
        response = await self._request(
            "POST", f"/customers/{customer_id}/redeem", "points redemption", json=body
        )
        # The backend answers an empty 200 on older versions
        if not response.content:
            return RedemptionResult(discount_amount=0)
        return self._parse(RedemptionResult, response, "points redemption")

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    async def list_customers(self) -> list[Customer]:
        response = await self._request("GET", "/customers", "customer list")
        try:
            return _customer_list.validate_python(response.json())
        except ValueError as e:
            raise BackendError("customer list", response.status_code, f"malformed response: {e}") from e

    async def get_customer(self, customer_id: str) -> Customer:
        try:
            response = await self._request("GET", f"/customers/{customer_id}", "customer lookup")
        except BackendError as e:
            if e.upstream_status == 404:
                raise CustomerNotFoundError(customer_id) from e
            raise
        return self._parse(Customer, response, "customer lookup")

    async def find_customer_by_phone(self, phone: str) -> Customer | None:
        try:
            response = await self._request(
                "GET", "/customers/search", "customer phone lookup", params={"phone": phone}
            )
        except BackendError as e:
            if e.upstream_status == 404:
                return None
            raise
        return self._parse(Customer, response, "customer phone lookup")

    async def create_customer(self, name: str, phone: str) -> Customer:
        body = CreateCustomerRequest(name=name, phone=phone).to_wire()
        response = await self._request("POST", "/customers", "customer creation", json=body)
        return self._parse(Customer, response, "customer creation")

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    async def submit_order(self, payload: OrderPayload) -> CertifiedOrder:
        response = await self._request("POST", "/orders", "order submission", json=payload.to_wire())
        return self._parse(CertifiedOrder, response, "order submission")
