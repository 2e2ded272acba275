"""
Pytest configuration and fixtures for the checkout service tests.

The backend order service is replaced by FakeBackend, served in-process
through httpx.MockTransport. It reproduces the order service's rules:
server-side pricing from its own catalogue, auto-discount, discount capped at
the subtotal, loyalty crediting on the final total, redemption checks.
"""

import itertools
import json
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from shared.config.settings import Settings
from shared.utils.schemas import Customer, LoyaltyConfig
from pos_checkout.main import create_app
from pos_checkout.services.backend import BackendClient, CircuitBreaker, CircuitBreakerConfig
from pos_checkout.services.domain import (
    CheckoutCoordinator,
    CustomerDirectory,
    Product,
    SettlementReconciler,
    TableRegistry,
)


# =============================================================================
# Fake backend
# =============================================================================


class FakeBackend:
    """In-memory order service speaking the backend's camelCase JSON."""

    POINTS_PER_EURO = 1
    REDEMPTION_STEP = 100
    DISCOUNT_PER_REDEMPTION = Decimal("5.00")
    AUTO_DISCOUNT_RATE = Decimal("5")
    AUTO_DISCOUNT_THRESHOLD = Decimal("20.00")

    def __init__(self):
        self._ids = itertools.count(1)
        self.products: dict[str, dict] = {
            "margherita": {"name": "Margherita", "price": Decimal("9.50"), "stock": 50},
            "regina": {"name": "Regina", "price": Decimal("12.00"), "stock": 50},
            "tiramisu": {"name": "Tiramisu", "price": Decimal("6.00"), "stock": 50},
            "coca": {"name": "Coca-Cola", "price": Decimal("3.50"), "stock": 50},
            "menu-50": {"name": "Menu 50", "price": Decimal("50.00"), "stock": 50},
        }
        self.customers: dict[str, dict] = {}
        self.orders: list[dict] = []
        self.calls: list[tuple[str, str]] = []
        self.requests: list[httpx.Request] = []

        # Failure switches
        self.down = False
        self.loyalty_config_down = False
        self.customer_refetch_fails = False
        self.order_rejection: tuple[int, dict] | None = None

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def add_customer(self, name: str, phone: str, points: int = 0) -> dict:
        customer_id = f"c{next(self._ids)}"
        record = {"id": customer_id, "name": name, "phone": phone, "loyaltyPoints": points}
        self.customers[customer_id] = record
        return record

    def count(self, method: str, path: str) -> int:
        return sum(1 for call in self.calls if call == (method, path))

    @property
    def transport(self) -> httpx.MockTransport:
        # Late-bound so tests can wrap handle() after the client is built
        return httpx.MockTransport(lambda request: self.handle(request))

    @staticmethod
    def _json(status: int, body) -> httpx.Response:
        return httpx.Response(status, json=body)

    @staticmethod
    def _spring_error(status: int, error: str, message: str, path: str) -> httpx.Response:
        return httpx.Response(
            status,
            json={"timestamp": "2026-10-19T12:00:00", "status": status, "error": error, "message": message, "path": path},
        )

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        self.calls.append((request.method, path))
        self.requests.append(request)

        if self.down:
            raise httpx.ConnectError("Connection refused", request=request)

        body = json.loads(request.content) if request.content else None

        if request.method == "GET" and path == "/customers/loyalty-config":
            if self.loyalty_config_down:
                return self._spring_error(500, "Internal Server Error", "config unavailable", request.url.path)
            return self._json(200, {
                "pointsPerEuro": self.POINTS_PER_EURO,
                "redemptionStep": self.REDEMPTION_STEP,
                "discountPerRedemption": float(self.DISCOUNT_PER_REDEMPTION),
                "autoDiscountRate": float(self.AUTO_DISCOUNT_RATE),
                "autoDiscountThreshold": float(self.AUTO_DISCOUNT_THRESHOLD),
            })
        if request.method == "GET" and path == "/customers":
            return self._json(200, list(self.customers.values()))
        if request.method == "GET" and path == "/customers/search":
            phone = request.url.params.get("phone", "")
            for customer in self.customers.values():
                if customer["phone"] == phone:
                    return self._json(200, customer)
            return httpx.Response(404)
        if request.method == "POST" and path == "/customers":
            if not body or not body.get("name") or not body.get("phone"):
                return httpx.Response(400)
            return self._json(200, self.add_customer(body["name"], body["phone"]))
        if request.method == "POST" and path.startswith("/customers/") and path.endswith("/redeem"):
            return self._redeem(path.split("/")[2], (body or {}).get("points", 0))
        if request.method == "GET" and path.startswith("/customers/"):
            if self.customer_refetch_fails:
                return self._spring_error(500, "Internal Server Error", "directory unavailable", request.url.path)
            customer = self.customers.get(path.split("/")[2])
            return self._json(200, customer) if customer else httpx.Response(404)
        if request.method == "POST" and path == "/orders":
            return self._create_order(body, request.url.path)

        return httpx.Response(404)

    def _redeem(self, customer_id: str, points: int) -> httpx.Response:
        customer = self.customers.get(customer_id)
        if customer is None or points <= 0 or points % self.REDEMPTION_STEP != 0:
            return httpx.Response(400)
        if customer["loyaltyPoints"] < points:
            return httpx.Response(400)
        customer["loyaltyPoints"] -= points
        discount = self.DISCOUNT_PER_REDEMPTION * (points // self.REDEMPTION_STEP)
        return self._json(200, {"discountAmount": float(discount)})

    def _create_order(self, order: dict, url_path: str) -> httpx.Response:
        if self.order_rejection is not None:
            status, payload = self.order_rejection
            return self._json(status, payload)

        items = order.get("items") or []
        if not items:
            return self._spring_error(
                500, "Internal Server Error", "Une commande doit contenir au moins un article.", url_path
            )

        subtotal = Decimal("0")
        for item in items:
            product = self.products.get(item["id"])
            if product is None:
                continue
            # Stock of 0 means unlimited
            if 0 < product["stock"] < item["quantity"]:
                return self._spring_error(
                    500,
                    "Internal Server Error",
                    f"Stock insuffisant pour \"{product['name']}\" "
                    f"(disponible : {product['stock']}, demandé : {item['quantity']}).",
                    url_path,
                )
            subtotal += product["price"] * item["quantity"]

        for item in items:
            product = self.products.get(item["id"])
            if product is not None and product["stock"] > 0:
                product["stock"] -= item["quantity"]

        discount = Decimal(str(order.get("discountAmount") or 0))
        reason = order.get("discountReason")
        if subtotal > self.AUTO_DISCOUNT_THRESHOLD and discount == 0:
            discount = (subtotal * self.AUTO_DISCOUNT_RATE / 100).quantize(Decimal("0.01"))
            reason = f"Remise automatique {int(self.AUTO_DISCOUNT_RATE)}% (total > {self.AUTO_DISCOUNT_THRESHOLD}€)"
        discount = min(discount, subtotal)
        total = subtotal - discount

        certified = {
            "id": f"o{next(self._ids)}",
            "date": "2026-10-19T12:30:00",
            "tableNumber": order["tableNumber"],
            "salespersonId": order["salespersonId"],
            "paymentMethod": order["paymentMethod"],
            "customerId": order.get("customerId"),
            "totalAmount": float(total),
            "discountAmount": float(discount),
            "discountReason": reason,
            "items": items,
        }
        self.orders.append(certified)

        customer = self.customers.get(order.get("customerId") or "")
        if customer is not None:
            customer["loyaltyPoints"] += int(total) * self.POINTS_PER_EURO

        return self._json(200, certified)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        backend_api_url="http://backend.test/api",
        backend_breaker_failure_threshold=3,
        backend_breaker_timeout_seconds=30.0,
        environment="test",
        debug=False,
    )


@pytest.fixture
def loyalty_config(settings):
    return LoyaltyConfig.fallback(settings)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest_asyncio.fixture
async def backend_client(settings, fake_backend):
    client = BackendClient.from_settings(settings, transport=fake_backend.transport)
    yield client
    await client.aclose()


@pytest.fixture
def registry():
    return TableRegistry()


@pytest.fixture
def directory(backend_client, settings):
    return CustomerDirectory(backend_client, settings)


@pytest.fixture
def reconciler(backend_client, settings):
    return SettlementReconciler(backend_client, settings)


@pytest.fixture
def coordinator(registry, directory, reconciler, settings):
    return CheckoutCoordinator(registry, directory, reconciler, settings)


@pytest.fixture
def products():
    """Products matching the fake backend catalogue."""
    return {
        "margherita": Product("margherita", "Margherita", Decimal("9.50")),
        "regina": Product("regina", "Regina", Decimal("12.00")),
        "tiramisu": Product("tiramisu", "Tiramisu", Decimal("6.00")),
        "coca": Product("coca", "Coca-Cola", Decimal("3.50")),
        "menu-50": Product("menu-50", "Menu 50", Decimal("50.00")),
    }


@pytest.fixture
def make_customer():
    def _make(customer_id: str = "c1", name: str = "Alice Martin", phone: str = "0611111111", points: int = 0):
        return Customer(id=customer_id, name=name, phone=phone, loyalty_points=points)
    return _make


@pytest.fixture
def api_client(settings, fake_backend):
    """
    Terminal API test client wired to the fake backend.
    Entering the context runs the lifespan (opens the backend client).
    """
    app = create_app(settings=settings, transport=fake_backend.transport)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def open_breaker():
    """A breaker that opens on the first failure, for fast-fail tests."""
    return CircuitBreaker(CircuitBreakerConfig(name="test", failure_threshold=1, timeout_seconds=60.0))
