"""
Terminal wiring: one backend client shared by every domain service.
"""

import httpx

from shared.config.settings import Settings
from pos_checkout.services.backend import BackendClient
from pos_checkout.services.domain import (
    CheckoutCoordinator,
    CustomerDirectory,
    SettlementReconciler,
    TableRegistry,
)


class PosTerminal:
    """
    In-memory state of one POS terminal.

    Usage:
        terminal = PosTerminal.from_settings(settings)
        terminal.registry.open_table(4)
        ...
        await terminal.aclose()
    """

    def __init__(self, settings: Settings, client: BackendClient):
        self.settings = settings
        self.client = client
        self.registry = TableRegistry()
        self.directory = CustomerDirectory(client, settings)
        self.reconciler = SettlementReconciler(client, settings)
        self.checkout = CheckoutCoordinator(
            self.registry,
            self.directory,
            self.reconciler,
            settings,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "PosTerminal":
        return cls(settings, BackendClient.from_settings(settings, transport=transport))

    async def aclose(self) -> None:
        await self.client.aclose()
