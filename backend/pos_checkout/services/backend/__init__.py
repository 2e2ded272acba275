"""
Backend order service integration.

Usage:
    from pos_checkout.services.backend import BackendClient

    async with BackendClient.from_settings(settings) as client:
        config = await client.fetch_loyalty_config()
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
)
from .client import BackendClient, server_message

__all__ = [
    "BackendClient",
    "server_message",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitState",
]
