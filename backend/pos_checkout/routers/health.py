"""
Health check endpoint for the terminal API.
"""

from fastapi import APIRouter, Depends

from pos_checkout.core.dependencies import get_terminal
from pos_checkout.services.backend import CircuitState
from pos_checkout.services.terminal import PosTerminal


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check(terminal: PosTerminal = Depends(get_terminal)):
    """
    Service status plus the backend circuit breaker state.
    Does not call the backend.
    """
    breaker = terminal.client.breaker
    return {
        "status": "healthy" if breaker.state == CircuitState.CLOSED else "degraded",
        "service": "pos-checkout",
        "environment": terminal.settings.environment,
        "open_tables": len(terminal.registry.overview()),
        "backend": breaker.snapshot(),
    }
