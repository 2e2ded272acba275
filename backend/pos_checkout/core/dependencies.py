"""
FastAPI dependencies.

The terminal is created by the lifespan handler and kept on app.state.
"""

from fastapi import Depends, Request

from pos_checkout.services.domain import CheckoutCoordinator, CustomerDirectory, TableRegistry
from pos_checkout.services.terminal import PosTerminal


def get_terminal(request: Request) -> PosTerminal:
    return request.app.state.terminal


def get_registry(terminal: PosTerminal = Depends(get_terminal)) -> TableRegistry:
    return terminal.registry


def get_directory(terminal: PosTerminal = Depends(get_terminal)) -> CustomerDirectory:
    return terminal.directory


def get_coordinator(terminal: PosTerminal = Depends(get_terminal)) -> CheckoutCoordinator:
    return terminal.checkout
