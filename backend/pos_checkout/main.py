"""
Terminal API main application.
Entry point for the FastAPI server driven by the POS front-end.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from shared.config.logging import pos_api_logger as logger, setup_logging
from shared.config.settings import Settings, get_settings
from shared.infrastructure.correlation import CorrelationIdMiddleware
from pos_checkout.core.cors import configure_cors
from pos_checkout.core.errors import register_exception_handlers
from pos_checkout.routers.checkout import router as checkout_router
from pos_checkout.routers.customers import router as customers_router
from pos_checkout.routers.health import router as health_router
from pos_checkout.routers.tables import router as tables_router
from pos_checkout.services.terminal import PosTerminal


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Defaults to the environment-loaded settings
        transport: httpx transport for the backend client (tests inject a
            MockTransport here)
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.
        Opens the backend client on startup and closes it on shutdown.
        """
        setup_logging(settings)

        config_errors = settings.validate_production_settings()
        if config_errors:
            for error in config_errors:
                logger.error("Configuration error", error=error)
            if settings.environment == "production":
                raise RuntimeError(
                    f"Production configuration errors: {'; '.join(config_errors)}. "
                    "Server will not start with unsafe configuration."
                )
            logger.warning("Running with development defaults")

        logger.info(
            "Starting POS checkout API",
            port=settings.pos_api_port,
            env=settings.environment,
            backend=settings.backend_api_url,
        )
        app.state.terminal = PosTerminal.from_settings(settings, transport=transport)

        yield

        logger.info("Shutting down POS checkout API")
        await app.state.terminal.aclose()

    app = FastAPI(
        title="POS Checkout API",
        description="Table-service checkout: carts, loyalty, discounts, settlement",
        version="0.1.0",
        lifespan=lifespan,
    )

    configure_cors(app, settings)
    app.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(tables_router)
    app.include_router(customers_router)
    app.include_router(checkout_router)

    return app


app = create_app()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pos_checkout.main:app",
        host="0.0.0.0",
        port=get_settings().pos_api_port,
        reload=True,
    )
