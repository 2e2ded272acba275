"""
CORS for the POS front-end.

The terminal UI is served from another origin (Vite dev server, or the
backend's static files), so the API has to allow it explicitly.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config.settings import Settings
from shared.infrastructure.correlation import REQUEST_ID_HEADER


# Used when ALLOWED_ORIGINS is empty (development)
DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
]


def get_cors_origins(settings: Settings) -> list[str]:
    """ALLOWED_ORIGINS (comma-separated) when set, else the development list."""
    origins = [origin.strip() for origin in settings.allowed_origins.split(",")]
    return [origin for origin in origins if origin] or DEFAULT_CORS_ORIGINS


def configure_cors(app: FastAPI, settings: Settings) -> None:
    # No cookies or auth headers: the terminal API is unauthenticated
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(settings),
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=0 if settings.environment == "development" else 600,
    )
