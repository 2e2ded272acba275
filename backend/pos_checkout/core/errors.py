"""
Exception handlers.

Every CheckoutError becomes {"detail": ...} with the status code its class
carries. The error already logged itself when it was raised.
"""

import math

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.utils.exceptions import BackendUnavailableError, CheckoutError


async def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    headers = {}
    if isinstance(exc, BackendUnavailableError) and exc.retry_after:
        headers["Retry-After"] = str(math.ceil(exc.retry_after))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers or None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CheckoutError, checkout_error_handler)
