"""
Error types for the inventory API and the handlers that turn them into JSON responses.

Every error leaves the app as {"error": message} with the status code the
error class carries; nothing propagates past the request boundary.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    """Base error; unexpected failures default to 500."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)


class ValidationError(InventoryError):
    """A required field is missing or malformed."""

    status_code = 400


class ConflictError(InventoryError):
    """The username is already taken."""

    status_code = 400


class InvalidCredentials(InventoryError):
    status_code = 400

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class NotFoundError(InventoryError):
    status_code = 404


class InternalError(InventoryError):
    status_code = 500


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(InventoryError)
    async def inventory_error_handler(request: Request, exc: InventoryError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    # body is not JSON, or a field can't be coerced to its declared type
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "detail": _describe(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def _describe(errors):
    return [
        {"field": ".".join(str(part) for part in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in errors
    ]
