"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import CycleNotFoundError, LedgerValidationError, StoreError

logger = logging.getLogger(__name__)


def _json_error(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request_id).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(CycleNotFoundError)
    async def not_found_handler(request: Request, exc: CycleNotFoundError):
        return _json_error(request, 404, ErrorCodes.NOT_FOUND, str(exc))

    @app.exception_handler(LedgerValidationError)
    async def ledger_validation_handler(request: Request, exc: LedgerValidationError):
        return _json_error(request, 400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("Store failure: %s", exc)
        return _json_error(request, 503, ErrorCodes.SERVICE_UNAVAILABLE, str(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return _json_error(request, 404, ErrorCodes.NOT_FOUND, message)
        return _json_error(request, 400, ErrorCodes.INVALID_REQUEST, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json_error(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json_error(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
