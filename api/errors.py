"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.errors import (
    BookingNotModifiable, InvalidInterval, InvalidTransition, NotFoundError, PaymentError,
    SchedulingError, ServiceIneligible, SlotUnavailable, StorageUnavailable,
)

logger = logging.getLogger(__name__)

# Most specific class first
_STATUS_BY_ERROR: list[tuple[type[SchedulingError], int]] = [
    (NotFoundError, 404),
    (SlotUnavailable, 409),
    (BookingNotModifiable, 409),
    (InvalidTransition, 409),
    (ServiceIneligible, 422),
    (InvalidInterval, 400),
    (PaymentError, 400),
    (StorageUnavailable, 503),
]


def status_for(exc: SchedulingError) -> int:
    """HTTP status for a scheduling error (500 if unmapped)."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError):
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{exc.code}: {exc.message}")
        return JSONResponse(
            status_code=status,
            content=error_response(
                exc.code, exc.message, field=exc.field, request_id=_request_id(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return JSONResponse(
                status_code=404,
                content=error_response(
                    ErrorCodes.NOT_FOUND, message, request_id=_request_id(request),
                ).model_dump(mode="json"),
            )
        return JSONResponse(
            status_code=400,
            content=error_response(
                ErrorCodes.INVALID_REQUEST, message, request_id=_request_id(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
                request_id=_request_id(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
                request_id=_request_id(request),
            ).model_dump(mode="json"),
        )
