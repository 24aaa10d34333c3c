"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    ConflictError,
    ForbiddenError,
    ImmutableFieldError,
    InvalidInputError,
    InvalidTransitionError,
    InvoiceExistsError,
    NotFoundError,
)
from core.services.base import describe_validation_error

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, details).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error(404, ErrorCodes.NOT_FOUND, str(exc))

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(request: Request, exc: ForbiddenError):
        if isinstance(exc, ImmutableFieldError):
            return _error(
                403,
                ErrorCodes.PROTECTED_FIELDS,
                "Cannot update protected fields",
                {"protected_fields": exc.fields},
            )
        return _error(403, ErrorCodes.FORBIDDEN, str(exc))

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return _error(400, ErrorCodes.VALIDATION_ERROR, str(exc))

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError):
        if isinstance(exc, InvoiceExistsError):
            return _error(
                409,
                ErrorCodes.INVOICE_ALREADY_EXISTS,
                str(exc),
                {"invoice": exc.invoice.model_dump(mode="json")},
            )
        if isinstance(exc, InvalidTransitionError):
            return _error(
                409,
                ErrorCodes.INVALID_STATUS_TRANSITION,
                str(exc),
                {"current": exc.current, "requested": exc.requested},
            )
        return _error(409, ErrorCodes.CONFLICT, str(exc))

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return _error(422, ErrorCodes.VALIDATION_ERROR, describe_validation_error(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _error(400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _error(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
