"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, request_id_of, ErrorCodes
from auth.exceptions import InvalidTokenError
from core.errors import BarbershopError

logger = logging.getLogger(__name__)

# core error code -> HTTP status
STATUS_BY_CODE = {
    ErrorCodes.NOT_FOUND: 404,
    ErrorCodes.INVALID_STATUS_TRANSITION: 409,
    ErrorCodes.ALREADY_VALIDATED: 409,
    ErrorCodes.SLOT_UNAVAILABLE: 409,
    ErrorCodes.AUTHORIZATION_DENIED: 403,
    ErrorCodes.INVALID_PERIOD: 400,
    ErrorCodes.INVALID_BOOKING: 400,
    ErrorCodes.INVALID_REQUEST: 400,
}


def _json_error(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(BarbershopError)
    async def barbershop_error_handler(request: Request, exc: BarbershopError):
        return _json_error(request, STATUS_BY_CODE.get(exc.code, 400), exc.code, str(exc))

    @app.exception_handler(InvalidTokenError)
    async def invalid_token_handler(request: Request, exc: InvalidTokenError):
        return _json_error(request, 400, ErrorCodes.INVALID_TOKEN, str(exc))

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return _json_error(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _json_error(request, 400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json_error(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json_error(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
