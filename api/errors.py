"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, request_id_of, ErrorCodes
from clients.email_client import EmailGatewayError
from core.exceptions import (
    CustomerInUseError,
    DataIntegrityError,
    InvoicerError,
    NotFoundError,
    QuotaExceededError,
    UniquenessConflict,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
DOMAIN_ERRORS: list[tuple[type[InvoicerError], int, str]] = [
    (ValidationError, 400, ErrorCodes.VALIDATION_ERROR),
    (NotFoundError, 404, ErrorCodes.NOT_FOUND),
    (UniquenessConflict, 409, ErrorCodes.ALREADY_EXISTS),
    (CustomerInUseError, 409, ErrorCodes.CUSTOMER_HAS_INVOICES),
    (QuotaExceededError, 403, ErrorCodes.INVOICE_LIMIT_REACHED),
    (DataIntegrityError, 500, ErrorCodes.DATA_INTEGRITY),
]


def _json_error(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(InvoicerError)
    async def domain_error_handler(request: Request, exc: InvoicerError):
        for exc_type, status_code, code in DOMAIN_ERRORS:
            if isinstance(exc, exc_type):
                if status_code >= 500:
                    logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
                return _json_error(request, status_code, code, str(exc))

        logger.exception("Unmapped domain error")
        return _json_error(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")

    @app.exception_handler(EmailGatewayError)
    async def email_error_handler(request: Request, exc: EmailGatewayError):
        return _json_error(request, 502, ErrorCodes.EMAIL_UNAVAILABLE, "Email could not be sent")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        messages = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        return _json_error(request, 422, ErrorCodes.VALIDATION_ERROR, "; ".join(messages))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json_error(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
