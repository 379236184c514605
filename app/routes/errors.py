"""
Traducción de errores del servicio a respuestas HTTP.
"""

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.schemas.common import ErrorResponse
from app.utils.exceptions import (
    InvalidAmountError,
    InvalidParameterError,
    PaymentProviderError,
    PaymentServiceError,
    StoredCardError,
    UnsupportedTestModeError,
)


logger = structlog.get_logger(__name__)


def to_http_exception(e: PaymentServiceError) -> HTTPException:
    """Mapea un error del servicio a su HTTPException."""
    if isinstance(e, (InvalidAmountError, InvalidParameterError, UnsupportedTestModeError)):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )
    if isinstance(e, StoredCardError):
        detail = e.message
        if e.provider_error_message:
            detail = f"{detail}: {e.provider_error_message}"
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
        )
    if isinstance(e, PaymentProviderError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message,
        )
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=e.message,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Errores lanzados fuera de los endpoints (p. ej. al construir el proveedor)."""

    @app.exception_handler(PaymentProviderError)
    async def payment_provider_handler(
        request: Request, exc: PaymentProviderError
    ) -> JSONResponse:
        logger.error("Payment provider unavailable", error=exc.message, code=exc.code)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=ErrorResponse(
                message=exc.message,
                errors=[exc.code],
                request_id=request.headers.get("X-Request-ID"),
            ).model_dump(),
        )
