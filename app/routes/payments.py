"""
Endpoints para autorizaciones, capturas y ventas.
"""

import structlog
from fastapi import APIRouter, Depends

from app.adapters import PaymentProvider, get_payment_provider
from app.routes.errors import to_http_exception
from app.schemas import (
    APIResponse,
    AuthorizationResponse,
    CaptureResponse,
    PaymentRequest,
    SaleResponse,
)
from app.services import PaymentService
from app.utils.exceptions import PaymentServiceError


logger = structlog.get_logger(__name__)

router = APIRouter()


async def get_payment_service(
    provider: PaymentProvider = Depends(get_payment_provider),
) -> PaymentService:
    """Dependency para obtener PaymentService."""
    return PaymentService(provider)


@router.post(
    "/authorize",
    response_model=APIResponse[AuthorizationResponse],
    summary="Autorizar un monto",
    description="""
    Retiene el monto en la tarjeta sin capturarlo.

    - Acepta una tarjeta nueva o una almacenada (`provider_unique_id`)
    - Los rechazos se reportan en `approval_result`, no como error HTTP
    - Capturar luego con `POST /api/payments/{provider_unique_id}/capture`
    """,
)
async def authorize(
    request: PaymentRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """Autoriza una transacción."""
    try:
        result = await service.authorize(request)
    except PaymentServiceError as e:
        logger.warning("Authorization rejected", error=e.message, code=e.code)
        raise to_http_exception(e)

    return APIResponse(
        success=True,
        message=f"Authorization {result.approval_result.value if result.approval_result else 'failed'}",
        data=result,
    )


@router.post(
    "/sale",
    response_model=APIResponse[SaleResponse],
    summary="Autorizar y capturar",
)
async def sale(
    request: PaymentRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """Autoriza y captura en una sola operación."""
    try:
        result = await service.sale(request)
    except PaymentServiceError as e:
        logger.warning("Sale rejected", error=e.message, code=e.code)
        raise to_http_exception(e)

    approval_result = result.authorization_result.approval_result
    return APIResponse(
        success=True,
        message=f"Sale {approval_result.value if approval_result else 'failed'}",
        data=result,
    )


@router.post(
    "/{provider_unique_id}/capture",
    response_model=APIResponse[CaptureResponse],
    summary="Capturar una autorización",
)
async def capture(
    provider_unique_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    """Captura una autorización previa; los fallos se reportan en el resultado."""
    result = await service.capture(provider_unique_id)

    return APIResponse(
        success=True,
        message=f"Capture {result.communication_result.value}",
        data=result,
    )
