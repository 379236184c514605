"""
Endpoints para tarjetas almacenadas en el proveedor.
"""

import structlog
from fastapi import APIRouter, Depends, status

from app.adapters import PaymentProvider, get_payment_provider
from app.routes.errors import to_http_exception
from app.schemas import (
    APIResponse,
    CardExpirationUpdateRequest,
    CardNumberUpdateRequest,
    CreditCardRequest,
    StoredCardResponse,
    TokenizedCardsRequest,
    TokenizedCardsResponse,
)
from app.services import CardService
from app.utils.exceptions import PaymentServiceError


logger = structlog.get_logger(__name__)

router = APIRouter()


async def get_card_service(
    provider: PaymentProvider = Depends(get_payment_provider),
) -> CardService:
    """Dependency para obtener CardService."""
    return CardService(provider)


@router.post(
    "",
    response_model=APIResponse[StoredCardResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Almacenar una tarjeta",
    description="""
    Almacena la tarjeta en el proveedor.

    - Retorna el `provider_unique_id`, que el llamador debe persistir
    - El número completo nunca se guarda en este servicio
    """,
)
async def store_card(
    request: CreditCardRequest,
    service: CardService = Depends(get_card_service),
):
    try:
        result = await service.store(request)
    except PaymentServiceError as e:
        logger.error("Store card failed", error=e.message, code=e.code)
        raise to_http_exception(e)

    return APIResponse(
        success=True,
        message="Card stored successfully",
        data=result,
    )


@router.put(
    "/{provider_unique_id}",
    response_model=APIResponse[StoredCardResponse],
    summary="Actualizar los datos del titular",
)
async def update_card(
    provider_unique_id: str,
    request: CreditCardRequest,
    service: CardService = Depends(get_card_service),
):
    try:
        await service.update(provider_unique_id, request)
    except PaymentServiceError as e:
        logger.error("Update card failed", provider_unique_id=provider_unique_id, error=e.message)
        raise to_http_exception(e)

    return APIResponse(
        success=True,
        message="Card updated successfully",
        data=StoredCardResponse(provider_unique_id=provider_unique_id),
    )


@router.put(
    "/{provider_unique_id}/number",
    response_model=APIResponse[StoredCardResponse],
    summary="Reemplazar número y vencimiento",
)
async def update_card_number(
    provider_unique_id: str,
    request: CardNumberUpdateRequest,
    service: CardService = Depends(get_card_service),
):
    try:
        await service.update_number_and_expiration(provider_unique_id, request)
    except PaymentServiceError as e:
        logger.error("Update card number failed", provider_unique_id=provider_unique_id, error=e.message)
        raise to_http_exception(e)

    return APIResponse(
        success=True,
        message="Card number updated successfully",
        data=StoredCardResponse(provider_unique_id=provider_unique_id),
    )


@router.put(
    "/{provider_unique_id}/expiration",
    response_model=APIResponse[StoredCardResponse],
    summary="Actualizar el vencimiento",
)
async def update_card_expiration(
    provider_unique_id: str,
    request: CardExpirationUpdateRequest,
    service: CardService = Depends(get_card_service),
):
    try:
        await service.update_expiration(provider_unique_id, request)
    except PaymentServiceError as e:
        logger.error("Update card expiration failed", provider_unique_id=provider_unique_id, error=e.message)
        raise to_http_exception(e)

    return APIResponse(
        success=True,
        message="Card expiration updated successfully",
        data=StoredCardResponse(provider_unique_id=provider_unique_id),
    )


@router.delete(
    "/{provider_unique_id}",
    response_model=APIResponse[StoredCardResponse],
    summary="Eliminar una tarjeta almacenada",
)
async def delete_card(
    provider_unique_id: str,
    service: CardService = Depends(get_card_service),
):
    try:
        await service.delete(provider_unique_id)
    except PaymentServiceError as e:
        logger.error("Delete card failed", provider_unique_id=provider_unique_id, error=e.message)
        raise to_http_exception(e)

    return APIResponse(
        success=True,
        message="Card deleted successfully",
        data=StoredCardResponse(provider_unique_id=provider_unique_id),
    )


@router.post(
    "/tokenized",
    response_model=APIResponse[TokenizedCardsResponse],
    summary="Sincronizar tarjetas almacenadas",
    description="""
    Compara las tarjetas conocidas localmente con las del proveedor.

    Reporta números enmascarados y vencimientos de reemplazo cuando la red
    de tarjetas reemitió una tarjeta.
    """,
)
async def get_tokenized_cards(
    request: TokenizedCardsRequest,
    service: CardService = Depends(get_card_service),
):
    try:
        result = await service.get_tokenized(request)
    except PaymentServiceError as e:
        logger.error("Tokenized cards synchronization failed", error=e.message)
        raise to_http_exception(e)

    return APIResponse(
        success=True,
        data=result,
    )
