"""
Servicio de transacciones.
Traduce los schemas de la API al modelo del proveedor y de vuelta.
"""

import structlog

from app.adapters import PaymentProvider, get_payment_provider
from app.adapters.base import AuthorizationResult, CommunicationResult
from app.schemas.payment import (
    AuthorizationResponse,
    CaptureResponse,
    PaymentRequest,
    SaleResponse,
)


logger = structlog.get_logger(__name__)


class PaymentService:
    """
    Servicio para autorizar, capturar y vender.

    Los rechazos y errores de la pasarela llegan en el resultado; solo los
    errores locales (modo de prueba, montos inválidos) se propagan.
    """

    def __init__(self, payment_provider: PaymentProvider | None = None):
        self._provider = payment_provider or get_payment_provider()

    @property
    def provider(self) -> PaymentProvider:
        return self._provider

    async def authorize(self, request: PaymentRequest) -> AuthorizationResponse:
        transaction_request = request.transaction.to_domain()
        credit_card = request.credit_card.to_domain()

        logger.info(
            "Authorizing transaction",
            amount=str(transaction_request.total_amount),
            currency=transaction_request.currency,
            stored_card=credit_card.provider_unique_id is not None,
            masked_card_number=credit_card.masked_card_number,
        )

        result = await self.provider.authorize(transaction_request, credit_card)
        return AuthorizationResponse.model_validate(result)

    async def sale(self, request: PaymentRequest) -> SaleResponse:
        transaction_request = request.transaction.to_domain()
        credit_card = request.credit_card.to_domain()

        logger.info(
            "Processing sale",
            amount=str(transaction_request.total_amount),
            currency=transaction_request.currency,
            stored_card=credit_card.provider_unique_id is not None,
            masked_card_number=credit_card.masked_card_number,
        )

        result = await self.provider.sale(transaction_request, credit_card)
        return SaleResponse.model_validate(result)

    async def capture(self, provider_unique_id: str) -> CaptureResponse:
        """Captura una autorización identificada por el ID del proveedor."""
        authorization = AuthorizationResult(
            provider_id=self.provider.provider_id,
            communication_result=CommunicationResult.SUCCESS,
            provider_unique_id=provider_unique_id,
        )

        logger.info("Capturing authorization", provider_unique_id=provider_unique_id)

        result = await self.provider.capture(authorization)
        return CaptureResponse.model_validate(result)
