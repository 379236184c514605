"""
Servicio de tarjetas almacenadas.
La persistencia de las tarjetas queda a cargo del llamador; aquí solo se
opera sobre el proveedor.
"""

import structlog

from app.adapters import PaymentProvider, get_payment_provider
from app.adapters.base import CreditCard
from app.schemas.card import (
    CardExpirationUpdateRequest,
    CardNumberUpdateRequest,
    StoredCardResponse,
    TokenizedCardsRequest,
    TokenizedCardsResponse,
)
from app.schemas.payment import CreditCardRequest, TokenizedCreditCardResponse
from app.utils.exceptions import PaymentProviderError


logger = structlog.get_logger(__name__)


class CardService:
    """Servicio para almacenar, actualizar, eliminar y sincronizar tarjetas."""

    def __init__(self, payment_provider: PaymentProvider | None = None):
        self._provider = payment_provider or get_payment_provider()

    @property
    def provider(self) -> PaymentProvider:
        return self._provider

    def _require_stored_cards(self) -> None:
        if not self.provider.can_store_credit_cards():
            raise PaymentProviderError(self.provider.provider_id, "Stored cards not supported")

    @staticmethod
    def _stored_card(provider_unique_id: str, request: CreditCardRequest | None = None) -> CreditCard:
        credit_card = request.to_domain() if request is not None else CreditCard()
        credit_card.provider_unique_id = provider_unique_id
        return credit_card

    async def store(self, request: CreditCardRequest) -> StoredCardResponse:
        self._require_stored_cards()
        credit_card = request.to_domain()
        credit_card.provider_unique_id = None

        provider_unique_id = await self.provider.store_credit_card(credit_card)

        logger.info(
            "Card stored",
            provider_unique_id=provider_unique_id,
            masked_card_number=credit_card.masked_card_number,
        )
        return StoredCardResponse(provider_unique_id=provider_unique_id)

    async def update(self, provider_unique_id: str, request: CreditCardRequest) -> None:
        self._require_stored_cards()
        await self.provider.update_credit_card(self._stored_card(provider_unique_id, request))

    async def update_number_and_expiration(
        self,
        provider_unique_id: str,
        request: CardNumberUpdateRequest,
    ) -> None:
        self._require_stored_cards()
        await self.provider.update_credit_card_number_and_expiration(
            self._stored_card(provider_unique_id, request.credit_card),
            request.card_number,
            request.expiration_month,
            request.expiration_year,
            request.card_code,
        )

    async def update_expiration(
        self,
        provider_unique_id: str,
        request: CardExpirationUpdateRequest,
    ) -> None:
        self._require_stored_cards()
        await self.provider.update_credit_card_expiration(
            self._stored_card(provider_unique_id, request.credit_card),
            request.expiration_month,
            request.expiration_year,
        )

    async def delete(self, provider_unique_id: str) -> None:
        self._require_stored_cards()
        await self.provider.delete_credit_card(self._stored_card(provider_unique_id))

    async def get_tokenized(self, request: TokenizedCardsRequest) -> TokenizedCardsResponse:
        """Estado de todas las tarjetas almacenadas según el proveedor."""
        if not self.provider.can_get_tokenized_credit_cards():
            raise PaymentProviderError(self.provider.provider_id, "Tokenized cards not supported")

        persisted_cards = {
            provider_unique_id: self._stored_card(provider_unique_id, card)
            for provider_unique_id, card in request.persisted_cards.items()
        }
        tokenized = await self.provider.get_tokenized_credit_cards(persisted_cards)

        cards = [TokenizedCreditCardResponse.model_validate(card) for card in tokenized.values()]
        replaced = sum(
            1 for card in cards
            if card.replacement_masked_card_number is not None
            or card.replacement_expiration_month is not None
        )
        logger.info(
            "Tokenized cards synchronized",
            total=len(cards),
            persisted=len(persisted_cards),
            replaced=replaced,
        )
        return TokenizedCardsResponse(cards=cards, total=len(cards))
