"""
Schemas para tarjetas almacenadas en el proveedor.
"""

from pydantic import Field

from app.schemas.common import BaseSchema
from app.schemas.payment import CreditCardRequest, TokenizedCreditCardResponse


class StoredCardResponse(BaseSchema):
    """Tarjeta almacenada; el ID lo persiste el llamador."""

    provider_unique_id: str


class CardNumberUpdateRequest(BaseSchema):
    """Reemplazo del número y vencimiento de una tarjeta almacenada."""

    credit_card: CreditCardRequest = Field(default_factory=CreditCardRequest)
    card_number: str = Field(..., min_length=1)
    expiration_month: int = Field(..., ge=1, le=12)
    expiration_year: int = Field(..., ge=1000, le=9999)
    card_code: str | None = Field(None, max_length=4)


class CardExpirationUpdateRequest(BaseSchema):
    credit_card: CreditCardRequest = Field(default_factory=CreditCardRequest)
    expiration_month: int = Field(..., ge=1, le=12)
    expiration_year: int = Field(..., ge=1000, le=9999)


class TokenizedCardsRequest(BaseSchema):
    """Tarjetas conocidas localmente, por provider_unique_id."""

    persisted_cards: dict[str, CreditCardRequest] = Field(default_factory=dict)


class TokenizedCardsResponse(BaseSchema):
    cards: list[TokenizedCreditCardResponse]
    total: int
