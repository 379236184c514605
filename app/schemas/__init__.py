"""
Schemas del proveedor de pagos.
Exporta todos los schemas para fácil acceso.
"""

# Common
from app.schemas.common import (
    APIResponse,
    BaseSchema,
    ErrorResponse,
)

# Payment
from app.schemas.payment import (
    AuthorizationResponse,
    CaptureResponse,
    CreditCardRequest,
    PaymentRequest,
    SaleResponse,
    TokenizedCreditCardResponse,
    TransactionCreateRequest,
)

# Card
from app.schemas.card import (
    CardExpirationUpdateRequest,
    CardNumberUpdateRequest,
    StoredCardResponse,
    TokenizedCardsRequest,
    TokenizedCardsResponse,
)

__all__ = [
    # Common
    "APIResponse",
    "BaseSchema",
    "ErrorResponse",
    # Payment
    "AuthorizationResponse",
    "CaptureResponse",
    "CreditCardRequest",
    "PaymentRequest",
    "SaleResponse",
    "TokenizedCreditCardResponse",
    "TransactionCreateRequest",
    # Card
    "CardExpirationUpdateRequest",
    "CardNumberUpdateRequest",
    "StoredCardResponse",
    "TokenizedCardsRequest",
    "TokenizedCardsResponse",
]
