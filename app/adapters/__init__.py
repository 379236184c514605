"""
Adapters para proveedores de pago.
Implementación del patrón Adapter sobre el SDK de Stripe.
"""

from app.adapters.base import (
    AuthorizationResult,
    CaptureResult,
    CreditCard,
    PaymentProvider,
    SaleResult,
    TokenizedCreditCard,
    TransactionRequest,
)
from app.adapters.stripe_adapter import StripeAdapter
from app.adapters.factory import get_payment_provider

__all__ = [
    "AuthorizationResult",
    "CaptureResult",
    "CreditCard",
    "PaymentProvider",
    "SaleResult",
    "TokenizedCreditCard",
    "TransactionRequest",
    "StripeAdapter",
    "get_payment_provider",
]
