"""
Servicios del proveedor de pagos.
"""

from app.services.payment_service import PaymentService
from app.services.card_service import CardService

__all__ = [
    "PaymentService",
    "CardService",
]
