"""
Rutas/Endpoints del proveedor de pagos.
"""

from app.routes.payments import router as payments_router
from app.routes.cards import router as cards_router

__all__ = [
    "payments_router",
    "cards_router",
]
