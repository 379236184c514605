"""
Utilidades del proveedor de pagos.
"""

from app.utils.card_utils import (
    format_expiration,
    get_full_name,
    mask_card_number,
    numbers_only,
    to_minor_units,
)
from app.utils.exceptions import (
    InvalidAmountError,
    InvalidParameterError,
    PaymentProviderError,
    PaymentServiceError,
    StoredCardError,
    UnsupportedTestModeError,
)

__all__ = [
    # Tarjetas y montos
    "format_expiration",
    "get_full_name",
    "mask_card_number",
    "numbers_only",
    "to_minor_units",
    # Excepciones
    "InvalidAmountError",
    "InvalidParameterError",
    "PaymentProviderError",
    "PaymentServiceError",
    "StoredCardError",
    "UnsupportedTestModeError",
]
