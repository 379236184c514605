"""
Reconstrucción de tarjetas de reemplazo.

Stripe puede reemplazar silenciosamente los datos de una tarjeta almacenada
(por ejemplo, cuando la red de tarjetas reemite la tarjeta). Solo expone la
marca, los últimos cuatro dígitos y el vencimiento, así que el número
enmascarado se reconstruye de la mejor forma posible a partir de la marca.

Referencias:
- https://stripe.com/docs/api/payment_methods/object
- https://stripe.com/docs/api/cards/object
- https://wikipedia.org/wiki/Payment_card_number#Issuer_identification_number_(IIN)
"""

from dataclasses import dataclass
from typing import Any

import structlog

from app.adapters.base import TokenizedCreditCard
from app.utils.card_utils import (
    MASK_CHARACTER,
    UNKNOWN_DIGIT,
    UNKNOWN_MIDDLE,
    numbers_only,
)


logger = structlog.get_logger(__name__)


MASK_8 = MASK_CHARACTER * 8
MASK_9 = MASK_CHARACTER * 9
MASK_10 = MASK_CHARACTER * 10
MASK_11 = MASK_CHARACTER * 11

# Marca de la API de PaymentMethod y de la API heredada de Card -> prefijo
BRAND_PREFIXES: dict[str, str] = {
    # Inicio 34 o 37, 15 dígitos
    "amex": "3" + UNKNOWN_DIGIT + MASK_9,
    "American Express": "3" + UNKNOWN_DIGIT + MASK_9,
    # Sin mapeo inequívoco
    "diners": UNKNOWN_MIDDLE,
    "Diners Club": UNKNOWN_MIDDLE,
    # Existen otros prefijos y longitudes; 6011 y 16 dígitos es lo habitual
    "discover": "6011" + MASK_8,
    "Discover": "6011" + MASK_8,
    # Sin mapeo inequívoco
    "jcb": UNKNOWN_MIDDLE,
    "JCB": UNKNOWN_MIDDLE,
    # Inicio 51-55, 16 dígitos
    "mastercard": "5" + UNKNOWN_DIGIT + MASK_10,
    "MasterCard": "5" + UNKNOWN_DIGIT + MASK_10,
    # Inicio 62, 16 a 19 dígitos
    "unionpay": "62" + UNKNOWN_MIDDLE,
    "UnionPay": "62" + UNKNOWN_MIDDLE,
    # Inicio 4, 16 dígitos
    "visa": "4" + MASK_11,
    "Visa": "4" + MASK_11,
}


def replacement_masked_card_number(
    masked_card_number: str | None,
    brand: str | None,
    last4: str | None,
) -> str | None:
    """
    Genera el número enmascarado de una posible tarjeta de reemplazo.

    Args:
        masked_card_number: Número enmascarado anterior, si se conoce
        brand: Marca de la posible tarjeta de reemplazo
        last4: Últimos cuatro dígitos de la posible tarjeta de reemplazo

    Returns:
        El nuevo número enmascarado, o None si no cambió o no hay un mapeo
        razonable e inequívoco
    """
    if brand is None or last4 is None:
        return None
    if last4 != numbers_only(last4):
        logger.warning("last4 is not all digits, ignoring", last4=last4)
        return None
    if len(last4) != 4:
        logger.warning("last4 is not length 4, ignoring", last4=last4)
        return None
    # Mismos últimos cuatro dígitos: se asume la misma tarjeta
    old_digits = numbers_only(masked_card_number, allow_unknown_digit=True)
    if old_digits is not None and old_digits.endswith(last4):
        return None
    prefix = BRAND_PREFIXES.get(brand)
    if prefix is None:
        if brand.lower() != "unknown":
            logger.warning("Unexpected brand", brand=brand)
        return None
    return prefix + last4


def combine(first: Any, second: Any) -> str:
    """Valores crudos del proveedor como "a,b", vacío para los ausentes."""
    return f"{'' if first is None else first},{'' if second is None else second}"


def get_attr(obj: Any, name: str) -> Any:
    """Lee un atributo opcional de un objeto del SDK (StripeObject omite claves ausentes)."""
    if obj is None:
        return None
    return getattr(obj, name, None)


def _to_int(value: Any) -> int | None:
    return None if value is None else int(value)


@dataclass
class ReplacementCard:
    """Datos de reemplazo de tarjeta y vencimiento reportados por Stripe."""

    provider_replacement_masked_card_number: str | None = None
    replacement_masked_card_number: str | None = None
    provider_replacement_expiration: str | None = None
    replacement_expiration_month: int | None = None
    replacement_expiration_year: int | None = None

    @classmethod
    def from_values(
        cls,
        brand: str | None,
        last4: str | None,
        exp_month: Any,
        exp_year: Any,
        masked_card_number: str | None,
        expiration_month: int | None,
        expiration_year: int | None,
    ) -> "ReplacementCard":
        """
        Compara la tarjeta del proveedor con la conocida.

        El vencimiento de reemplazo se omite solo cuando el conocido coincide
        por completo con el del proveedor.
        """
        exp_month = _to_int(exp_month)
        exp_year = _to_int(exp_year)
        unchanged = (
            expiration_month is not None and expiration_month == exp_month
            and expiration_year is not None and expiration_year == exp_year
        )
        return cls(
            provider_replacement_masked_card_number=combine(brand, last4),
            replacement_masked_card_number=replacement_masked_card_number(
                masked_card_number, brand, last4,
            ),
            provider_replacement_expiration=combine(exp_month, exp_year),
            replacement_expiration_month=None if unchanged else exp_month,
            replacement_expiration_year=None if unchanged else exp_year,
        )

    @classmethod
    def from_card(
        cls,
        card: Any,
        masked_card_number: str | None,
        expiration_month: int | None,
        expiration_year: int | None,
    ) -> "ReplacementCard":
        """Igual que from_values, leyendo un objeto tarjeta del SDK (o None)."""
        if card is None:
            return cls()
        return cls.from_values(
            get_attr(card, "brand"),
            get_attr(card, "last4"),
            get_attr(card, "exp_month"),
            get_attr(card, "exp_year"),
            masked_card_number,
            expiration_month,
            expiration_year,
        )

    def tokenized(self, provider_unique_id: str) -> TokenizedCreditCard:
        return TokenizedCreditCard(
            provider_unique_id=provider_unique_id,
            provider_replacement_masked_card_number=self.provider_replacement_masked_card_number,
            replacement_masked_card_number=self.replacement_masked_card_number,
            provider_replacement_expiration=self.provider_replacement_expiration,
            replacement_expiration_month=self.replacement_expiration_month,
            replacement_expiration_year=self.replacement_expiration_year,
        )
