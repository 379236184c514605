"""
Utilidades para números de tarjeta, nombres y montos.
"""

from decimal import Decimal, InvalidOperation

from app.utils.exceptions import InvalidAmountError


MASK_CHARACTER = "X"
UNKNOWN_DIGIT = "?"
# Dígitos intermedios de longitud desconocida
UNKNOWN_MIDDLE = "..."

EXPIRATION_DISPLAY_SEPARATOR = "/"

# Monedas sin decimales, con tres y con cuatro decimales (ISO 4217).
# El resto usa dos decimales.
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG",
    "RWF", "UGX", "UYI", "VND", "VUV", "XAF", "XOF", "XPF",
})
THREE_DECIMAL_CURRENCIES = frozenset({
    "BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND",
})
FOUR_DECIMAL_CURRENCIES = frozenset({"CLF", "UYW"})

MAX_MINOR_UNITS = 2**63 - 1


def numbers_only(value: str | None, allow_unknown_digit: bool = False) -> str | None:
    """
    Conserva únicamente los dígitos de un valor.

    Args:
        value: Texto original (número de tarjeta, CVV, etc.)
        allow_unknown_digit: Conserva también el carácter de dígito desconocido

    Returns:
        Los dígitos, o None si no queda ninguno
    """
    if value is None:
        return None
    digits = "".join(
        ch for ch in value
        if ch.isdigit() or (allow_unknown_digit and ch == UNKNOWN_DIGIT)
    )
    return digits or None


def mask_card_number(card_number: str | None) -> str | None:
    """Enmascara un número de tarjeta dejando el primer y los últimos cuatro dígitos."""
    digits = numbers_only(card_number)
    if digits is None:
        return None
    if len(digits) <= 4:
        return digits
    if len(digits) < 8:
        return MASK_CHARACTER * (len(digits) - 4) + digits[-4:]
    return digits[0] + MASK_CHARACTER * (len(digits) - 5) + digits[-4:]


def get_full_name(first_name: str | None, last_name: str | None) -> str | None:
    parts = [p.strip() for p in (first_name, last_name) if p and p.strip()]
    return " ".join(parts) or None


def format_expiration(month: int | None, year: int | None) -> str | None:
    """Vencimiento legible ("12/2030"), o None si falta el mes o el año."""
    if month is None or year is None:
        return None
    return f"{month}{EXPIRATION_DISPLAY_SEPARATOR}{year}"


def currency_fraction_digits(currency: str) -> int:
    code = currency.upper()
    if code in ZERO_DECIMAL_CURRENCIES:
        return 0
    if code in FOUR_DECIMAL_CURRENCIES:
        return 4
    if code in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


def to_minor_units(amount: Decimal, currency: str) -> int:
    """
    Convierte un monto a la unidad menor de la moneda (centavos para USD).

    Raises:
        InvalidAmountError: Si el monto es negativo, tiene más decimales de los
            que admite la moneda o no cabe en un entero de 64 bits
    """
    try:
        scaled = Decimal(amount).scaleb(currency_fraction_digits(currency))
    except InvalidOperation as e:
        raise InvalidAmountError(amount, currency, "not a number") from e
    if not scaled.is_finite():
        raise InvalidAmountError(amount, currency, "not a number")
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(amount, currency, "too many fraction digits")
    value = int(scaled)
    if value < 0:
        raise InvalidAmountError(amount, currency, "value < 0")
    if value > MAX_MINOR_UNITS:
        raise InvalidAmountError(amount, currency, "value too large")
    return value
