"""
Construcción de parámetros para el SDK de Stripe.

El SDK descarta los valores None; para borrar un campo existente en una
actualización se envía la cadena vacía.
"""

from typing import Any

from app.adapters.base import CreditCard, TransactionRequest
from app.utils.card_utils import get_full_name, numbers_only
from app.utils.exceptions import InvalidParameterError


# https://stripe.com/docs/api/metadata
MAX_METADATA_KEYS = 50
MAX_METADATA_KEY_LENGTH = 40
MAX_METADATA_VALUE_LENGTH = 500

# https://stripe.com/docs/statement-descriptors
MAX_STATEMENT_DESCRIPTOR_LENGTH = 22

UNSET = ""


def add_param(update: bool, params: dict[str, Any], name: str, value: Any) -> bool:
    """
    Agrega un parámetro si tiene valor.

    Las cadenas se recortan y las vacías (o dicts vacíos) cuentan como ausentes.
    En una actualización el parámetro ausente se envía vacío para borrarlo.

    Returns:
        True si el parámetro fue agregado, aunque sea para borrarlo
    """
    if isinstance(value, str):
        value = value.strip()
    if value is not None and value != "" and value != {}:
        params[name] = value
        return True
    if update:
        params[name] = UNSET
        return True
    return False


def add_metadata(
    update: bool,
    metadata: dict[str, str],
    key: str,
    value: Any,
    allow_truncate: bool,
) -> None:
    """
    Agrega un valor de metadata respetando los límites de Stripe.

    Raises:
        InvalidParameterError: Clave demasiado larga, valor demasiado largo sin
            permitir truncar, o demasiadas claves
    """
    if len(key) > MAX_METADATA_KEY_LENGTH:
        raise InvalidParameterError(key, "meta data key too long")
    if isinstance(value, bool):
        value = "true" if value else "false"
    elif value is not None:
        value = str(value).strip()
    if value:
        if len(value) > MAX_METADATA_VALUE_LENGTH:
            if not allow_truncate:
                raise InvalidParameterError(key, f"meta data value longer than {MAX_METADATA_VALUE_LENGTH} characters")
            value = value[:MAX_METADATA_VALUE_LENGTH]
        if key not in metadata and len(metadata) >= MAX_METADATA_KEYS:
            raise InvalidParameterError(key, "too many meta data keys")
        metadata[key] = value
    elif update:
        metadata[key] = UNSET


def make_customer_metadata(credit_card: CreditCard, update: bool) -> dict[str, str]:
    metadata: dict[str, str] = {}
    add_metadata(update, metadata, "company_name", credit_card.company_name, True)
    # El teléfono ahora vive en el Customer
    add_metadata(update, metadata, "phone", None, True)
    add_metadata(update, metadata, "fax", credit_card.fax, True)
    add_metadata(update, metadata, "customer_id", credit_card.customer_id, True)
    add_metadata(update, metadata, "customer_tax_id", credit_card.customer_tax_id, True)
    add_metadata(update, metadata, "group_name", credit_card.group_name, True)
    add_metadata(update, metadata, "principal_name", credit_card.principal_name, True)
    return metadata


def make_payment_intent_metadata(
    transaction_request: TransactionRequest,
    credit_card: CreditCard,
) -> dict[str, str]:
    """Metadata del cliente más los datos de la transacción."""
    metadata = make_customer_metadata(credit_card, False)
    add_metadata(False, metadata, "customer_description", credit_card.comments, True)
    add_metadata(False, metadata, "customer_email", credit_card.email, False)
    add_metadata(False, metadata, "customer_ip", transaction_request.customer_ip, False)
    add_metadata(False, metadata, "order_number", transaction_request.order_number, False)
    add_metadata(False, metadata, "amount", transaction_request.amount, False)
    add_metadata(False, metadata, "tax_amount", transaction_request.tax_amount, False)
    add_metadata(False, metadata, "tax_exempt", transaction_request.tax_exempt, False)
    add_metadata(False, metadata, "shipping_amount", transaction_request.shipping_amount, False)
    add_metadata(False, metadata, "duty_amount", transaction_request.duty_amount, False)
    add_metadata(False, metadata, "shipping_company_name", transaction_request.shipping_company_name, True)
    add_metadata(False, metadata, "invoice_number", transaction_request.invoice_number, False)
    add_metadata(False, metadata, "purchase_order_number", transaction_request.purchase_order_number, False)
    return metadata


def make_customer_params(credit_card: CreditCard, update: bool) -> dict[str, Any]:
    """Parámetros para crear o actualizar un Customer."""
    params: dict[str, Any] = {}
    add_param(update, params, "description", credit_card.comments)
    add_param(update, params, "email", credit_card.email)
    add_param(update, params, "metadata", make_customer_metadata(credit_card, update))
    add_param(update, params, "name", get_full_name(credit_card.first_name, credit_card.last_name))
    add_param(update, params, "phone", credit_card.phone)
    return params


def make_card_update_params(credit_card: CreditCard) -> dict[str, Any]:
    """Parámetros para actualizar una tarjeta de la API heredada (sources)."""
    params: dict[str, Any] = {}
    add_param(True, params, "name", get_full_name(credit_card.first_name, credit_card.last_name))
    add_param(True, params, "address_line1", credit_card.street_address1)
    add_param(True, params, "address_line2", credit_card.street_address2)
    add_param(True, params, "address_city", credit_card.city)
    add_param(True, params, "address_state", credit_card.state)
    add_param(True, params, "address_zip", credit_card.postal_code)
    add_param(True, params, "address_country", credit_card.country_code)
    return params


def make_billing_details(credit_card: CreditCard) -> dict[str, Any] | None:
    address: dict[str, Any] = {}
    add_param(False, address, "city", credit_card.city)
    add_param(False, address, "country", credit_card.country_code)
    add_param(False, address, "line1", credit_card.street_address1)
    add_param(False, address, "line2", credit_card.street_address2)
    add_param(False, address, "postal_code", credit_card.postal_code)
    add_param(False, address, "state", credit_card.state)

    billing_details: dict[str, Any] = {}
    add_param(False, billing_details, "address", address)
    add_param(False, billing_details, "email", credit_card.email)
    add_param(False, billing_details, "name", get_full_name(credit_card.first_name, credit_card.last_name))
    add_param(False, billing_details, "phone", credit_card.phone)
    return billing_details or None


def make_payment_method_update_params(credit_card: CreditCard) -> dict[str, Any]:
    params: dict[str, Any] = {}
    add_param(False, params, "billing_details", make_billing_details(credit_card))
    return params


def make_payment_method_params(
    credit_card: CreditCard,
    card_number: str | None = None,
    expiration_month: int | None = None,
    expiration_year: int | None = None,
    card_code: str | None = None,
) -> dict[str, Any]:
    """
    Parámetros para crear un PaymentMethod de tipo tarjeta.

    Sin argumentos explícitos se usan el número, vencimiento y CVV de la
    propia tarjeta.
    """
    if card_number is None:
        card_number = credit_card.card_number
        expiration_month = credit_card.expiration_month
        expiration_year = credit_card.expiration_year
        card_code = credit_card.card_code

    card: dict[str, Any] = {}
    add_param(False, card, "exp_month", expiration_month)
    add_param(False, card, "exp_year", expiration_year)
    add_param(False, card, "number", numbers_only(card_number))
    add_param(False, card, "cvc", card_code)

    params: dict[str, Any] = {"type": "card", "card": card}
    add_param(False, params, "billing_details", make_billing_details(credit_card))
    return params


def make_shipping_params(
    transaction_request: TransactionRequest,
    credit_card: CreditCard,
) -> dict[str, Any] | None:
    """Datos de envío, o None si no hay dirección ni nombre de envío."""
    address: dict[str, Any] = {}
    add_param(False, address, "line1", transaction_request.shipping_street_address1)
    add_param(False, address, "city", transaction_request.shipping_city)
    add_param(False, address, "country", transaction_request.shipping_country_code)
    add_param(False, address, "line2", transaction_request.shipping_street_address2)
    add_param(False, address, "postal_code", transaction_request.shipping_postal_code)
    add_param(False, address, "state", transaction_request.shipping_state)

    shipping_name = get_full_name(
        transaction_request.shipping_first_name,
        transaction_request.shipping_last_name,
    )
    if not address and shipping_name is None:
        return None

    shipping: dict[str, Any] = {}
    add_param(False, shipping, "address", address)
    add_param(False, shipping, "name", shipping_name)
    add_param(False, shipping, "phone", credit_card.phone)
    return shipping or None


def make_statement_descriptor(order_number: str | None, prefix: str) -> str | None:
    """
    Descriptor para el estado de cuenta a partir del número de orden.

    Stripe exige al menos un carácter alfabético; si el número de orden no
    tiene ninguno se antepone el prefijo configurado.
    """
    if order_number is None:
        return None
    order_number = order_number.strip()
    if not order_number:
        return None
    has_alpha = any(ch.isalpha() for ch in order_number)
    descriptor = order_number if has_alpha else prefix + order_number
    if len(descriptor) > MAX_STATEMENT_DESCRIPTOR_LENGTH:
        return None
    return descriptor
