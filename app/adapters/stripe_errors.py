"""
Traducción de errores de Stripe a la taxonomía genérica de resultados.

Referencias:
- https://stripe.com/docs/api/errors
- https://stripe.com/docs/error-codes
- https://stripe.com/docs/declines/codes
"""

from dataclasses import dataclass, field

import stripe
from stripe.oauth_error import OAuthError

from app.adapters.base import (
    AvsResult,
    CommunicationResult,
    CvvResult,
    DeclineReason,
    ErrorCode,
)
from app.adapters.stripe_cards import ReplacementCard, combine, get_attr


@dataclass
class ConvertedError:
    """Error de Stripe ya traducido, con los datos de tarjeta de reemplazo si los hubo."""

    communication_result: CommunicationResult
    provider_error_code: str
    error_code: ErrorCode | None
    provider_error_message: str
    decline_reason: DeclineReason | None = None
    replacement: ReplacementCard = field(default_factory=ReplacementCard)


# Cada código se traduce a un ErrorCode o a un DeclineReason, nunca ambos.
ERROR_CODE_MAP: dict[str, tuple[ErrorCode | None, DeclineReason | None]] = {
    "amount_too_large": (ErrorCode.AMOUNT_TOO_HIGH, None),
    "amount_too_small": (ErrorCode.INVALID_AMOUNT, None),
    "api_key_expired": (ErrorCode.GATEWAY_SECURITY_GUIDELINES_NOT_MET, None),
    "balance_insufficient": (None, DeclineReason.INSUFFICIENT_FUNDS),
    "charge_already_captured": (ErrorCode.DUPLICATE, None),
    "charge_already_refunded": (ErrorCode.DUPLICATE, None),
    "charge_disputed": (ErrorCode.DUPLICATE, None),
    "charge_exceeds_source_limit": (None, DeclineReason.VOLUME_EXCEEDED_1_DAY),
    "country_unsupported": (ErrorCode.INVALID_CARD_COUNTRY_CODE, None),
    "email_invalid": (ErrorCode.INVALID_CARD_EMAIL, None),
    "expired_card": (ErrorCode.CARD_EXPIRED, None),
    "incorrect_address": (ErrorCode.INVALID_CARD_ADDRESS, None),
    "incorrect_cvc": (ErrorCode.INVALID_CARD_CODE, None),
    "incorrect_number": (ErrorCode.INVALID_CARD_NUMBER, None),
    "incorrect_zip": (ErrorCode.INVALID_CARD_POSTAL_CODE, None),
    "invalid_card_type": (ErrorCode.CARD_TYPE_NOT_SUPPORTED, None),
    "invalid_charge_amount": (ErrorCode.INVALID_AMOUNT, None),
    "invalid_cvc": (ErrorCode.INVALID_CARD_CODE, None),
    "invalid_expiry_month": (ErrorCode.INVALID_EXPIRATION_DATE, None),
    "invalid_expiry_year": (ErrorCode.INVALID_EXPIRATION_DATE, None),
    "invalid_number": (ErrorCode.INVALID_CARD_NUMBER, None),
    "livemode_mismatch": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "missing": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "parameter_invalid_empty": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "parameter_invalid_integer": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "parameter_invalid_string_blank": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "parameter_invalid_string_empty": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "parameter_missing": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "parameter_unknown": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "parameters_exclusive": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "payment_method_unactivated": (ErrorCode.CARD_TYPE_NOT_SUPPORTED, None),
    "platform_api_key_expired": (ErrorCode.GATEWAY_SECURITY_GUIDELINES_NOT_MET, None),
    "postal_code_invalid": (ErrorCode.INVALID_CARD_POSTAL_CODE, None),
    "processing_error": (ErrorCode.ERROR_TRY_AGAIN, None),
    "rate_limit": (ErrorCode.RATE_LIMIT, None),
    "secret_key_required": (ErrorCode.GATEWAY_SECURITY_GUIDELINES_NOT_MET, None),
    "shipping_calculation_failed": (ErrorCode.INVALID_SHIPPING_AMOUNT, None),
    "state_unsupported": (ErrorCode.INVALID_CARD_STATE, None),
    "tax_id_invalid": (ErrorCode.INVALID_CUSTOMER_TAX_ID, None),
    "taxes_calculation_failed": (ErrorCode.INVALID_TAX_AMOUNT, None),
    "testmode_charges_only": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "tls_version_unsupported": (ErrorCode.GATEWAY_SECURITY_GUIDELINES_NOT_MET, None),
    "token_already_used": (ErrorCode.DUPLICATE, None),
    "token_in_use": (ErrorCode.DUPLICATE, None),
}

# Códigos de rechazo del emisor, solo para code == "card_declined"
DECLINE_CODE_MAP: dict[str, tuple[ErrorCode | None, DeclineReason | None]] = {
    "approve_with_id": (ErrorCode.ERROR_TRY_AGAIN_5_MINUTES, None),
    "call_issuer": (None, DeclineReason.UNKNOWN),
    "card_not_supported": (ErrorCode.CARD_TYPE_NOT_SUPPORTED, None),
    "card_velocity_exceeded": (None, DeclineReason.INSUFFICIENT_FUNDS),
    "currency_not_supported": (ErrorCode.CURRENCY_NOT_SUPPORTED, None),
    "do_not_honor": (None, DeclineReason.UNKNOWN),
    "do_not_try_again": (None, DeclineReason.UNKNOWN),
    "duplicate_transaction": (ErrorCode.DUPLICATE, None),
    "expired_card": (None, DeclineReason.EXPIRED_CARD),
    "fraudulent": (None, DeclineReason.FRAUD_DETECTED),
    "generic_decline": (None, DeclineReason.UNKNOWN),
    "incorrect_number": (ErrorCode.INVALID_CARD_NUMBER, None),
    "incorrect_cvc": (None, DeclineReason.CVV2_MISMATCH),
    "incorrect_pin": (None, DeclineReason.UNKNOWN),
    "incorrect_zip": (None, DeclineReason.AVS_FAILURE),
    "insufficient_funds": (None, DeclineReason.INSUFFICIENT_FUNDS),
    "invalid_account": (None, DeclineReason.UNKNOWN),
    "invalid_amount": (ErrorCode.INVALID_AMOUNT, None),
    "invalid_cvc": (None, DeclineReason.CVV2_MISMATCH),
    "invalid_expiry_year": (ErrorCode.INVALID_EXPIRATION_DATE, None),
    "invalid_number": (ErrorCode.INVALID_CARD_NUMBER, None),
    "invalid_pin": (ErrorCode.UNKNOWN, None),
    "issuer_not_available": (ErrorCode.ERROR_TRY_AGAIN_5_MINUTES, None),
    "lost_card": (None, DeclineReason.STOLEN_OR_LOST_CARD),
    "merchant_blacklist": (None, DeclineReason.UNKNOWN),
    "new_account_information_available": (None, DeclineReason.UNKNOWN),
    "no_action_taken": (None, DeclineReason.UNKNOWN),
    "not_permitted": (None, DeclineReason.UNKNOWN),
    "pickup_card": (None, DeclineReason.PICK_UP_CARD),
    "pin_try_exceeded": (None, DeclineReason.UNKNOWN),
    "processing_error": (ErrorCode.ERROR_TRY_AGAIN, None),
    "reenter_transaction": (ErrorCode.ERROR_TRY_AGAIN, None),
    "restricted_card": (None, DeclineReason.UNKNOWN),
    "revocation_of_all_authorizations": (None, DeclineReason.UNKNOWN),
    "revocation_of_authorization": (None, DeclineReason.UNKNOWN),
    "security_violation": (ErrorCode.GATEWAY_SECURITY_GUIDELINES_NOT_MET, None),
    "service_not_allowed": (None, DeclineReason.UNKNOWN),
    "stolen_card": (None, DeclineReason.STOLEN_OR_LOST_CARD),
    "stop_payment_order": (None, DeclineReason.UNKNOWN),
    "testmode_decline": (ErrorCode.PROVIDER_CONFIGURATION_ERROR, None),
    "transaction_not_allowed": (None, DeclineReason.UNKNOWN),
    "try_again_later": (ErrorCode.ERROR_TRY_AGAIN_5_MINUTES, None),
    "withdrawal_count_limit_exceeded": (None, DeclineReason.INSUFFICIENT_FUNDS),
}

CVV_RESULT_MAP = {
    "pass": CvvResult.MATCH,
    "fail": CvvResult.NO_MATCH,
    "unavailable": CvvResult.NOT_PROCESSED,
    "unchecked": CvvResult.NOT_SUPPORTED_BY_ISSUER,
}

# Resultado AVS cuando solo se verificó la dirección o solo el código postal
_SINGLE_CHECK_AVS_MAP = {
    "fail": AvsResult.ADDRESS_N_ZIP_N,
    "unavailable": AvsResult.UNAVAILABLE,
    "unchecked": AvsResult.SERVICE_NOT_SUPPORTED,
}


def map_error_code(
    code: str | None,
    decline_code: str | None,
) -> tuple[ErrorCode | None, DeclineReason | None]:
    if code == "card_declined":
        return DECLINE_CODE_MAP.get(decline_code, (None, DeclineReason.UNKNOWN))
    return ERROR_CODE_MAP.get(code, (ErrorCode.UNKNOWN, None))


def cvv_result(provider_cvv_result: str | None) -> CvvResult:
    if provider_cvv_result is None:
        return CvvResult.CVV2_NOT_PROVIDED_BY_MERCHANT
    return CVV_RESULT_MAP.get(provider_cvv_result, CvvResult.UNKNOWN)


def avs_result(address_result: str | None, zip_result: str | None) -> tuple[str, AvsResult]:
    """
    Combina las verificaciones de dirección y código postal.

    Returns:
        (resultado crudo "direccion,postal", AvsResult)
    """
    provider_avs_result = combine(address_result, zip_result)
    if address_result is not None and zip_result is not None:
        if address_result == "pass" and zip_result == "pass":
            return provider_avs_result, AvsResult.ADDRESS_Y_ZIP_5
        if address_result == "pass":
            return provider_avs_result, AvsResult.ADDRESS_Y_ZIP_N
        if zip_result == "pass":
            return provider_avs_result, AvsResult.ADDRESS_N_ZIP_5
        if address_result == "unchecked" and zip_result == "unchecked":
            return provider_avs_result, AvsResult.UNAVAILABLE
        if address_result == zip_result and address_result in _SINGLE_CHECK_AVS_MAP:
            return provider_avs_result, _SINGLE_CHECK_AVS_MAP[address_result]
        return provider_avs_result, AvsResult.UNKNOWN
    if address_result is not None:
        if address_result == "pass":
            return provider_avs_result, AvsResult.ADDRESS_Y_ZIP_N
        return provider_avs_result, _SINGLE_CHECK_AVS_MAP.get(address_result, AvsResult.UNKNOWN)
    if zip_result is not None:
        if zip_result == "pass":
            return provider_avs_result, AvsResult.ADDRESS_N_ZIP_5
        return provider_avs_result, _SINGLE_CHECK_AVS_MAP.get(zip_result, AvsResult.UNKNOWN)
    return provider_avs_result, AvsResult.ADDRESS_NOT_PROVIDED


def convert_error(
    e: stripe.StripeError,
    masked_card_number: str | None = None,
    expiration_month: int | None = None,
    expiration_year: int | None = None,
) -> ConvertedError:
    """
    Convierte una excepción de Stripe a un ConvertedError.

    Args:
        e: Excepción lanzada por el SDK
        masked_card_number: Número enmascarado conocido, para detectar reemplazos
        expiration_month: Mes de vencimiento conocido
        expiration_year: Año de vencimiento conocido
    """
    status_code = e.http_status
    error = getattr(e, "error", None)

    code = get_attr(error, "code") or e.code

    message = get_attr(error, "message")
    if not message:
        message = str(e).strip() or repr(e)

    # Tarjeta del PaymentMethod involucrado, si el error la incluye
    replacement = ReplacementCard.from_card(
        get_attr(get_attr(error, "payment_method"), "card"),
        masked_card_number,
        expiration_month,
        expiration_year,
    )

    base_code = combine(status_code, code)

    if isinstance(e, stripe.RateLimitError):
        return ConvertedError(
            communication_result=CommunicationResult.GATEWAY_ERROR,
            provider_error_code=base_code,
            error_code=ErrorCode.RATE_LIMIT,
            provider_error_message=message,
            replacement=replacement,
        )

    if isinstance(e, (stripe.CardError, stripe.InvalidRequestError)):
        param = get_attr(error, "param") or getattr(e, "param", None)
        decline_code = get_attr(error, "decline_code")
        error_code, decline_reason = map_error_code(code, decline_code)
        return ConvertedError(
            communication_result=(
                CommunicationResult.GATEWAY_ERROR if decline_reason is None
                else CommunicationResult.SUCCESS
            ),
            provider_error_code=f"{base_code},{combine(param, decline_code)}",
            error_code=error_code,
            provider_error_message=message,
            decline_reason=decline_reason,
            replacement=replacement,
        )

    if isinstance(e, (stripe.AuthenticationError, stripe.PermissionError)):
        return ConvertedError(
            communication_result=CommunicationResult.GATEWAY_ERROR,
            provider_error_code=base_code,
            error_code=ErrorCode.PROVIDER_CONFIGURATION_ERROR,
            provider_error_message=message,
            replacement=replacement,
        )

    if isinstance(e, OAuthError):
        oauth_error = get_attr(error, "error")
        description = get_attr(error, "error_description")
        return ConvertedError(
            communication_result=CommunicationResult.GATEWAY_ERROR,
            provider_error_code=f"{base_code},{'' if oauth_error is None else oauth_error}",
            error_code=ErrorCode.PROVIDER_CONFIGURATION_ERROR,
            provider_error_message=description or message,
            replacement=replacement,
        )

    if isinstance(e, stripe.IdempotencyError):
        return ConvertedError(
            communication_result=CommunicationResult.GATEWAY_ERROR,
            provider_error_code=base_code,
            error_code=ErrorCode.DUPLICATE,
            provider_error_message=message,
            replacement=replacement,
        )

    if isinstance(e, (stripe.APIConnectionError, stripe.APIError)):
        return ConvertedError(
            communication_result=CommunicationResult.IO_ERROR,
            provider_error_code=base_code,
            error_code=ErrorCode.ERROR_TRY_AGAIN,
            provider_error_message=message,
            replacement=replacement,
        )

    if isinstance(e, stripe.SignatureVerificationError):
        sig_header = getattr(e, "sig_header", None)
        return ConvertedError(
            communication_result=CommunicationResult.GATEWAY_ERROR,
            provider_error_code=f"{base_code},{'' if sig_header is None else sig_header}",
            error_code=ErrorCode.GATEWAY_SECURITY_GUIDELINES_NOT_MET,
            provider_error_message=message,
            replacement=replacement,
        )

    # Solo ocurre con subclases nuevas de StripeError
    return ConvertedError(
        communication_result=CommunicationResult.GATEWAY_ERROR,
        provider_error_code=base_code,
        error_code=ErrorCode.UNKNOWN,
        provider_error_message=message,
        replacement=replacement,
    )
