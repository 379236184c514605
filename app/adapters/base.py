"""
Interfaz base abstracta para proveedores de servicios de pago.
Define el modelo genérico (tarjetas, transacciones, resultados) y el
contrato que todos los adapters deben implementar.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from app.utils.card_utils import mask_card_number


class CommunicationResult(str, Enum):
    """Resultado de la comunicación con la pasarela."""

    LOCAL_ERROR = "local_error"
    IO_ERROR = "io_error"
    GATEWAY_ERROR = "gateway_error"
    SUCCESS = "success"


class ErrorCode(str, Enum):
    """Vocabulario genérico de errores de transacción."""

    UNKNOWN = "unknown"
    RATE_LIMIT = "rate_limit"
    DUPLICATE = "duplicate"
    ERROR_TRY_AGAIN = "error_try_again"
    ERROR_TRY_AGAIN_5_MINUTES = "error_try_again_5_minutes"
    PROVIDER_CONFIGURATION_ERROR = "provider_configuration_error"
    GATEWAY_SECURITY_GUIDELINES_NOT_MET = "gateway_security_guidelines_not_met"
    APPROVED_BUT_SETTLEMENT_FAILED = "approved_but_settlement_failed"
    AMOUNT_TOO_HIGH = "amount_too_high"
    INVALID_AMOUNT = "invalid_amount"
    CARD_TYPE_NOT_SUPPORTED = "card_type_not_supported"
    CURRENCY_NOT_SUPPORTED = "currency_not_supported"
    CARD_EXPIRED = "card_expired"
    INVALID_CARD_NUMBER = "invalid_card_number"
    INVALID_CARD_CODE = "invalid_card_code"
    INVALID_EXPIRATION_DATE = "invalid_expiration_date"
    INVALID_CARD_ADDRESS = "invalid_card_address"
    INVALID_CARD_POSTAL_CODE = "invalid_card_postal_code"
    INVALID_CARD_STATE = "invalid_card_state"
    INVALID_CARD_COUNTRY_CODE = "invalid_card_country_code"
    INVALID_CARD_EMAIL = "invalid_card_email"
    INVALID_CUSTOMER_TAX_ID = "invalid_customer_tax_id"
    INVALID_SHIPPING_AMOUNT = "invalid_shipping_amount"
    INVALID_TAX_AMOUNT = "invalid_tax_amount"


class ApprovalResult(str, Enum):
    APPROVED = "approved"
    DECLINED = "declined"
    HOLD = "hold"


class DeclineReason(str, Enum):
    """Motivo genérico de rechazo por parte del emisor."""

    UNKNOWN = "unknown"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    EXPIRED_CARD = "expired_card"
    STOLEN_OR_LOST_CARD = "stolen_or_lost_card"
    PICK_UP_CARD = "pick_up_card"
    FRAUD_DETECTED = "fraud_detected"
    CVV2_MISMATCH = "cvv2_mismatch"
    AVS_FAILURE = "avs_failure"
    VOLUME_EXCEEDED_1_DAY = "volume_exceeded_1_day"


class CvvResult(str, Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    NOT_PROCESSED = "not_processed"
    CVV2_NOT_PROVIDED_BY_MERCHANT = "cvv2_not_provided_by_merchant"
    NOT_SUPPORTED_BY_ISSUER = "not_supported_by_issuer"
    UNKNOWN = "unknown"


class AvsResult(str, Enum):
    ADDRESS_Y_ZIP_5 = "address_y_zip_5"
    ADDRESS_Y_ZIP_N = "address_y_zip_n"
    ADDRESS_N_ZIP_5 = "address_n_zip_5"
    ADDRESS_N_ZIP_N = "address_n_zip_n"
    UNAVAILABLE = "unavailable"
    SERVICE_NOT_SUPPORTED = "service_not_supported"
    ADDRESS_NOT_PROVIDED = "address_not_provided"
    UNKNOWN = "unknown"


@dataclass
class CreditCard:
    """
    Tarjeta de crédito genérica, nueva o almacenada en el proveedor.

    Cuando `provider_unique_id` está definido la tarjeta ya fue almacenada
    y el número completo normalmente no está disponible.
    """

    provider_unique_id: str | None = None

    # Datos de la tarjeta
    card_number: str | None = None
    masked_card_number: str | None = None
    expiration_month: int | None = None
    expiration_year: int | None = None
    card_code: str | None = None

    # Titular
    first_name: str | None = None
    last_name: str | None = None
    company_name: str | None = None
    email: str | None = None
    phone: str | None = None
    fax: str | None = None
    customer_id: str | None = None
    customer_tax_id: str | None = None

    # Dirección de facturación
    street_address1: str | None = None
    street_address2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country_code: str | None = None

    comments: str | None = None
    group_name: str | None = None
    principal_name: str | None = None

    def __post_init__(self):
        if self.masked_card_number is None and self.card_number:
            self.masked_card_number = mask_card_number(self.card_number)


@dataclass
class TransactionRequest:
    """Solicitud de transacción independiente del proveedor."""

    amount: Decimal
    currency: str = "USD"
    test_mode: bool = False
    customer_ip: str | None = None

    tax_amount: Decimal | None = None
    tax_exempt: bool = False
    shipping_amount: Decimal | None = None
    duty_amount: Decimal | None = None

    # Envío
    shipping_first_name: str | None = None
    shipping_last_name: str | None = None
    shipping_company_name: str | None = None
    shipping_street_address1: str | None = None
    shipping_street_address2: str | None = None
    shipping_city: str | None = None
    shipping_state: str | None = None
    shipping_postal_code: str | None = None
    shipping_country_code: str | None = None

    email_customer: bool = False
    invoice_number: str | None = None
    purchase_order_number: str | None = None
    description: str | None = None
    order_number: str | None = None

    @property
    def total_amount(self) -> Decimal:
        total = Decimal(self.amount)
        for extra in (self.tax_amount, self.shipping_amount, self.duty_amount):
            if extra is not None:
                total += extra
        return total


@dataclass
class TokenizedCreditCard:
    """
    Estado de una tarjeta almacenada según el proveedor.

    Los campos de reemplazo quedan en None cuando no hubo cambios o cuando
    no se pudo inferir un valor sin ambigüedad.
    """

    provider_unique_id: str
    provider_replacement_masked_card_number: str | None = None
    replacement_masked_card_number: str | None = None
    provider_replacement_expiration: str | None = None
    replacement_expiration_month: int | None = None
    replacement_expiration_year: int | None = None


@dataclass
class TransactionResult:
    """Campos comunes a todos los resultados de transacción."""

    provider_id: str
    communication_result: CommunicationResult
    provider_error_code: str | None = None
    error_code: ErrorCode | None = None
    provider_error_message: str | None = None
    provider_unique_id: str | None = None


@dataclass
class AuthorizationResult(TransactionResult):
    tokenized_credit_card: TokenizedCreditCard | None = None
    provider_approval_result: str | None = None
    approval_result: ApprovalResult | None = None
    provider_decline_reason: str | None = None
    decline_reason: DeclineReason | None = None
    provider_cvv_result: str | None = None
    cvv_result: CvvResult | None = None
    provider_avs_result: str | None = None
    avs_result: AvsResult | None = None
    approval_code: str | None = None


@dataclass
class CaptureResult(TransactionResult):
    pass


@dataclass
class SaleResult:
    authorization_result: AuthorizationResult
    capture_result: CaptureResult


class PaymentProvider(ABC):
    """
    Interfaz abstracta para proveedores de servicios de pago.

    Las operaciones de tarjetas almacenadas son opcionales: un proveedor que
    no las soporta deja la implementación por defecto, que lanza
    NotImplementedError, y responde False en `can_store_credit_cards`.
    """

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Identificador de esta instancia del proveedor."""
        pass

    @abstractmethod
    async def authorize(
        self,
        transaction_request: TransactionRequest,
        credit_card: CreditCard,
    ) -> AuthorizationResult:
        """
        Autoriza (retiene) un monto sin capturarlo.

        Args:
            transaction_request: Datos de la transacción
            credit_card: Tarjeta nueva o almacenada

        Returns:
            AuthorizationResult; los rechazos y errores de la pasarela se
            reportan en el resultado, no como excepciones
        """
        pass

    @abstractmethod
    async def capture(self, authorization_result: AuthorizationResult) -> CaptureResult:
        """Captura una autorización previa."""
        pass

    @abstractmethod
    async def sale(
        self,
        transaction_request: TransactionRequest,
        credit_card: CreditCard,
    ) -> SaleResult:
        """Autoriza y captura en una sola operación."""
        pass

    async def void_transaction(self, transaction: AuthorizationResult) -> TransactionResult:
        raise NotImplementedError("Void not implemented")

    async def credit(
        self,
        transaction_request: TransactionRequest,
        credit_card: CreditCard,
    ) -> TransactionResult:
        raise NotImplementedError("Credit not implemented")

    def can_store_credit_cards(self) -> bool:
        return False

    async def store_credit_card(self, credit_card: CreditCard) -> str:
        """
        Almacena una tarjeta en el proveedor.

        Returns:
            El identificador único de la tarjeta almacenada
        """
        raise NotImplementedError("Stored cards not supported")

    async def update_credit_card(self, credit_card: CreditCard) -> None:
        """Actualiza los datos del titular de una tarjeta almacenada."""
        raise NotImplementedError("Stored cards not supported")

    async def update_credit_card_number_and_expiration(
        self,
        credit_card: CreditCard,
        card_number: str,
        expiration_month: int,
        expiration_year: int,
        card_code: str | None = None,
    ) -> None:
        raise NotImplementedError("Stored cards not supported")

    async def update_credit_card_expiration(
        self,
        credit_card: CreditCard,
        expiration_month: int,
        expiration_year: int,
    ) -> None:
        raise NotImplementedError("Stored cards not supported")

    async def delete_credit_card(self, credit_card: CreditCard) -> None:
        raise NotImplementedError("Stored cards not supported")

    def can_get_tokenized_credit_cards(self) -> bool:
        return False

    async def get_tokenized_credit_cards(
        self,
        persisted_cards: Mapping[str, CreditCard],
    ) -> dict[str, TokenizedCreditCard]:
        """
        Sincroniza las tarjetas almacenadas con el proveedor.

        Args:
            persisted_cards: Tarjetas conocidas localmente por provider_unique_id

        Returns:
            El estado de cada tarjeta del proveedor, por provider_unique_id
        """
        raise NotImplementedError("Tokenized cards not supported")
