"""
Schemas para tarjetas y transacciones.
"""

from decimal import Decimal

from pydantic import Field, field_validator

from app.adapters.base import (
    ApprovalResult,
    AvsResult,
    CommunicationResult,
    CreditCard,
    CvvResult,
    DeclineReason,
    ErrorCode,
    TransactionRequest,
)
from app.schemas.common import BaseSchema


# ============================================
# Request Schemas (entrada)
# ============================================

class CreditCardRequest(BaseSchema):
    """Tarjeta nueva (con número) o almacenada (con provider_unique_id)."""

    provider_unique_id: str | None = Field(None, description="ID de la tarjeta almacenada en el proveedor")

    card_number: str | None = Field(None, description="Número completo, solo para tarjetas nuevas")
    masked_card_number: str | None = None
    expiration_month: int | None = Field(None, ge=1, le=12)
    expiration_year: int | None = Field(None, ge=1000, le=9999)
    card_code: str | None = Field(None, max_length=4)

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
    country_code: str | None = Field(None, min_length=2, max_length=2)

    comments: str | None = None
    group_name: str | None = None
    principal_name: str | None = None

    def to_domain(self) -> CreditCard:
        return CreditCard(**self.model_dump())


class TransactionCreateRequest(BaseSchema):
    """Datos de la transacción; los montos en la unidad mayor (dólares)."""

    amount: Decimal = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    test_mode: bool = False
    customer_ip: str | None = None

    tax_amount: Decimal | None = Field(None, ge=0)
    tax_exempt: bool = False
    shipping_amount: Decimal | None = Field(None, ge=0)
    duty_amount: Decimal | None = Field(None, ge=0)

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
    description: str | None = Field(None, max_length=1000)
    order_number: str | None = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    def to_domain(self) -> TransactionRequest:
        return TransactionRequest(**self.model_dump())


class PaymentRequest(BaseSchema):
    """Request para autorizar o vender."""

    transaction: TransactionCreateRequest
    credit_card: CreditCardRequest


# ============================================
# Response Schemas (salida)
# ============================================

class TokenizedCreditCardResponse(BaseSchema):
    provider_unique_id: str
    provider_replacement_masked_card_number: str | None = None
    replacement_masked_card_number: str | None = None
    provider_replacement_expiration: str | None = None
    replacement_expiration_month: int | None = None
    replacement_expiration_year: int | None = None


class CaptureResponse(BaseSchema):
    """Resultado de una captura."""

    provider_id: str
    communication_result: CommunicationResult
    provider_error_code: str | None = None
    error_code: ErrorCode | None = None
    provider_error_message: str | None = None
    provider_unique_id: str | None = None


class AuthorizationResponse(CaptureResponse):
    """Resultado de una autorización, con la decisión del emisor."""

    tokenized_credit_card: TokenizedCreditCardResponse | None = None
    provider_approval_result: str | None = None
    approval_result: ApprovalResult | None = None
    provider_decline_reason: str | None = None
    decline_reason: DeclineReason | None = None
    provider_cvv_result: str | None = None
    cvv_result: CvvResult | None = None
    provider_avs_result: str | None = None
    avs_result: AvsResult | None = None
    approval_code: str | None = None


class SaleResponse(BaseSchema):
    authorization_result: AuthorizationResponse
    capture_result: CaptureResponse
