"""
Adapter para Stripe.
Implementa PaymentProvider usando el SDK oficial de Stripe.

Las autorizaciones y ventas usan PaymentIntents confirmados en una sola
llamada. Las tarjetas almacenadas son Customers de Stripe con un
PaymentMethod por defecto; los clientes creados con la API heredada de
Cards (default_source) siguen soportados.
"""

from collections.abc import Mapping
from typing import Any

import stripe
import structlog

from app.adapters.base import (
    ApprovalResult,
    AuthorizationResult,
    CaptureResult,
    CommunicationResult,
    CreditCard,
    ErrorCode,
    PaymentProvider,
    SaleResult,
    TokenizedCreditCard,
    TransactionRequest,
)
from app.adapters.stripe_cards import ReplacementCard, get_attr
from app.adapters.stripe_errors import ConvertedError, avs_result, convert_error, cvv_result
from app.adapters.stripe_params import (
    add_param,
    make_card_update_params,
    make_customer_params,
    make_payment_intent_metadata,
    make_payment_method_params,
    make_payment_method_update_params,
    make_shipping_params,
    make_statement_descriptor,
)
from app.utils.card_utils import format_expiration, mask_card_number, numbers_only, to_minor_units
from app.utils.exceptions import StoredCardError, UnsupportedTestModeError


logger = structlog.get_logger(__name__)


# "sources" ya no se incluye por defecto: https://stripe.com/docs/upgrades#2020-08-27
EXPAND_SOURCES = ["sources"]

# Sin paginación: es muy improbable que un cliente tenga más de 100 tarjetas
PAYMENT_METHOD_LIST_LIMIT = 100
CUSTOMER_LIST_LIMIT = 100


def zero_pad(month: int) -> str:
    return f"{month:02d}"


class StripeAdapter(PaymentProvider):
    """
    Adapter para Stripe Payments.

    Cada instancia envía sus propias credenciales en cada llamada al SDK,
    por lo que varias cuentas de Stripe pueden convivir en el mismo proceso.
    """

    def __init__(
        self,
        provider_id: str,
        api_key: str,
        api_version: str | None = None,
        statement_descriptor_prefix: str = "ORD#",
        max_network_retries: int | None = None,
    ):
        """
        Inicializa el adapter de Stripe.

        Args:
            provider_id: Identificador de esta instancia del proveedor
            api_key: Stripe secret key
            api_version: Versión de la API fijada, o None para la de la cuenta
            statement_descriptor_prefix: Prefijo para descriptores sin letras
            max_network_retries: Reintentos de red del propio SDK
        """
        self._provider_id = provider_id
        self._api_key = api_key
        self._statement_descriptor_prefix = statement_descriptor_prefix

        self._options: dict[str, Any] = {"api_key": api_key}
        if api_version:
            self._options["stripe_version"] = api_version

        if max_network_retries is not None:
            stripe.max_network_retries = max_network_retries

        logger.info(
            "StripeAdapter initialized",
            provider_id=provider_id,
            api_version=api_version,
        )

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def api_key(self) -> str:
        return self._api_key

    # =========================================================================
    # Clientes y métodos de pago
    # =========================================================================

    def _retrieve_customer(self, customer_id: str) -> Any:
        return stripe.Customer.retrieve(customer_id, expand=EXPAND_SOURCES, **self._options)

    def _default_payment_method_id(self, customer: Any) -> tuple[Any, str | None]:
        """
        Obtiene el PaymentMethod por defecto de un cliente.

        Si no hay uno definido, el primer PaymentMethod de tarjeta adjunto pasa
        a ser el predeterminado. Esto recupera fallos entre adjuntar un nuevo
        PaymentMethod y marcarlo como predeterminado.

        Returns:
            (cliente, posiblemente actualizado; id del PaymentMethod o None)
        """
        payment_method_id = get_attr(get_attr(customer, "invoice_settings"), "default_payment_method")
        default_source = get_attr(customer, "default_source")
        # Una fuente heredada se maneja con la API de Cards
        if payment_method_id is not None and payment_method_id == default_source:
            payment_method_id = None

        if payment_method_id is None:
            payment_methods = stripe.PaymentMethod.list(
                customer=customer.id,
                type="card",
                limit=PAYMENT_METHOD_LIST_LIMIT,
                **self._options,
            )
            for payment_method in get_attr(payment_methods, "data") or []:
                if payment_method.id != default_source:
                    payment_method_id = payment_method.id
                    customer = stripe.Customer.modify(
                        customer.id,
                        invoice_settings={"default_payment_method": payment_method_id},
                        expand=EXPAND_SOURCES,
                        **self._options,
                    )
                    logger.info(
                        "Default payment method recovered",
                        customer_id=customer.id,
                        payment_method_id=payment_method_id,
                    )
                    break

        return customer, payment_method_id

    def _delete_default_source(self, customer: Any, default_source: str) -> None:
        # Conversión a PaymentMethod incompleta: se elimina la fuente heredada
        stripe.Customer.delete_source(customer.id, default_source, **self._options)
        logger.info(
            "Legacy default source removed",
            customer_id=customer.id,
            source_id=default_source,
        )

    def _stored_card_error(
        self,
        operation: str,
        e: stripe.StripeError,
        masked_card_number: str | None = None,
        expiration_month: int | None = None,
        expiration_year: int | None = None,
    ) -> StoredCardError:
        converted = convert_error(e, masked_card_number, expiration_month, expiration_year)
        logger.error(
            "Stripe stored card operation failed",
            provider_id=self._provider_id,
            operation=operation,
            provider_error_code=converted.provider_error_code,
            error_code=converted.error_code,
            error=converted.provider_error_message,
        )
        return StoredCardError(self._provider_id, operation, converted)

    # =========================================================================
    # Transacciones
    # =========================================================================

    async def sale(
        self,
        transaction_request: TransactionRequest,
        credit_card: CreditCard,
    ) -> SaleResult:
        """Autoriza y captura; el resultado de captura refleja la autorización."""
        authorization_result = self._sale_or_authorize(transaction_request, credit_card, capture=True)
        return SaleResult(
            authorization_result=authorization_result,
            capture_result=CaptureResult(
                provider_id=authorization_result.provider_id,
                communication_result=authorization_result.communication_result,
                provider_error_code=authorization_result.provider_error_code,
                error_code=authorization_result.error_code,
                provider_error_message=authorization_result.provider_error_message,
                provider_unique_id=authorization_result.provider_unique_id,
            ),
        )

    async def authorize(
        self,
        transaction_request: TransactionRequest,
        credit_card: CreditCard,
    ) -> AuthorizationResult:
        return self._sale_or_authorize(transaction_request, credit_card, capture=False)

    def _payment_intent_params(
        self,
        transaction_request: TransactionRequest,
        credit_card: CreditCard,
        capture: bool,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "amount": to_minor_units(transaction_request.total_amount, transaction_request.currency),
            "currency": transaction_request.currency.lower(),
            "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
            "capture_method": "automatic" if capture else "manual",
            "confirm": True,
            "expand": ["latest_charge"],
        }
        add_param(False, params, "description", transaction_request.description)
        add_param(False, params, "metadata", make_payment_intent_metadata(transaction_request, credit_card))
        if transaction_request.email_customer:
            # El envío real del recibo se configura en la cuenta de Stripe
            add_param(False, params, "receipt_email", credit_card.email)
        add_param(False, params, "shipping", make_shipping_params(transaction_request, credit_card))
        add_param(
            False,
            params,
            "statement_descriptor",
            make_statement_descriptor(transaction_request.order_number, self._statement_descriptor_prefix),
        )
        return params

    def _sale_or_authorize(
        self,
        transaction_request: TransactionRequest,
        credit_card: CreditCard,
        capture: bool,
    ) -> AuthorizationResult:
        """
        Crea y confirma un PaymentIntent.

        Los rechazos y errores de Stripe se reportan en el resultado. Solo los
        errores locales (modo de prueba, monto inválido) lanzan excepción.
        """
        if transaction_request.test_mode:
            raise UnsupportedTestModeError(self._provider_id)

        params = self._payment_intent_params(transaction_request, credit_card, capture)
        customer_id = credit_card.provider_unique_id

        try:
            if customer_id is not None:
                # Tarjeta almacenada
                params["customer"] = customer_id
                customer, payment_method_id = self._default_payment_method_id(
                    self._retrieve_customer(customer_id)
                )
                if payment_method_id is None:
                    # Compatibilidad con la API heredada de Cards
                    payment_method_id = get_attr(customer, "default_source")
            else:
                payment_method_id = stripe.PaymentMethod.create(
                    **make_payment_method_params(credit_card),
                    **self._options,
                ).id
            params["payment_method"] = payment_method_id

            payment_intent = stripe.PaymentIntent.create(**params, **self._options)

        except stripe.StripeError as e:
            converted = convert_error(
                e,
                credit_card.masked_card_number,
                credit_card.expiration_month,
                credit_card.expiration_year,
            )
            return self._error_result(converted, customer_id)

        # Detalles de la tarjeta según el cargo
        latest_charge = get_attr(payment_intent, "latest_charge")
        if isinstance(latest_charge, str):
            latest_charge = None
        payment_method_details = None
        if latest_charge is not None:
            charge_payment_method = get_attr(latest_charge, "payment_method")
            if charge_payment_method == payment_method_id:
                payment_method_details = get_attr(latest_charge, "payment_method_details")
            else:
                logger.warning(
                    "Charge payment method mismatch",
                    payment_method_id=payment_method_id,
                    charge_payment_method=charge_payment_method,
                )
        card = get_attr(payment_method_details, "card")
        checks = get_attr(card, "checks")

        provider_cvv_result = get_attr(checks, "cvc_check")
        provider_avs_result, avs = avs_result(
            get_attr(checks, "address_line1_check"),
            get_attr(checks, "address_postal_code_check"),
        )

        replacement = ReplacementCard.from_card(
            card,
            credit_card.masked_card_number,
            credit_card.expiration_month,
            credit_card.expiration_year,
        )
        tokenized = None if customer_id is None else replacement.tokenized(customer_id)

        # https://stripe.com/docs/payments/paymentintents/lifecycle
        status = payment_intent.status
        if status == ("succeeded" if capture else "requires_capture"):
            approval_result = ApprovalResult.APPROVED
            provider_approval_result = status
            approval_code = get_attr(latest_charge, "id")
        else:
            # El resto de estados se reportan como retenidos
            next_action = get_attr(payment_intent, "next_action")
            approval_result = ApprovalResult.HOLD
            provider_approval_result = status if next_action is None else get_attr(next_action, "type")
            approval_code = None

        logger.info(
            "Stripe payment intent created",
            provider_id=self._provider_id,
            payment_intent_id=payment_intent.id,
            status=status,
            approval_result=approval_result,
            capture=capture,
        )

        return AuthorizationResult(
            provider_id=self._provider_id,
            communication_result=CommunicationResult.SUCCESS,
            provider_unique_id=payment_intent.id,
            tokenized_credit_card=tokenized,
            provider_approval_result=provider_approval_result,
            approval_result=approval_result,
            provider_cvv_result=provider_cvv_result,
            cvv_result=cvv_result(provider_cvv_result),
            provider_avs_result=provider_avs_result,
            avs_result=avs,
            approval_code=approval_code,
        )

    def _error_result(self, converted: ConvertedError, customer_id: str | None) -> AuthorizationResult:
        tokenized = None if customer_id is None else converted.replacement.tokenized(customer_id)

        if converted.decline_reason is None:
            logger.error(
                "Stripe payment intent failed",
                provider_id=self._provider_id,
                provider_error_code=converted.provider_error_code,
                error_code=converted.error_code,
                error=converted.provider_error_message,
            )
            return AuthorizationResult(
                provider_id=self._provider_id,
                communication_result=converted.communication_result,
                provider_error_code=converted.provider_error_code,
                error_code=converted.error_code,
                provider_error_message=converted.provider_error_message,
                tokenized_credit_card=tokenized,
            )

        logger.info(
            "Stripe payment declined",
            provider_id=self._provider_id,
            provider_decline_reason=converted.provider_error_code,
            decline_reason=converted.decline_reason,
        )
        return AuthorizationResult(
            provider_id=self._provider_id,
            communication_result=converted.communication_result,
            provider_error_message=converted.provider_error_message,
            tokenized_credit_card=tokenized,
            approval_result=ApprovalResult.DECLINED,
            provider_decline_reason=converted.provider_error_code,
            decline_reason=converted.decline_reason,
        )

    async def capture(self, authorization_result: AuthorizationResult) -> CaptureResult:
        """Captura un PaymentIntent autorizado previamente."""
        payment_intent_id = authorization_result.provider_unique_id
        try:
            captured = stripe.PaymentIntent.capture(payment_intent_id, **self._options)
        except stripe.StripeError as e:
            converted = convert_error(e)
            logger.error(
                "Stripe capture failed",
                provider_id=self._provider_id,
                payment_intent_id=payment_intent_id,
                provider_error_code=converted.provider_error_code,
                error=converted.provider_error_message,
            )
            if converted.decline_reason is None:
                return CaptureResult(
                    provider_id=self._provider_id,
                    communication_result=converted.communication_result,
                    provider_error_code=converted.provider_error_code,
                    error_code=converted.error_code,
                    provider_error_message=converted.provider_error_message,
                    provider_unique_id=payment_intent_id,
                )
            # Los rechazos ocurren al autorizar; uno aquí es un fallo de liquidación
            return CaptureResult(
                provider_id=self._provider_id,
                communication_result=CommunicationResult.GATEWAY_ERROR,
                provider_error_code=converted.provider_error_code,
                error_code=ErrorCode.APPROVED_BUT_SETTLEMENT_FAILED,
                provider_error_message=converted.provider_error_message,
                provider_unique_id=payment_intent_id,
            )

        if captured.status == "succeeded":
            logger.info("Stripe payment intent captured", payment_intent_id=payment_intent_id)
            return CaptureResult(
                provider_id=self._provider_id,
                communication_result=CommunicationResult.SUCCESS,
                provider_unique_id=payment_intent_id,
            )

        logger.warning(
            "Unexpected status after capture",
            payment_intent_id=payment_intent_id,
            status=captured.status,
        )
        return CaptureResult(
            provider_id=self._provider_id,
            communication_result=CommunicationResult.GATEWAY_ERROR,
            provider_error_code=captured.status,
            error_code=ErrorCode.APPROVED_BUT_SETTLEMENT_FAILED,
            provider_unique_id=payment_intent_id,
        )

    # =========================================================================
    # Tarjetas almacenadas
    # =========================================================================

    def can_store_credit_cards(self) -> bool:
        return True

    async def store_credit_card(self, credit_card: CreditCard) -> str:
        """
        Crea un Customer con la tarjeta como PaymentMethod por defecto.

        Returns:
            El id del Customer, que identifica a la tarjeta almacenada
        """
        try:
            customer = stripe.Customer.create(
                **make_customer_params(credit_card, False),
                **self._options,
            )
            payment_method = stripe.PaymentMethod.create(
                **make_payment_method_params(credit_card),
                **self._options,
            )
            # TODO: attach ejecuta verificaciones AVS y CVC que hoy se ignoran
            stripe.PaymentMethod.attach(payment_method.id, customer=customer.id, **self._options)
            customer = stripe.Customer.modify(
                customer.id,
                invoice_settings={"default_payment_method": payment_method.id},
                **self._options,
            )
        except stripe.StripeError as e:
            raise self._stored_card_error(
                "store_credit_card",
                e,
                credit_card.masked_card_number,
                credit_card.expiration_month,
                credit_card.expiration_year,
            ) from e

        logger.info("Credit card stored", provider_id=self._provider_id, customer_id=customer.id)
        return customer.id

    async def update_credit_card(self, credit_card: CreditCard) -> None:
        """Actualiza el titular en el Customer y en su tarjeta por defecto."""
        customer_id = credit_card.provider_unique_id
        try:
            customer = stripe.Customer.modify(
                customer_id,
                expand=EXPAND_SOURCES,
                **make_customer_params(credit_card, True),
                **self._options,
            )
            customer, payment_method_id = self._default_payment_method_id(customer)
            default_source = get_attr(customer, "default_source")

            if payment_method_id is not None:
                stripe.PaymentMethod.modify(
                    payment_method_id,
                    **make_payment_method_update_params(credit_card),
                    **self._options,
                )
                if default_source is not None:
                    self._delete_default_source(customer, default_source)
            elif default_source is not None:
                stripe.Customer.modify_source(
                    customer_id,
                    default_source,
                    **make_card_update_params(credit_card),
                    **self._options,
                )
            else:
                logger.warning("Customer does not have any default source", customer_id=customer_id)
                raise StoredCardError(self._provider_id, "update_credit_card")
        except stripe.StripeError as e:
            raise self._stored_card_error(
                "update_credit_card",
                e,
                credit_card.masked_card_number,
                credit_card.expiration_month,
                credit_card.expiration_year,
            ) from e

        logger.info("Credit card updated", provider_id=self._provider_id, customer_id=customer_id)

    async def update_credit_card_number_and_expiration(
        self,
        credit_card: CreditCard,
        card_number: str,
        expiration_month: int,
        expiration_year: int,
        card_code: str | None = None,
    ) -> None:
        """
        Reemplaza la tarjeta: nuevo PaymentMethod por defecto, se desvincula el
        anterior y se elimina cualquier fuente heredada.
        """
        customer_id = credit_card.provider_unique_id
        try:
            customer, old_payment_method_id = self._default_payment_method_id(
                self._retrieve_customer(customer_id)
            )
            default_source = get_attr(customer, "default_source")

            payment_method = stripe.PaymentMethod.create(
                **make_payment_method_params(
                    credit_card,
                    card_number,
                    expiration_month,
                    expiration_year,
                    numbers_only(card_code) if card_code is not None else credit_card.card_code,
                ),
                **self._options,
            )
            stripe.PaymentMethod.attach(payment_method.id, customer=customer.id, **self._options)
            customer = stripe.Customer.modify(
                customer.id,
                invoice_settings={"default_payment_method": payment_method.id},
                expand=EXPAND_SOURCES,
                **self._options,
            )

            if old_payment_method_id is not None:
                stripe.PaymentMethod.detach(old_payment_method_id, **self._options)
            if default_source is not None:
                self._delete_default_source(customer, default_source)
        except stripe.StripeError as e:
            raise self._stored_card_error(
                "update_credit_card_number_and_expiration",
                e,
                mask_card_number(card_number),
                expiration_month,
                expiration_year,
            ) from e

        logger.info(
            "Credit card number and expiration updated",
            provider_id=self._provider_id,
            customer_id=customer_id,
            payment_method_id=payment_method.id,
        )

    async def update_credit_card_expiration(
        self,
        credit_card: CreditCard,
        expiration_month: int,
        expiration_year: int,
    ) -> None:
        customer_id = credit_card.provider_unique_id
        try:
            customer, payment_method_id = self._default_payment_method_id(
                self._retrieve_customer(customer_id)
            )
            default_source = get_attr(customer, "default_source")

            if payment_method_id is not None:
                stripe.PaymentMethod.modify(
                    payment_method_id,
                    card={"exp_month": expiration_month, "exp_year": expiration_year},
                    **self._options,
                )
                if default_source is not None:
                    self._delete_default_source(customer, default_source)
            elif default_source is not None:
                # La API heredada de Cards recibe el vencimiento como texto
                stripe.Customer.modify_source(
                    customer_id,
                    default_source,
                    exp_month=zero_pad(expiration_month),
                    exp_year=str(expiration_year),
                    **self._options,
                )
            else:
                logger.warning("Customer does not have any default source", customer_id=customer_id)
                raise StoredCardError(self._provider_id, "update_credit_card_expiration")
        except stripe.StripeError as e:
            raise self._stored_card_error(
                "update_credit_card_expiration",
                e,
                credit_card.masked_card_number,
                expiration_month,
                expiration_year,
            ) from e

        logger.info("Credit card expiration updated", provider_id=self._provider_id, customer_id=customer_id)

    async def delete_credit_card(self, credit_card: CreditCard) -> None:
        """Elimina el Customer, salvo que ya esté eliminado."""
        customer_id = credit_card.provider_unique_id
        try:
            customer = stripe.Customer.retrieve(customer_id, **self._options)
            if get_attr(customer, "deleted"):
                logger.info("Customer already deleted", customer_id=customer_id)
                return
            stripe.Customer.delete(customer_id, **self._options)
        except stripe.StripeError as e:
            raise self._stored_card_error(
                "delete_credit_card",
                e,
                credit_card.masked_card_number,
                credit_card.expiration_month,
                credit_card.expiration_year,
            ) from e

        logger.info("Credit card deleted", provider_id=self._provider_id, customer_id=customer_id)

    def can_get_tokenized_credit_cards(self) -> bool:
        return True

    def _default_card(self, customer_id: str) -> Any:
        """Tarjeta por defecto del cliente: la del PaymentMethod o la fuente heredada."""
        customer, payment_method_id = self._default_payment_method_id(
            self._retrieve_customer(customer_id)
        )
        if payment_method_id is not None:
            payment_method = stripe.PaymentMethod.retrieve(payment_method_id, **self._options)
            return get_attr(payment_method, "card")

        default_source = get_attr(customer, "default_source")
        if default_source is not None:
            return stripe.Customer.retrieve_source(customer_id, default_source, **self._options)

        logger.warning("Customer does not have any default source", customer_id=customer_id)
        return None

    async def get_tokenized_credit_cards(
        self,
        persisted_cards: Mapping[str, CreditCard],
    ) -> dict[str, TokenizedCreditCard]:
        """
        Recorre todos los clientes y compara su tarjeta por defecto con la
        conocida localmente.
        """
        cards: dict[str, TokenizedCreditCard] = {}
        try:
            customers = stripe.Customer.list(
                limit=CUSTOMER_LIST_LIMIT,
                expand=["data.sources"],
                **self._options,
            )
            for customer in customers.auto_paging_iter():
                customer_id = customer.id
                default_card = self._default_card(customer_id)
                persisted_card = persisted_cards.get(customer_id)

                replacement = ReplacementCard.from_values(
                    get_attr(default_card, "brand"),
                    get_attr(default_card, "last4"),
                    get_attr(default_card, "exp_month"),
                    get_attr(default_card, "exp_year"),
                    None if persisted_card is None else persisted_card.masked_card_number,
                    None if persisted_card is None else persisted_card.expiration_month,
                    None if persisted_card is None else persisted_card.expiration_year,
                )
                card = replacement.tokenized(customer_id)
                logger.debug(
                    "Tokenized credit card",
                    provider_id=self._provider_id,
                    customer_id=customer_id,
                    provider_replacement_masked_card_number=card.provider_replacement_masked_card_number,
                    replacement_masked_card_number=card.replacement_masked_card_number,
                    provider_replacement_expiration=card.provider_replacement_expiration,
                    replacement_expiration=format_expiration(
                        card.replacement_expiration_month,
                        card.replacement_expiration_year,
                    ),
                )
                if customer_id in cards:
                    logger.error("Duplicate customer id", customer_id=customer_id)
                    raise StoredCardError(self._provider_id, "get_tokenized_credit_cards")
                cards[customer_id] = card
        except stripe.StripeError as e:
            raise self._stored_card_error("get_tokenized_credit_cards", e) from e

        logger.info(
            "Tokenized credit cards retrieved",
            provider_id=self._provider_id,
            count=len(cards),
        )
        return cards
