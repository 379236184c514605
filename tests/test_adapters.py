"""
Tests para el StripeAdapter.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import stripe

from app.adapters.base import (
    ApprovalResult,
    AuthorizationResult,
    AvsResult,
    CommunicationResult,
    CreditCard,
    CvvResult,
    DeclineReason,
    ErrorCode,
    TransactionRequest,
)
from app.adapters.stripe_adapter import StripeAdapter
from app.utils.exceptions import InvalidAmountError, StoredCardError, UnsupportedTestModeError

from conftest import TEST_API_KEY, make_charge, make_customer


def card_declined(decline_code: str) -> stripe.CardError:
    return stripe.CardError(
        "Your card was declined.",
        None,
        "card_declined",
        http_status=402,
        json_body={
            "error": {
                "type": "card_error",
                "code": "card_declined",
                "decline_code": decline_code,
                "message": "Your card was declined.",
            }
        },
    )


@pytest.fixture
def new_card() -> CreditCard:
    return CreditCard(
        card_number="4242424242424242",
        expiration_month=12,
        expiration_year=2030,
        card_code="123",
        first_name="Test",
        last_name="User",
        email="test@example.com",
    )


@pytest.fixture
def stored_card() -> CreditCard:
    return CreditCard(
        provider_unique_id="cus_123",
        masked_card_number="4XXXXXXXXXXX4242",
        expiration_month=12,
        expiration_year=2030,
    )


@pytest.fixture
def transaction() -> TransactionRequest:
    return TransactionRequest(amount=Decimal("12.34"), currency="USD", order_number="1001")


class TestStripeAdapterAuthorize:
    """Tests para authorize y sale."""

    @pytest.mark.asyncio
    async def test_authorize_new_card_approved(self, stripe_adapter: StripeAdapter, new_card, transaction):
        """Autorización aprobada con tarjeta nueva."""
        intent = SimpleNamespace(
            id="pi_123",
            status="requires_capture",
            next_action=None,
            latest_charge=make_charge(payment_method="pm_123"),
        )
        with patch("stripe.PaymentMethod.create", return_value=SimpleNamespace(id="pm_123")) as pm_create, \
                patch("stripe.PaymentIntent.create", return_value=intent) as pi_create:
            result = await stripe_adapter.authorize(transaction, new_card)

        assert result.communication_result == CommunicationResult.SUCCESS
        assert result.approval_result == ApprovalResult.APPROVED
        assert result.provider_approval_result == "requires_capture"
        assert result.provider_unique_id == "pi_123"
        assert result.approval_code == "ch_123"
        assert result.cvv_result == CvvResult.MATCH
        assert result.avs_result == AvsResult.ADDRESS_Y_ZIP_5
        assert result.provider_avs_result == "pass,pass"
        assert result.tokenized_credit_card is None

        pm_params = pm_create.call_args.kwargs
        assert pm_params["type"] == "card"
        assert pm_params["card"]["number"] == "4242424242424242"
        assert pm_params["api_key"] == TEST_API_KEY

        params = pi_create.call_args.kwargs
        assert params["amount"] == 1234
        assert params["currency"] == "usd"
        assert params["capture_method"] == "manual"
        assert params["confirm"] is True
        assert params["payment_method"] == "pm_123"
        assert params["statement_descriptor"] == "ORD#1001"
        assert params["expand"] == ["latest_charge"]
        assert params["api_key"] == TEST_API_KEY
        assert "customer" not in params
        assert "receipt_email" not in params

    @pytest.mark.asyncio
    async def test_sale_requires_action_is_hold(self, stripe_adapter: StripeAdapter, new_card, transaction):
        """Un estado distinto de succeeded queda retenido."""
        intent = SimpleNamespace(
            id="pi_456",
            status="requires_action",
            next_action=SimpleNamespace(type="use_stripe_sdk"),
            latest_charge=None,
        )
        with patch("stripe.PaymentMethod.create", return_value=SimpleNamespace(id="pm_123")), \
                patch("stripe.PaymentIntent.create", return_value=intent) as pi_create:
            result = await stripe_adapter.sale(transaction, new_card)

        assert pi_create.call_args.kwargs["capture_method"] == "automatic"
        authorization = result.authorization_result
        assert authorization.approval_result == ApprovalResult.HOLD
        assert authorization.provider_approval_result == "use_stripe_sdk"
        assert authorization.approval_code is None
        assert authorization.cvv_result == CvvResult.CVV2_NOT_PROVIDED_BY_MERCHANT
        assert authorization.avs_result == AvsResult.ADDRESS_NOT_PROVIDED
        assert result.capture_result.communication_result == CommunicationResult.SUCCESS
        assert result.capture_result.provider_unique_id == "pi_456"

    @pytest.mark.asyncio
    async def test_authorize_declined(self, stripe_adapter: StripeAdapter, new_card, transaction):
        """Un rechazo del emisor es SUCCESS con DECLINED."""
        with patch("stripe.PaymentMethod.create", return_value=SimpleNamespace(id="pm_123")), \
                patch("stripe.PaymentIntent.create", side_effect=card_declined("insufficient_funds")):
            result = await stripe_adapter.authorize(transaction, new_card)

        assert result.communication_result == CommunicationResult.SUCCESS
        assert result.approval_result == ApprovalResult.DECLINED
        assert result.decline_reason == DeclineReason.INSUFFICIENT_FUNDS
        assert result.provider_decline_reason == "402,card_declined,,insufficient_funds"
        assert result.provider_error_code is None
        assert result.error_code is None
        assert result.provider_error_message == "Your card was declined."

    @pytest.mark.asyncio
    async def test_authorize_connection_error(self, stripe_adapter: StripeAdapter, new_card, transaction):
        """Un error de red se reporta en el resultado."""
        with patch("stripe.PaymentMethod.create", side_effect=stripe.APIConnectionError("Network down")):
            result = await stripe_adapter.authorize(transaction, new_card)

        assert result.communication_result == CommunicationResult.IO_ERROR
        assert result.error_code == ErrorCode.ERROR_TRY_AGAIN
        assert result.approval_result is None
        assert "Network down" in result.provider_error_message

    @pytest.mark.asyncio
    async def test_authorize_stored_card_detects_replacement(
        self, stripe_adapter: StripeAdapter, stored_card, transaction
    ):
        """La tarjeta almacenada usa el PaymentMethod por defecto y reporta reemplazos."""
        intent = SimpleNamespace(
            id="pi_789",
            status="requires_capture",
            next_action=None,
            latest_charge=make_charge(payment_method="pm_default", last4="1111"),
        )
        with patch("stripe.Customer.retrieve", return_value=make_customer()) as retrieve, \
                patch("stripe.PaymentIntent.create", return_value=intent) as pi_create:
            result = await stripe_adapter.authorize(transaction, stored_card)

        assert retrieve.call_args.kwargs["expand"] == ["sources"]
        params = pi_create.call_args.kwargs
        assert params["customer"] == "cus_123"
        assert params["payment_method"] == "pm_default"

        tokenized = result.tokenized_credit_card
        assert tokenized.provider_unique_id == "cus_123"
        assert tokenized.provider_replacement_masked_card_number == "visa,1111"
        assert tokenized.replacement_masked_card_number == "4XXXXXXXXXXX1111"
        assert tokenized.provider_replacement_expiration == "12,2030"
        assert tokenized.replacement_expiration_month is None
        assert tokenized.replacement_expiration_year is None

    @pytest.mark.asyncio
    async def test_authorize_stored_card_legacy_source(
        self, stripe_adapter: StripeAdapter, stored_card, transaction
    ):
        """Sin PaymentMethods se usa la fuente heredada."""
        customer = make_customer(default_payment_method=None, default_source="card_legacy")
        intent = SimpleNamespace(id="pi_1", status="requires_capture", next_action=None, latest_charge=None)
        with patch("stripe.Customer.retrieve", return_value=customer), \
                patch("stripe.PaymentMethod.list", return_value=SimpleNamespace(data=[])), \
                patch("stripe.PaymentIntent.create", return_value=intent) as pi_create:
            result = await stripe_adapter.authorize(transaction, stored_card)

        assert pi_create.call_args.kwargs["payment_method"] == "card_legacy"
        assert result.approval_result == ApprovalResult.APPROVED

    @pytest.mark.asyncio
    async def test_receipt_email_only_when_requested(self, stripe_adapter: StripeAdapter, new_card):
        transaction = TransactionRequest(amount=Decimal("5"), email_customer=True)
        intent = SimpleNamespace(id="pi_1", status="requires_capture", next_action=None, latest_charge=None)
        with patch("stripe.PaymentMethod.create", return_value=SimpleNamespace(id="pm_123")), \
                patch("stripe.PaymentIntent.create", return_value=intent) as pi_create:
            await stripe_adapter.authorize(transaction, new_card)

        assert pi_create.call_args.kwargs["receipt_email"] == "test@example.com"

    @pytest.mark.asyncio
    async def test_test_mode_not_supported(self, stripe_adapter: StripeAdapter, new_card):
        transaction = TransactionRequest(amount=Decimal("1.00"), test_mode=True)

        with pytest.raises(UnsupportedTestModeError):
            await stripe_adapter.authorize(transaction, new_card)

    @pytest.mark.asyncio
    async def test_invalid_amount(self, stripe_adapter: StripeAdapter, new_card):
        transaction = TransactionRequest(amount=Decimal("1.234"), currency="USD")

        with pytest.raises(InvalidAmountError):
            await stripe_adapter.authorize(transaction, new_card)


class TestStripeAdapterCapture:
    """Tests para capture."""

    @pytest.fixture
    def authorization(self) -> AuthorizationResult:
        return AuthorizationResult(
            provider_id="stripe-test",
            communication_result=CommunicationResult.SUCCESS,
            provider_unique_id="pi_123",
        )

    @pytest.mark.asyncio
    async def test_capture_success(self, stripe_adapter: StripeAdapter, authorization):
        with patch("stripe.PaymentIntent.capture", return_value=SimpleNamespace(status="succeeded")) as capture:
            result = await stripe_adapter.capture(authorization)

        capture.assert_called_once_with("pi_123", api_key=TEST_API_KEY)
        assert result.communication_result == CommunicationResult.SUCCESS
        assert result.provider_unique_id == "pi_123"

    @pytest.mark.asyncio
    async def test_capture_unexpected_status(self, stripe_adapter: StripeAdapter, authorization):
        with patch("stripe.PaymentIntent.capture", return_value=SimpleNamespace(status="processing")):
            result = await stripe_adapter.capture(authorization)

        assert result.communication_result == CommunicationResult.GATEWAY_ERROR
        assert result.error_code == ErrorCode.APPROVED_BUT_SETTLEMENT_FAILED
        assert result.provider_error_code == "processing"

    @pytest.mark.asyncio
    async def test_capture_decline_is_settlement_failure(self, stripe_adapter: StripeAdapter, authorization):
        with patch("stripe.PaymentIntent.capture", side_effect=card_declined("generic_decline")):
            result = await stripe_adapter.capture(authorization)

        assert result.communication_result == CommunicationResult.GATEWAY_ERROR
        assert result.error_code == ErrorCode.APPROVED_BUT_SETTLEMENT_FAILED

    @pytest.mark.asyncio
    async def test_void_and_credit_not_supported(self, stripe_adapter: StripeAdapter, authorization, new_card):
        with pytest.raises(NotImplementedError):
            await stripe_adapter.void_transaction(authorization)
        with pytest.raises(NotImplementedError):
            await stripe_adapter.credit(TransactionRequest(amount=Decimal("1")), new_card)


class TestStripeAdapterStoredCards:
    """Tests para tarjetas almacenadas."""

    def test_capabilities(self, stripe_adapter: StripeAdapter):
        assert stripe_adapter.can_store_credit_cards() is True
        assert stripe_adapter.can_get_tokenized_credit_cards() is True

    @pytest.mark.asyncio
    async def test_store_credit_card(self, stripe_adapter: StripeAdapter, new_card):
        with patch("stripe.Customer.create", return_value=SimpleNamespace(id="cus_new")) as create, \
                patch("stripe.PaymentMethod.create", return_value=SimpleNamespace(id="pm_new")), \
                patch("stripe.PaymentMethod.attach") as attach, \
                patch("stripe.Customer.modify", return_value=SimpleNamespace(id="cus_new")) as modify:
            customer_id = await stripe_adapter.store_credit_card(new_card)

        assert customer_id == "cus_new"
        assert create.call_args.kwargs["name"] == "Test User"
        assert create.call_args.kwargs["email"] == "test@example.com"
        attach.assert_called_once_with("pm_new", customer="cus_new", api_key=TEST_API_KEY)
        assert modify.call_args.kwargs["invoice_settings"] == {"default_payment_method": "pm_new"}

    @pytest.mark.asyncio
    async def test_store_credit_card_failure(self, stripe_adapter: StripeAdapter, new_card):
        error = stripe.CardError(
            "Your card number is incorrect.",
            "number",
            "incorrect_number",
            http_status=402,
            json_body={"error": {"code": "incorrect_number", "param": "number", "message": "Your card number is incorrect."}},
        )
        with patch("stripe.Customer.create", return_value=SimpleNamespace(id="cus_new")), \
                patch("stripe.PaymentMethod.create", side_effect=error):
            with pytest.raises(StoredCardError) as exc_info:
                await stripe_adapter.store_credit_card(new_card)

        assert exc_info.value.code == "STORE_CREDIT_CARD_FAILED"
        assert exc_info.value.error_code == ErrorCode.INVALID_CARD_NUMBER
        assert exc_info.value.converted.provider_error_code == "402,incorrect_number,number,"

    @pytest.mark.asyncio
    async def test_default_payment_method_recovered(self, stripe_adapter: StripeAdapter, stored_card):
        """Sin PaymentMethod por defecto se promueve el primero que no es la fuente heredada."""
        customer = make_customer(default_payment_method="card_legacy", default_source="card_legacy")
        payment_methods = SimpleNamespace(data=[SimpleNamespace(id="card_legacy"), SimpleNamespace(id="pm_2")])
        updated = make_customer(default_payment_method="pm_2", default_source="card_legacy")
        with patch("stripe.Customer.retrieve", return_value=customer), \
                patch("stripe.PaymentMethod.list", return_value=payment_methods) as pm_list, \
                patch("stripe.Customer.modify", return_value=updated) as modify, \
                patch("stripe.PaymentMethod.modify") as pm_modify, \
                patch("stripe.Customer.delete_source") as delete_source:
            await stripe_adapter.update_credit_card_expiration(stored_card, 3, 2031)

        assert pm_list.call_args.kwargs["type"] == "card"
        assert modify.call_args.kwargs["invoice_settings"] == {"default_payment_method": "pm_2"}
        pm_modify.assert_called_once_with(
            "pm_2", card={"exp_month": 3, "exp_year": 2031}, api_key=TEST_API_KEY,
        )
        delete_source.assert_called_once_with("cus_123", "card_legacy", api_key=TEST_API_KEY)

    @pytest.mark.asyncio
    async def test_update_expiration_legacy_card(self, stripe_adapter: StripeAdapter, stored_card):
        customer = make_customer(default_payment_method=None, default_source="card_1")
        with patch("stripe.Customer.retrieve", return_value=customer), \
                patch("stripe.PaymentMethod.list", return_value=SimpleNamespace(data=[])), \
                patch("stripe.Customer.modify_source") as modify_source:
            await stripe_adapter.update_credit_card_expiration(stored_card, 3, 2031)

        modify_source.assert_called_once_with(
            "cus_123", "card_1", exp_month="03", exp_year="2031", api_key=TEST_API_KEY,
        )

    @pytest.mark.asyncio
    async def test_update_credit_card(self, stripe_adapter: StripeAdapter):
        credit_card = CreditCard(provider_unique_id="cus_123", first_name="New", last_name="Name", city="Austin")
        with patch("stripe.Customer.modify", return_value=make_customer()) as modify, \
                patch("stripe.PaymentMethod.modify") as pm_modify:
            await stripe_adapter.update_credit_card(credit_card)

        params = modify.call_args.kwargs
        assert params["name"] == "New Name"
        # Los campos vacíos se borran en la actualización
        assert params["email"] == ""
        assert params["expand"] == ["sources"]
        billing_details = pm_modify.call_args.kwargs["billing_details"]
        assert billing_details["name"] == "New Name"
        assert billing_details["address"] == {"city": "Austin"}

    @pytest.mark.asyncio
    async def test_update_credit_card_legacy_source(self, stripe_adapter: StripeAdapter):
        credit_card = CreditCard(provider_unique_id="cus_123", first_name="New", last_name="Name")
        customer = make_customer(default_payment_method=None, default_source="card_1")
        with patch("stripe.Customer.modify", return_value=customer), \
                patch("stripe.PaymentMethod.list", return_value=SimpleNamespace(data=[])), \
                patch("stripe.Customer.modify_source") as modify_source:
            await stripe_adapter.update_credit_card(credit_card)

        args = modify_source.call_args
        assert args.args == ("cus_123", "card_1")
        assert args.kwargs["name"] == "New Name"
        assert args.kwargs["address_city"] == ""

    @pytest.mark.asyncio
    async def test_update_credit_card_without_default(self, stripe_adapter: StripeAdapter):
        credit_card = CreditCard(provider_unique_id="cus_123")
        customer = make_customer(default_payment_method=None)
        with patch("stripe.Customer.modify", return_value=customer), \
                patch("stripe.PaymentMethod.list", return_value=SimpleNamespace(data=[])):
            with pytest.raises(StoredCardError):
                await stripe_adapter.update_credit_card(credit_card)

    @pytest.mark.asyncio
    async def test_update_number_and_expiration(self, stripe_adapter: StripeAdapter, stored_card):
        customer = make_customer(default_payment_method="pm_old", default_source="card_legacy")
        with patch("stripe.Customer.retrieve", return_value=customer), \
                patch("stripe.PaymentMethod.create", return_value=SimpleNamespace(id="pm_new")) as pm_create, \
                patch("stripe.PaymentMethod.attach") as attach, \
                patch("stripe.Customer.modify", return_value=customer) as modify, \
                patch("stripe.PaymentMethod.detach") as detach, \
                patch("stripe.Customer.delete_source") as delete_source:
            await stripe_adapter.update_credit_card_number_and_expiration(
                stored_card, "5555 5555 5555 4444", 1, 2032, "9-9-9",
            )

        card_params = pm_create.call_args.kwargs["card"]
        assert card_params == {"exp_month": 1, "exp_year": 2032, "number": "5555555555554444", "cvc": "999"}
        attach.assert_called_once_with("pm_new", customer="cus_123", api_key=TEST_API_KEY)
        assert modify.call_args.kwargs["invoice_settings"] == {"default_payment_method": "pm_new"}
        detach.assert_called_once_with("pm_old", api_key=TEST_API_KEY)
        delete_source.assert_called_once_with("cus_123", "card_legacy", api_key=TEST_API_KEY)

    @pytest.mark.asyncio
    async def test_delete_credit_card(self, stripe_adapter: StripeAdapter, stored_card):
        with patch("stripe.Customer.retrieve", return_value=make_customer()), \
                patch("stripe.Customer.delete") as delete:
            await stripe_adapter.delete_credit_card(stored_card)

        delete.assert_called_once_with("cus_123", api_key=TEST_API_KEY)

    @pytest.mark.asyncio
    async def test_delete_already_deleted(self, stripe_adapter: StripeAdapter, stored_card):
        with patch("stripe.Customer.retrieve", return_value=make_customer(deleted=True)), \
                patch("stripe.Customer.delete") as delete:
            await stripe_adapter.delete_credit_card(stored_card)

        delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_failure(self, stripe_adapter: StripeAdapter, stored_card):
        error = stripe.InvalidRequestError(
            "No such customer: 'cus_123'",
            "id",
            "resource_missing",
            http_status=404,
        )
        with patch("stripe.Customer.retrieve", side_effect=error):
            with pytest.raises(StoredCardError) as exc_info:
                await stripe_adapter.delete_credit_card(stored_card)

        assert exc_info.value.code == "DELETE_CREDIT_CARD_FAILED"
        assert exc_info.value.error_code == ErrorCode.UNKNOWN


class TestStripeAdapterTokenizedCards:
    """Tests para get_tokenized_credit_cards."""

    @pytest.mark.asyncio
    async def test_get_tokenized_credit_cards(self, stripe_adapter: StripeAdapter):
        customers = MagicMock()
        customers.auto_paging_iter.return_value = iter([
            SimpleNamespace(id="cus_1"),
            SimpleNamespace(id="cus_2"),
        ])
        retrieved = {
            "cus_1": make_customer("cus_1", default_payment_method="pm_1"),
            "cus_2": make_customer("cus_2", default_payment_method=None, default_source="card_2"),
        }
        payment_method = SimpleNamespace(
            id="pm_1",
            card=SimpleNamespace(brand="mastercard", last4="4444", exp_month=6, exp_year=2031),
        )
        legacy_card = SimpleNamespace(id="card_2", brand="Visa", last4="4242", exp_month=1, exp_year=2029)
        persisted = {
            "cus_1": CreditCard(
                provider_unique_id="cus_1",
                masked_card_number="5XXXXXXXXXXX1234",
                expiration_month=6,
                expiration_year=2031,
            ),
            "cus_2": CreditCard(
                provider_unique_id="cus_2",
                masked_card_number="4XXXXXXXXXXX4242",
                expiration_month=1,
                expiration_year=2028,
            ),
        }

        with patch("stripe.Customer.list", return_value=customers) as customer_list, \
                patch("stripe.Customer.retrieve", side_effect=lambda customer_id, **kwargs: retrieved[customer_id]), \
                patch("stripe.PaymentMethod.list", return_value=SimpleNamespace(data=[])), \
                patch("stripe.PaymentMethod.retrieve", return_value=payment_method), \
                patch("stripe.Customer.retrieve_source", return_value=legacy_card) as retrieve_source:
            cards = await stripe_adapter.get_tokenized_credit_cards(persisted)

        assert customer_list.call_args.kwargs["limit"] == 100
        retrieve_source.assert_called_once_with("cus_2", "card_2", api_key=TEST_API_KEY)

        assert list(cards) == ["cus_1", "cus_2"]
        first = cards["cus_1"]
        assert first.provider_replacement_masked_card_number == "mastercard,4444"
        assert first.replacement_masked_card_number == "5?XXXXXXXXXX4444"
        assert first.replacement_expiration_month is None

        second = cards["cus_2"]
        assert second.replacement_masked_card_number is None
        assert second.provider_replacement_expiration == "1,2029"
        assert second.replacement_expiration_month == 1
        assert second.replacement_expiration_year == 2029

    @pytest.mark.asyncio
    async def test_duplicate_customer_id(self, stripe_adapter: StripeAdapter):
        customers = MagicMock()
        customers.auto_paging_iter.return_value = iter([
            SimpleNamespace(id="cus_1"),
            SimpleNamespace(id="cus_1"),
        ])
        with patch("stripe.Customer.list", return_value=customers), \
                patch("stripe.Customer.retrieve", return_value=make_customer("cus_1", default_payment_method=None)), \
                patch("stripe.PaymentMethod.list", return_value=SimpleNamespace(data=[])):
            with pytest.raises(StoredCardError):
                await stripe_adapter.get_tokenized_credit_cards({})
