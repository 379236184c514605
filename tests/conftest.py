"""
Configuración de tests y fixtures compartidos.
"""

from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.adapters import get_payment_provider
from app.adapters.base import PaymentProvider
from app.adapters.stripe_adapter import StripeAdapter
from app.main import app


TEST_API_KEY = "sk_test_123"


@pytest.fixture
def stripe_adapter() -> StripeAdapter:
    """Adapter de Stripe con credenciales de prueba."""
    return StripeAdapter(provider_id="stripe-test", api_key=TEST_API_KEY)


@pytest.fixture
def mock_provider() -> MagicMock:
    """Proveedor simulado; los métodos async quedan como AsyncMock."""
    provider = MagicMock(spec=PaymentProvider)
    provider.provider_id = "stripe-test"
    provider.can_store_credit_cards.return_value = True
    provider.can_get_tokenized_credit_cards.return_value = True
    return provider


@pytest_asyncio.fixture(scope="function")
async def client(mock_provider: MagicMock) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP para tests de API."""
    app.dependency_overrides[get_payment_provider] = lambda: mock_provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_credit_card_data():
    """Tarjeta nueva de ejemplo."""
    return {
        "card_number": "4242 4242 4242 4242",
        "expiration_month": 12,
        "expiration_year": 2030,
        "card_code": "123",
        "first_name": "Test",
        "last_name": "User",
        "email": "test@example.com",
        "street_address1": "123 Main St",
        "city": "Springfield",
        "state": "IL",
        "postal_code": "62701",
        "country_code": "US",
    }


@pytest.fixture
def sample_payment_data(sample_credit_card_data):
    """Datos de ejemplo para autorizar o vender."""
    return {
        "transaction": {
            "amount": "10.00",
            "currency": "usd",
            "tax_amount": "0.80",
            "description": "Test order",
            "order_number": "1001",
        },
        "credit_card": sample_credit_card_data,
    }


def make_charge(
    charge_id: str = "ch_123",
    payment_method: str = "pm_123",
    brand: str = "visa",
    last4: str = "4242",
    exp_month: int = 12,
    exp_year: int = 2030,
    cvc_check: str | None = "pass",
    address_line1_check: str | None = "pass",
    address_postal_code_check: str | None = "pass",
) -> SimpleNamespace:
    """Cargo con el formato de latest_charge expandido."""
    return SimpleNamespace(
        id=charge_id,
        payment_method=payment_method,
        payment_method_details=SimpleNamespace(
            card=SimpleNamespace(
                brand=brand,
                last4=last4,
                exp_month=exp_month,
                exp_year=exp_year,
                checks=SimpleNamespace(
                    cvc_check=cvc_check,
                    address_line1_check=address_line1_check,
                    address_postal_code_check=address_postal_code_check,
                ),
            ),
        ),
    )


def make_customer(
    customer_id: str = "cus_123",
    default_payment_method: str | None = "pm_default",
    default_source: str | None = None,
    deleted: bool | None = None,
) -> SimpleNamespace:
    return SimpleNamespace(
        id=customer_id,
        invoice_settings=SimpleNamespace(default_payment_method=default_payment_method),
        default_source=default_source,
        deleted=deleted,
    )
