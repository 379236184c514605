"""
Factory para obtener el proveedor de pago configurado.
"""

from functools import lru_cache
import structlog

from app.adapters.base import PaymentProvider
from app.adapters.stripe_adapter import StripeAdapter
from app.config import Settings, get_settings
from app.utils.exceptions import PaymentProviderError


logger = structlog.get_logger(__name__)


def build_payment_provider(config: Settings) -> PaymentProvider:
    """
    Construye el adapter de Stripe a partir de la configuración.

    Raises:
        PaymentProviderError: Si no hay secret key configurada
    """
    if not config.STRIPE_SECRET_KEY:
        raise PaymentProviderError(config.PAYMENT_PROVIDER_ID, "STRIPE_SECRET_KEY is not configured")

    return StripeAdapter(
        provider_id=config.PAYMENT_PROVIDER_ID,
        api_key=config.STRIPE_SECRET_KEY,
        api_version=config.STRIPE_API_VERSION or None,
        statement_descriptor_prefix=config.STATEMENT_DESCRIPTOR_PREFIX,
        max_network_retries=config.STRIPE_MAX_NETWORK_RETRIES,
    )


@lru_cache()
def get_payment_provider() -> PaymentProvider:
    """
    Factory que retorna el proveedor de pago configurado.
    La instancia es cacheada para reutilización.
    """
    provider = build_payment_provider(get_settings())

    logger.info(
        "Payment provider initialized",
        provider_id=provider.provider_id,
    )

    return provider
