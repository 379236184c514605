"""
Configuración del proveedor de pagos Stripe.
Carga variables de entorno y define settings globales.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    """Configuración principal del servicio."""

    # Aplicación
    APP_NAME: str = "Stripe Merchant Services Provider"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Identificador de la instancia del proveedor
    PAYMENT_PROVIDER_ID: str = "stripe"

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    # Versión de la API fijada; vacío usa la versión de la cuenta
    STRIPE_API_VERSION: str = ""
    # Reintentos de red del propio SDK
    STRIPE_MAX_NETWORK_RETRIES: int = 0

    # Prefijo del descriptor cuando el número de orden no tiene letras
    STATEMENT_DESCRIPTOR_PREFIX: str = "ORD#"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Retorna instancia cacheada de settings."""
    return Settings()


settings = get_settings()
