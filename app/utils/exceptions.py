"""
Excepciones personalizadas del proveedor de pagos.
"""

from typing import Any


class PaymentServiceError(Exception):
    """Error base del servicio de pagos."""

    def __init__(self, message: str, code: str = "PAYMENT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class PaymentProviderError(PaymentServiceError):
    """Error del proveedor de pago externo."""

    def __init__(self, provider: str, message: str):
        super().__init__(
            message=f"Payment provider error ({provider}): {message}",
            code="PROVIDER_ERROR",
        )
        self.provider = provider


class StoredCardError(PaymentServiceError):
    """
    Fallo en una operación sobre una tarjeta almacenada.

    Conserva el error ya traducido a la taxonomía genérica para que el
    llamador pueda distinguir, por ejemplo, un rechazo de un error de red.
    """

    def __init__(self, provider: str, operation: str, converted: Any = None):
        super().__init__(
            message=f"{operation} was not successful ({provider})",
            code=f"{operation.upper()}_FAILED",
        )
        self.provider = provider
        self.operation = operation
        self.converted = converted

    @property
    def error_code(self):
        return None if self.converted is None else self.converted.error_code

    @property
    def provider_error_message(self) -> str | None:
        return None if self.converted is None else self.converted.provider_error_message


class InvalidAmountError(PaymentServiceError):
    """El monto no puede expresarse en la unidad menor de la moneda."""

    def __init__(self, amount: Any, currency: str, reason: str):
        super().__init__(
            message=f"Invalid amount {amount} {currency}: {reason}",
            code="INVALID_AMOUNT",
        )
        self.amount = amount
        self.currency = currency


class UnsupportedTestModeError(PaymentServiceError):
    """El proveedor no soporta transacciones en modo de prueba."""

    def __init__(self, provider: str):
        super().__init__(
            message=f"Test mode not currently supported ({provider})",
            code="TEST_MODE_NOT_SUPPORTED",
        )
        self.provider = provider


class InvalidParameterError(PaymentServiceError, ValueError):
    """Un valor excede los límites de Stripe (p. ej. metadata demasiado larga)."""

    def __init__(self, name: str, reason: str):
        super().__init__(
            message=f"Invalid parameter {name}: {reason}",
            code="INVALID_PARAMETER",
        )
        self.name = name
