# backend/concerthall/core/exceptions.py
"""
Excepciones de dominio del carrito y del checkout.

Los endpoints traducen estas excepciones a respuestas HTTP; los servicios
las lanzan sin conocer nada de FastAPI.
"""
from typing import Optional


class ConcertHallError(Exception):
    """Excepción base de la aplicación."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ConcertHallError):
    """Datos de carrito o de compra directa mal formados. Se lanza antes de cualquier llamada de red."""


class AuthRequiredError(ConcertHallError):
    """No hay credencial disponible. No es un fallo: se redirige al login conservando la ruta de vuelta."""

    def __init__(self, message: str, return_path: str, login_url: str):
        super().__init__(message)
        self.return_path = return_path
        self.login_url = login_url


class AuthExpiredError(AuthRequiredError):
    """Se recibió un 401 a mitad del flujo, cuando el usuario creía estar autenticado."""


class UpstreamError(ConcertHallError):
    """La API de pedidos o de pagos respondió con un error distinto de 401. Se puede reintentar."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialRejectedError(ConcertHallError):
    """Una API externa respondió 401. El checkout lo convierte en AuthExpiredError."""


class IntegrityError(ConcertHallError):
    """Datos persistidos ilegibles. Siempre se recupera localmente."""


class CheckoutStateError(ConcertHallError):
    """La acción no está permitida en el estado actual del checkout."""


class PaymentInProgressError(CheckoutStateError):
    """Ya hay una solicitud de pago en curso para este checkout."""


class OrderInProgressError(CheckoutStateError):
    """Ya se está creando un pedido con el carrito de este cliente."""
