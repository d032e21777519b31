# backend/concerthall/core/config.py
"""
Este archivo contiene la configuración de la aplicación.
"""

from pydantic_settings import BaseSettings
from pathlib import Path

# Apunta al directorio 'backend/'
BASE_DIR = Path(__file__).resolve().parent.parent.parent

class Settings(BaseSettings):
    """
    Configuración de la aplicación usando Pydantic BaseSettings.
    Variables sensibles desde .env, defaults seguros para el resto.
    """
    # Configuración general del proyecto
    BASE_DIR: Path = BASE_DIR
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Digital Concert Hall API"
    PROJECT_VERSION: str = "0.1.0"

    # Almacenamiento clave-valor: "redis" en producción, "memory" para desarrollo y tests
    STORAGE_BACKEND: str = "redis"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Espacio de nombres de las claves (equivalente al prefijo de localStorage del frontend)
    STORAGE_PREFIX: str = "dch:"
    CART_STORAGE_KEY: str = "digital_concert_hall_cart"
    CHECKOUT_INFO_KEY: str = "checkoutInfo"
    CREDENTIAL_KEY: str = "credential"
    # Duración de las claves con alcance de sesión (descriptor de compra directa, credencial, checkout)
    SESSION_TTL_SECONDS: int = 60 * 60 * 24

    @property
    def REDIS_URL(self) -> str:
        """URL de conexión a Redis."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # APIs externas de pedidos y pagos
    ORDER_API_BASE_URL: str = "http://localhost:8080/api"
    PAYMENT_API_BASE_URL: str = "http://localhost:8080/api"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Pasarela de pago: "mock" (simulada dentro de la app) o "ecpay"
    PAYMENT_GATEWAY: str = "mock"
    PAYMENT_INFLIGHT_TTL_SECONDS: int = 60
    PAYMENT_REDIRECT_DELAY_SECONDS: float = 5.0

    # Rutas del frontend a las que se redirige al usuario
    FRONTEND_BASE_URL: str = "http://localhost:3000"
    LOGIN_PATH: str = "/auth/login"
    CATALOG_PATH: str = "/concerts"
    CART_PATH: str = "/cart"
    CHECKOUT_PATH: str = "/checkout"
    MOCK_PAYMENT_PATH: str = "/payment/ecpay-mock"
    PAYMENT_RESULT_PATH: str = "/payment/result"
    ORDER_DETAIL_PATH: str = "/user/orders"

    # Logging - Defaults seguros
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Server - Del .env con defaults
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False

# Instancia global de la configuración
settings = Settings()
