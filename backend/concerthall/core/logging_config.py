# backend/concerthall/core/logging_config.py
"""
Configuración del logging de la aplicación a partir de los settings.
"""
import logging

from concerthall.core.config import Settings


def configure_logging(settings: Settings) -> None:
    """Configura el logger raíz con el nivel y el formato definidos en la configuración."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.LOG_FORMAT)
    # httpx es muy verboso en INFO (una línea por petición)
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
