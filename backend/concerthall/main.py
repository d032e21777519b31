# backend/concerthall/main.py
"""
Punto de entrada principal de la aplicación FastAPI.

Este módulo configura y inicializa la aplicación FastAPI completa,
incluyendo el logging, el registro de routers y los eventos del ciclo
de vida de la aplicación.

Ejecutar con: python -m concerthall.main (desde backend/)
"""

import logging

import uvicorn
from fastapi import FastAPI

from concerthall.api import deps
from concerthall.api.v1.api_router import api_router_v1
from concerthall.core.config import settings
from concerthall.core.logging_config import configure_logging

configure_logging(settings)
logger = logging.getLogger(__name__)

# ========================================
# CONFIGURACIÓN DE LA APLICACIÓN FASTAPI
# ========================================

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    version=settings.PROJECT_VERSION,
    description="API del carrito y el checkout de Digital Concert Hall"
)

# ========================================
# REGISTRO DE ROUTERS DE LA API
# ========================================

app.include_router(api_router_v1, prefix=settings.API_V1_STR)


@app.get("/", tags=["Root"])
async def read_root():
    """
    Endpoint raíz para verificación básica del estado de la API.

    Example:
        GET /
        Response: {"message": "Bienvenido a Digital Concert Hall API v1.0.0"}
    """
    return {"message": f"Bienvenido a {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}"}

# ========================================
# EVENTOS DEL CICLO DE VIDA DE LA APLICACIÓN
# ========================================

@app.on_event("startup")
async def startup_event():
    logger.info(
        f"{settings.PROJECT_NAME} iniciada (almacén: {settings.STORAGE_BACKEND}, pasarela: {settings.PAYMENT_GATEWAY})"
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Cierra la conexión con el almacén compartido."""
    await deps.close_store()


def run():
    """Arranca el servidor con el host y el puerto de la configuración."""
    uvicorn.run("concerthall.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
