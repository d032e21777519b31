# backend/concerthall/api/v1/api_router.py
"""
Este archivo contiene el router principal para la API versión 1.

Se encarga de registrar y configurar todos los routers de la versión 1 de la API.
"""

from fastapi import APIRouter

# Importación de routers especializados por dominio
from concerthall.api.v1.endpoints import (
    cart,
    checkout,
    payment,
    session,
)

# ========================================
# CONFIGURACIÓN DEL ROUTER PRINCIPAL V1
# ========================================

api_router_v1 = APIRouter()

# ========================================
# REGISTRO DE ROUTERS POR DOMINIO
# ========================================

# ROUTER DEL CARRITO
# Contenido, contador en vivo y creación del pedido desde el carrito
api_router_v1.include_router(
    cart.router,
    prefix="/cart",
    tags=["Cart"]
)

# ROUTER DEL CHECKOUT
# Vista de checkout, compra directa e inicio del pago
api_router_v1.include_router(
    checkout.router,
    prefix="/checkout",
    tags=["Checkout"]
)

# ROUTER DE PAGOS
# Resultado de la pasarela y pasarela simulada
api_router_v1.include_router(
    payment.router,
    prefix="/payment",
    tags=["Payment"]
)

# ROUTER DE SESIÓN
api_router_v1.include_router(
    session.router,
    prefix="/session",
    tags=["Session"]
)
