"""
Este archivo contiene los endpoints de la vista de checkout.

Se encarga de resolver qué debe mostrar la vista (pedido existente o compra
directa), de guardar el descriptor de "comprar ahora" y de iniciar el pago.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from concerthall.api import deps
from concerthall.api.errors import http_error
from concerthall.core.exceptions import ConcertHallError
from concerthall.schemas.checkout_schema import CheckoutView, DirectCheckout
from concerthall.schemas.payment_schema import PaymentSession
from concerthall.services.checkout_service import CheckoutService

router = APIRouter()


@router.put("/{client_id}/direct", response_model=DirectCheckout)
async def set_direct_checkout(
    client_id: str,
    descriptor: DirectCheckout,
    checkout_service: CheckoutService = Depends(deps.get_checkout_service),
):
    """
    Guarda el descriptor de compra directa ("comprar ahora") del cliente.

    La validación estricta de cantidad y precio se hace al iniciar el pago.
    """
    return await checkout_service.set_direct_checkout(client_id, descriptor)


@router.get("/{client_id}", response_model=CheckoutView)
async def enter_checkout(
    client_id: str,
    order_number: Optional[str] = Query(None, description="Número de pedido a pagar"),
    checkout_service: CheckoutService = Depends(deps.get_checkout_service),
):
    """
    Resuelve el contenido de la vista de checkout.

    - Con `order_number`: el pedido de la API de pedidos (requiere credencial).
    - Sin él: la compra directa en curso.
    - Sin ninguno de los dos: estado `error` con el enlace al catálogo.
    """
    try:
        return await checkout_service.enter(client_id, order_number)
    except ConcertHallError as e:
        raise http_error(e)


@router.post("/{client_id}/pay", response_model=PaymentSession)
async def pay(
    client_id: str,
    order_number: Optional[str] = Query(None, description="Pedido existente; sin él se paga la compra directa"),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    checkout_service: CheckoutService = Depends(deps.get_checkout_service),
):
    """
    Inicia el pago y devuelve la sesión de la pasarela (URL o formulario HTML).

    Mientras haya un pago en curso para el mismo pedido responde 409.
    """
    try:
        return await checkout_service.initiate_payment(client_id, order_number, idempotency_key=idempotency_key)
    except ConcertHallError as e:
        raise http_error(e)
