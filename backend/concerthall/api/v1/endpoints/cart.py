"""
Este archivo contiene los endpoints para el carrito de compras.

Se encarga de gestionar las operaciones de agregar entradas, cambiar
cantidades, eliminarlas, obtener el contenido del carrito y crear el pedido.
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from concerthall.api import deps
from concerthall.api.errors import http_error
from concerthall.core.exceptions import ConcertHallError
from concerthall.schemas.cart_schema import Cart, CartCount, CartItem, CartQuantityUpdate
from concerthall.schemas.order_schema import Order
from concerthall.services.cart_service import CartService
from concerthall.services.checkout_service import CheckoutService

# Router para el carrito de compras
router = APIRouter()


@router.get("/{client_id}", response_model=Cart)
async def get_cart(
    client_id: str,
    cart_service: CartService = Depends(deps.get_cart_service),
):
    """
    Obtiene el contenido del carrito de un cliente.
    """
    return await cart_service.get_cart(client_id)


@router.get("/{client_id}/count", response_model=CartCount)
async def get_cart_count(
    client_id: str,
    cart_service: CartService = Depends(deps.get_cart_service),
):
    """Número de entradas del carrito, para el contador del encabezado."""
    return CartCount(count=await cart_service.count(client_id))


@router.get("/{client_id}/events")
async def cart_events(
    client_id: str,
    cart_service: CartService = Depends(deps.get_cart_service),
):
    """
    Flujo server-sent events con el contador del carrito.

    Envía el estado actual al conectar y después un evento por cada cambio,
    venga de la pestaña que venga.
    """
    async def event_stream():
        cart = await cart_service.get_cart(client_id)
        initial = {"count": cart_service.count_items(cart), "total": cart.total}
        yield f"event: cart\ndata: {json.dumps(initial)}\n\n"
        async for change in cart_service.subscribe(client_id):
            yield f"event: cart\ndata: {json.dumps(change)}\n\n"

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.post("/{client_id}/items", status_code=201, response_model=Cart)
async def add_item_to_cart(
    client_id: str,
    item: CartItem,
    cart_service: CartService = Depends(deps.get_cart_service),
):
    """
    Añade una entrada al carrito. Si ya estaba, se incrementa su cantidad.
    """
    try:
        return await cart_service.add_item(client_id, item, item.quantity)
    except ConcertHallError as e:
        raise http_error(e)


@router.patch("/{client_id}/items/{item_type}/{item_id}", response_model=Cart)
async def update_item_quantity(
    client_id: str,
    item_type: str,
    item_id: str,
    update: CartQuantityUpdate,
    cart_service: CartService = Depends(deps.get_cart_service),
):
    """
    Cambia la cantidad de una línea. Una cantidad de 0 o menos la elimina.
    """
    return await cart_service.update_quantity(client_id, item_id, item_type, update.quantity)


@router.delete("/{client_id}/items/{item_type}/{item_id}", response_model=Cart)
async def remove_item_from_cart(
    client_id: str,
    item_type: str,
    item_id: str,
    cart_service: CartService = Depends(deps.get_cart_service),
):
    """
    Elimina una línea del carrito. Si no existe, devuelve el carrito sin cambios.
    """
    return await cart_service.remove_item(client_id, item_id, item_type)


@router.delete("/{client_id}", response_model=Cart)
async def clear_cart(
    client_id: str,
    confirm: bool = Query(False, description="Confirmación explícita del usuario"),
    cart_service: CartService = Depends(deps.get_cart_service),
):
    """
    Vacía completamente el carrito. Requiere `confirm=true`.
    """
    if not confirm:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Confirma que quieres vaciar el carrito")
    return await cart_service.clear(client_id)


@router.post("/{client_id}/checkout", status_code=201, response_model=Order)
async def checkout(
    client_id: str,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    checkout_service: CheckoutService = Depends(deps.get_checkout_service),
):
    """
    Crea el pedido con el contenido del carrito.

    El carrito se vacía cuando el pago del pedido se completa, no aquí.
    """
    try:
        return await checkout_service.checkout_cart(client_id, idempotency_key=idempotency_key)
    except ConcertHallError as e:
        raise http_error(e)
