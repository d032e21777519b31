"""
Este archivo contiene los endpoints del pago: la página de resultado, la
pasarela simulada y la consulta del estado de pago de un pedido.
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Response

from concerthall.api import deps
from concerthall.api.errors import http_error
from concerthall.core.config import Settings
from concerthall.core.exceptions import ConcertHallError, CredentialRejectedError
from concerthall.schemas.payment_schema import MockPaymentScreen, PaymentResult, PaymentStatus, SimulatedPayment
from concerthall.services.checkout_service import CheckoutService
from concerthall.services.payment_result_service import PaymentResultHandler

router = APIRouter()


@router.get("/{client_id}/result", response_model=PaymentResult)
async def payment_result(
    client_id: str,
    response: Response,
    merchant_trade_no: Optional[str] = Query(None, alias="MerchantTradeNo"),
    rtn_code: Optional[str] = Query(None, alias="RtnCode"),
    rtn_msg: Optional[str] = Query(None, alias="RtnMsg"),
    handler: PaymentResultHandler = Depends(deps.get_payment_result_handler),
):
    """
    Procesa los parámetros de retorno de la pasarela.

    `RtnCode=1` es éxito; cualquier otro valor, o su ausencia, es fallo. Con
    éxito la respuesta lleva la cabecera `Refresh` hacia el detalle del pedido.
    """
    try:
        result = await handler.handle(client_id, merchant_trade_no, rtn_code, rtn_msg)
    except ConcertHallError as e:
        raise http_error(e)

    if result.redirect_to:
        response.headers["Refresh"] = f"{result.redirect_after_seconds:g}; url={result.redirect_to}"
    return result


@router.get("/{client_id}/mock/{order_number}", response_model=MockPaymentScreen)
async def mock_payment_screen(
    client_id: str,
    order_number: str,
    checkout_service: CheckoutService = Depends(deps.get_checkout_service),
    settings: Settings = Depends(deps.get_settings),
):
    """
    Datos de la pantalla de la pasarela simulada: importe del pedido y las
    acciones de confirmar o cancelar el pago.
    """
    return_path = f"{settings.MOCK_PAYMENT_PATH}?{urlencode({'orderNumber': order_number})}"
    try:
        order = await checkout_service.load_order(client_id, order_number, return_path)
    except ConcertHallError as e:
        raise http_error(e)

    simulate_url = f"{settings.API_V1_STR}/payment/{client_id}/mock/{order_number}/simulate"
    return MockPaymentScreen(
        order_number=order.order_number,
        total_amount=order.total_amount,
        status=order.status,
        confirm_url=f"{simulate_url}?success=true",
        cancel_url=f"{simulate_url}?success=false",
    )


@router.post("/{client_id}/mock/{order_number}/simulate", response_model=SimulatedPayment)
async def simulate_payment(
    client_id: str,
    order_number: str,
    success: bool = Query(..., description="true para confirmar el pago, false para cancelarlo"),
    message: Optional[str] = Query(None),
    checkout_service: CheckoutService = Depends(deps.get_checkout_service),
):
    """Simula la respuesta de la pasarela y devuelve la URL de la página de resultado."""
    credential = await checkout_service.auth_service.get_credential(client_id)
    token = credential.token if credential else None
    try:
        result_url = await checkout_service.gateway.simulate(order_number, success, message, token=token)
    except ConcertHallError as e:
        raise http_error(e)
    return SimulatedPayment(result_url=result_url)


@router.get("/{client_id}/{order_number}/status", response_model=PaymentStatus)
async def payment_status(
    client_id: str,
    order_number: str,
    checkout_service: CheckoutService = Depends(deps.get_checkout_service),
):
    """Estado de pago de un pedido según la API de pagos."""
    return_path = checkout_service.checkout_path(order_number)
    auth_service = checkout_service.auth_service
    try:
        credential = await auth_service.require_credential(client_id, return_path)
        try:
            return await checkout_service.gateway.status(order_number, credential.token)
        except CredentialRejectedError:
            raise await auth_service.expire(client_id, return_path)
    except ConcertHallError as e:
        raise http_error(e)
