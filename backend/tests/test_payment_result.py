import asyncio

import pytest

from concerthall.core.exceptions import ValidationError
from concerthall.schemas.cart_schema import CartItem
from concerthall.schemas.payment_schema import PaymentOutcome
from concerthall.services.payment_result_service import PaymentResultHandler, classify


@pytest.mark.parametrize("code, outcome", [
    ("1", PaymentOutcome.SUCCESS),
    (1, PaymentOutcome.SUCCESS),
    (" 1 ", PaymentOutcome.SUCCESS),
    ("0", PaymentOutcome.FAILURE),
    ("10100058", PaymentOutcome.FAILURE),
    (None, PaymentOutcome.FAILURE),
    ("", PaymentOutcome.FAILURE),
])
def test_classify(code, outcome):
    assert classify(code) == outcome


async def test_success_completes_and_clears_cart(result_handler, checkout_service, cart_service, logged_in, client_id):
    await cart_service.add_item(client_id, CartItem(id="t1", price=1000), 2)
    order = await checkout_service.checkout_cart(client_id)

    result = await result_handler.handle(client_id, order.order_number, "1", "Succeeded")

    assert result.outcome == PaymentOutcome.SUCCESS
    assert result.state == "completed"
    assert result.order.order_number == order.order_number
    assert result.redirect_to == f"/user/orders/{order.order_number}"
    assert result.redirect_after_seconds == 0.05
    assert await cart_service.count(client_id) == 0


async def test_failure_keeps_cart_and_message(result_handler, checkout_service, cart_service, logged_in, client_id):
    await cart_service.add_item(client_id, CartItem(id="t1", price=1000), 2)
    order = await checkout_service.checkout_cart(client_id)

    result = await result_handler.handle(client_id, order.order_number, "0", "Pago cancelado por el usuario")

    assert result.outcome == PaymentOutcome.FAILURE
    assert result.state == "failed"
    assert result.message == "Pago cancelado por el usuario"
    assert result.redirect_to is None
    assert await cart_service.count(client_id) == 2


async def test_success_without_credential_still_completes(result_handler, client_id):
    result = await result_handler.handle(client_id, "ORD-1", "1")
    assert result.state == "completed"
    assert result.order is None


async def test_missing_order_number_is_rejected(result_handler, client_id):
    with pytest.raises(ValidationError):
        await result_handler.handle(client_id, None, "1")


async def test_redirect_fires_after_delay(settings, checkout_service, client_id):
    visited = []
    handler = PaymentResultHandler(settings, checkout_service, navigate=visited.append)

    await handler.handle(client_id, "ORD-1", "1")
    assert handler.redirect_pending
    await asyncio.sleep(0.2)

    assert visited == ["/user/orders/ORD-1"]
    assert not handler.redirect_pending


async def test_async_navigator_is_awaited(settings, checkout_service, client_id):
    visited = []

    async def navigate(url):
        visited.append(url)

    handler = PaymentResultHandler(settings, checkout_service, navigate=navigate)
    await handler.handle(client_id, "ORD-2", "1")
    await asyncio.sleep(0.2)

    assert visited == ["/user/orders/ORD-2"]


async def test_close_cancels_pending_redirect(settings, checkout_service, client_id):
    visited = []
    handler = PaymentResultHandler(settings, checkout_service, navigate=visited.append)

    await handler.handle(client_id, "ORD-1", "1")
    handler.close()
    await asyncio.sleep(0.2)

    assert visited == []


async def test_failure_never_redirects(settings, checkout_service, client_id):
    visited = []
    handler = PaymentResultHandler(settings, checkout_service, navigate=visited.append)

    await handler.handle(client_id, "ORD-1", "0")
    await asyncio.sleep(0.2)

    assert visited == []
    assert not handler.redirect_pending


async def test_navigator_error_is_logged(settings, checkout_service, client_id, caplog):
    def navigate(url):
        raise RuntimeError("ventana cerrada")

    handler = PaymentResultHandler(settings, checkout_service, navigate=navigate)
    await handler.handle(client_id, "ORD-3", "1")
    task = handler._redirect_task
    await asyncio.sleep(0.2)

    assert task.done()
    assert task.exception() is None
    assert "No se pudo redirigir a /user/orders/ORD-3" in caplog.text
