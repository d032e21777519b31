"""
Pruebas de los endpoints HTTP con TestClient. El almacén, la API de pedidos y
la pasarela se sustituyen con `app.dependency_overrides`.
"""
import pytest
from fastapi.testclient import TestClient

from concerthall.api import deps
from concerthall.main import app
from concerthall.services.order_api import OrderApiClient
from concerthall.services.payment_gateway import get_payment_gateway

from conftest import make_token


@pytest.fixture
def api(settings, store, transport):
    app.dependency_overrides[deps.get_settings] = lambda: settings
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_order_api] = lambda: OrderApiClient(settings, transport=transport)
    app.dependency_overrides[deps.get_payment_gateway] = lambda: get_payment_gateway(settings, transport=transport)
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def login(api, client_id):
    response = api.put(
        f"/api/v1/session/{client_id}/credential",
        json={"token": make_token(), "user": {"id": 1, "name": "Ana"}},
    )
    assert response.status_code == 204


def add_ticket(api, client_id, item_id="t1", price=1200, quantity=1):
    return api.post(
        f"/api/v1/cart/{client_id}/items",
        json={"id": item_id, "type": "ticket", "name": "Platea", "price": price, "quantity": quantity, "concertId": 3},
    )


def test_read_root(api):
    response = api.get("/")
    assert response.status_code == 200
    assert "Digital Concert Hall" in response.json()["message"]


# ========================================
# CARRITO
# ========================================

def test_add_and_read_cart(api, client_id):
    response = add_ticket(api, client_id, quantity=2)
    assert response.status_code == 201
    assert response.json()["total"] == 2400.0

    add_ticket(api, client_id, quantity=1)
    cart = api.get(f"/api/v1/cart/{client_id}").json()
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["items"][0]["concertId"] == "3"
    assert api.get(f"/api/v1/cart/{client_id}/count").json() == {"count": 3}


def test_add_item_with_zero_quantity_is_rejected(api, client_id):
    assert add_ticket(api, client_id, quantity=0).status_code == 422


def test_update_quantity_to_zero_removes_line(api, client_id):
    add_ticket(api, client_id, quantity=2)
    response = api.patch(f"/api/v1/cart/{client_id}/items/ticket/t1", json={"quantity": 0})
    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0.0}


def test_remove_item(api, client_id):
    add_ticket(api, client_id, "t1")
    add_ticket(api, client_id, "t2")
    response = api.delete(f"/api/v1/cart/{client_id}/items/ticket/t1")
    assert [i["id"] for i in response.json()["items"]] == ["t2"]


def test_clear_requires_confirmation(api, client_id):
    add_ticket(api, client_id)
    assert api.delete(f"/api/v1/cart/{client_id}").status_code == 400
    assert api.get(f"/api/v1/cart/{client_id}/count").json() == {"count": 1}

    response = api.delete(f"/api/v1/cart/{client_id}", params={"confirm": "true"})
    assert response.json()["items"] == []


def test_cart_checkout_requires_login(api, client_id, backend):
    add_ticket(api, client_id)
    response = api.post(f"/api/v1/cart/{client_id}/checkout")

    assert response.status_code == 401
    detail = response.json()["detail"]
    assert detail["reason"] == "auth_required"
    assert detail["loginUrl"] == "/auth/login?redirect=%2Fcart"
    assert backend.requests == []


def test_cart_checkout_creates_order(api, client_id):
    login(api, client_id)
    add_ticket(api, client_id, quantity=2)

    response = api.post(f"/api/v1/cart/{client_id}/checkout", headers={"Idempotency-Key": "abc"})

    assert response.status_code == 201
    assert response.json()["totalAmount"] == 2400.0


def test_repeated_cart_checkout_returns_same_order(api, client_id, backend):
    login(api, client_id)
    add_ticket(api, client_id)

    first = api.post(f"/api/v1/cart/{client_id}/checkout").json()
    second = api.post(f"/api/v1/cart/{client_id}/checkout").json()

    assert first["orderNumber"] == second["orderNumber"]
    assert len(backend.orders) == 1


def test_empty_cart_checkout_is_rejected(api, client_id):
    login(api, client_id)
    assert api.post(f"/api/v1/cart/{client_id}/checkout").status_code == 422


# ========================================
# CHECKOUT Y PAGO
# ========================================

def test_checkout_view_without_anything_is_error(api, client_id):
    response = api.get(f"/api/v1/checkout/{client_id}")
    assert response.status_code == 200
    assert response.json()["state"] == "error"
    assert response.json()["catalogUrl"] == "/concerts"


def test_direct_purchase_end_to_end(api, client_id, backend):
    login(api, client_id)
    api.put(
        f"/api/v1/checkout/{client_id}/direct",
        json={"concertId": 1, "concertTitle": "Réquiem", "ticketId": 10, "ticketType": "Palco", "ticketPrice": 2000, "quantity": 2},
    )

    view = api.get(f"/api/v1/checkout/{client_id}").json()
    assert view["state"] == "ready"
    assert view["totalAmount"] == 4000.0

    payment = api.post(f"/api/v1/checkout/{client_id}/pay").json()
    order_number = payment["orderNumber"]
    assert payment["redirectUrl"] == f"/payment/ecpay-mock?orderNumber={order_number}"

    screen = api.get(f"/api/v1/payment/{client_id}/mock/{order_number}").json()
    assert screen["totalAmount"] == 4000.0
    assert screen["confirmUrl"].endswith("simulate?success=true")

    simulated = api.post(screen["confirmUrl"]).json()
    assert simulated["resultUrl"].startswith("/payment/result?MerchantTradeNo=")

    result = api.get(
        f"/api/v1/payment/{client_id}/result",
        params={"MerchantTradeNo": order_number, "RtnCode": "1", "RtnMsg": "OK"},
    )
    assert result.status_code == 200
    assert result.json()["state"] == "completed"
    assert result.json()["redirectTo"] == f"/user/orders/{order_number}"
    assert result.headers["Refresh"] == f"0.05; url=/user/orders/{order_number}"
    assert len(backend.orders) == 1


def test_pay_without_login_redirects_to_login(api, client_id, backend):
    api.put(f"/api/v1/checkout/{client_id}/direct", json={"ticketId": 10, "ticketPrice": 100, "quantity": 1})
    response = api.post(f"/api/v1/checkout/{client_id}/pay")

    assert response.status_code == 401
    assert response.json()["detail"]["returnPath"] == "/checkout"
    assert backend.requests == []


def test_pay_with_invalid_quantity_is_rejected(api, client_id):
    login(api, client_id)
    api.put(f"/api/v1/checkout/{client_id}/direct", json={"ticketId": 10, "ticketPrice": 100, "quantity": "x"})
    assert api.post(f"/api/v1/checkout/{client_id}/pay").status_code == 422


def test_pay_upstream_failure_is_bad_gateway(api, client_id, backend):
    login(api, client_id)
    api.put(f"/api/v1/checkout/{client_id}/direct", json={"ticketId": 10, "ticketPrice": 100, "quantity": 1})
    backend.fail_with = 500

    response = api.post(f"/api/v1/checkout/{client_id}/pay")

    assert response.status_code == 502
    assert response.json()["detail"]["retryable"] is True


def test_expired_session_during_checkout(api, client_id, backend):
    login(api, client_id)
    backend.fail_with = 401

    response = api.get(f"/api/v1/checkout/{client_id}", params={"order_number": "ORD-1"})

    assert response.status_code == 401
    assert response.json()["detail"]["reason"] == "auth_expired"


def test_failed_payment_result_has_no_refresh(api, client_id):
    result = api.get(f"/api/v1/payment/{client_id}/result", params={"MerchantTradeNo": "ORD-1", "RtnCode": "0"})
    assert result.json()["outcome"] == "failure"
    assert "Refresh" not in result.headers


def test_payment_result_without_order_number(api, client_id):
    assert api.get(f"/api/v1/payment/{client_id}/result", params={"RtnCode": "1"}).status_code == 422


def test_payment_status(api, client_id, backend):
    login(api, client_id)
    backend.add_order("ORD-7", 100.0, status="paid")
    response = api.get(f"/api/v1/payment/{client_id}/ORD-7/status")
    assert response.json() == {"orderNumber": "ORD-7", "status": "paid"}


def test_logout_forgets_credential(api, client_id):
    login(api, client_id)
    assert api.delete(f"/api/v1/session/{client_id}/credential").status_code == 204
    response = api.get(f"/api/v1/payment/{client_id}/ORD-7/status")
    assert response.status_code == 401
