"""
Fixtures compartidas: configuración de pruebas, almacén en memoria y un
backend falso de pedidos y pagos servido con httpx.MockTransport.
"""
import json
import time
import uuid
from typing import Any, Dict, List, Optional

import httpx
import pytest
from jose import jwt

from concerthall.core.config import Settings
from concerthall.services.auth_service import AuthService
from concerthall.services.cart_service import CartService
from concerthall.services.checkout_service import CheckoutService
from concerthall.services.order_api import OrderApiClient
from concerthall.services.payment_gateway import get_payment_gateway
from concerthall.services.payment_result_service import PaymentResultHandler
from concerthall.schemas.session_schema import Credential
from concerthall.storage.client_storage import ClientStorage
from concerthall.storage.memory_store import MemoryStore


def make_token(expires_in: int = 3600, **claims: Any) -> str:
    payload = {"sub": "user-1", "exp": int(time.time()) + expires_in}
    payload.update(claims)
    return jwt.encode(payload, "test-secret", algorithm="HS256")


class FakeBackend:
    """API de pedidos y pagos en memoria. Registra cada petición recibida."""

    def __init__(self):
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.by_idempotency_key: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[int] = None
        self.total_override: Optional[float] = None
        self._next = 1

    def add_order(self, order_number: str, total_amount: float, status: str = "pending", items=None) -> Dict[str, Any]:
        order = {
            "orderNumber": order_number,
            "items": items or [{"id": "t1", "type": "ticket", "name": "Platea", "quantity": 1, "price": total_amount}],
            "totalAmount": total_amount,
            "status": status,
        }
        self.orders[order_number] = order
        return order

    def calls(self, method: str, suffix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.endswith(suffix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "error"})

        path = request.url.path
        if request.method == "POST" and path.endswith("/orders"):
            key = request.headers.get("Idempotency-Key")
            if key and key in self.by_idempotency_key:
                return httpx.Response(200, json=self.orders[self.by_idempotency_key[key]])
            body = json.loads(request.content)
            order_number = f"ORD-{self._next:04d}"
            self._next += 1
            total = sum(i["price"] * i["quantity"] for i in body["items"])
            if self.total_override is not None:
                total = self.total_override
            order = self.add_order(order_number, total, items=body["items"])
            if key:
                self.by_idempotency_key[key] = order_number
            return httpx.Response(201, json=order)

        if request.method == "GET" and "/orders/" in path:
            order_number = path.rsplit("/", 1)[-1]
            if order_number not in self.orders:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json=self.orders[order_number])

        if request.method == "POST" and path.endswith("/payment/ecpay/create"):
            body = json.loads(request.content)
            html = f'<form id="ecpay" action="https://payment-stage.ecpay.com.tw"><input name="MerchantTradeNo" value="{body["orderNumber"]}"></form>'
            return httpx.Response(200, text=html, headers={"content-type": "text/html"})

        if request.method == "POST" and path.endswith("/payment/ecpay/test-notify"):
            order_number = request.url.params["orderNumber"]
            if request.url.params["success"] == "true" and order_number in self.orders:
                self.orders[order_number]["status"] = "paid"
            return httpx.Response(200, json={"ok": True})

        if request.method == "GET" and path.endswith("/payment/status"):
            order_number = request.url.params["orderNumber"]
            status = self.orders.get(order_number, {}).get("status", "unknown")
            return httpx.Response(200, json={"orderNumber": order_number, "status": status})

        return httpx.Response(404, json={"message": "unknown route"})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        STORAGE_BACKEND="memory",
        PAYMENT_GATEWAY="mock",
        PAYMENT_REDIRECT_DELAY_SECONDS=0.05,
        ORDER_API_BASE_URL="http://orders.test/api",
        PAYMENT_API_BASE_URL="http://orders.test/api",
    )


@pytest.fixture
def client_id() -> str:
    # Un cliente distinto por test: los locks del carrito son globales al proceso
    return f"client-{uuid.uuid4().hex[:12]}"


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def storage(store, settings) -> ClientStorage:
    return ClientStorage(store, settings)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def transport(backend) -> httpx.MockTransport:
    return httpx.MockTransport(backend.handler)


@pytest.fixture
def cart_service(settings, storage) -> CartService:
    return CartService(settings, storage)


@pytest.fixture
def auth_service(settings, storage) -> AuthService:
    return AuthService(settings, storage)


@pytest.fixture
def order_api(settings, transport) -> OrderApiClient:
    return OrderApiClient(settings, transport=transport)


@pytest.fixture
def gateway(settings, transport):
    return get_payment_gateway(settings, transport=transport)


@pytest.fixture
def checkout_service(settings, storage, cart_service, auth_service, order_api, gateway) -> CheckoutService:
    return CheckoutService(settings, storage, cart_service, auth_service, order_api, gateway)


@pytest.fixture
def result_handler(settings, checkout_service) -> PaymentResultHandler:
    handler = PaymentResultHandler(settings, checkout_service)
    yield handler
    handler.close()


@pytest.fixture
async def logged_in(auth_service, client_id) -> Credential:
    credential = Credential(token=make_token(), user={"id": 1, "name": "Ana"})
    await auth_service.set_credential(client_id, credential)
    return credential
