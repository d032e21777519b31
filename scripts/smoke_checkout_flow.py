#!/usr/bin/env python3
"""
Prueba manual del flujo completo contra una API en marcha:
carrito -> pedido -> pasarela simulada -> página de resultado.

Necesita la API de pedidos disponible y un token válido:
    DCH_TOKEN=<jwt> python3 scripts/smoke_checkout_flow.py
"""

import os
import sys
import uuid

import requests

# Configuración
BASE_URL = os.environ.get("DCH_BASE_URL", "http://localhost:8000")
API = f"{BASE_URL}/api/v1"
CLIENT_ID = f"smoke-{uuid.uuid4().hex[:8]}"


def print_step(description):
    print(f"\n{'=' * 15} {description} {'=' * 15}")


def call(method: str, path: str, **kwargs) -> dict:
    """Hace la petición y retorna el estado y el cuerpo"""
    try:
        response = requests.request(method, f"{API}{path}", timeout=30, **kwargs)
    except requests.RequestException as e:
        print(f"❌ Error de conexión: {e}")
        sys.exit(1)
    body = response.json() if response.content else None
    icon = "✅" if response.ok else "❌"
    print(f"{icon} {method} {path} -> {response.status_code}")
    return {"ok": response.ok, "status_code": response.status_code, "data": body, "headers": response.headers}


def main():
    token = os.environ.get("DCH_TOKEN")
    if not token:
        print("ℹ️  Define DCH_TOKEN con un token emitido por el backend de autenticación")
        sys.exit(1)

    print(f"🚀 Flujo de compra para el cliente {CLIENT_ID}")

    print_step("CARRITO")
    call("POST", f"/cart/{CLIENT_ID}/items", json={"id": "1", "name": "Platea", "price": 1200, "quantity": 2})
    print(call("GET", f"/cart/{CLIENT_ID}/count")["data"])

    print_step("SIN SESIÓN")
    detail = call("POST", f"/cart/{CLIENT_ID}/checkout")["data"]["detail"]
    print(f"🔐 Login: {detail['loginUrl']}")

    print_step("PEDIDO")
    call("PUT", f"/session/{CLIENT_ID}/credential", json={"token": token, "user": {"name": "Smoke"}})
    order = call("POST", f"/cart/{CLIENT_ID}/checkout", headers={"Idempotency-Key": uuid.uuid4().hex})
    if not order["ok"]:
        print(order["data"])
        sys.exit(1)
    order_number = order["data"]["orderNumber"]
    print(f"🧾 Pedido {order_number}: {order['data']['totalAmount']}")

    print_step("PAGO SIMULADO")
    payment = call("POST", f"/checkout/{CLIENT_ID}/pay", params={"order_number": order_number})["data"]
    print(f"➡️  {payment.get('redirectUrl')}")
    screen = call("GET", f"/payment/{CLIENT_ID}/mock/{order_number}")["data"]
    call("POST", screen["confirmUrl"].replace("/api/v1", "", 1))

    print_step("RESULTADO")
    result = call(
        "GET",
        f"/payment/{CLIENT_ID}/result",
        params={"MerchantTradeNo": order_number, "RtnCode": "1", "RtnMsg": "Smoke"},
    )
    print(f"🎫 Estado: {result['data']['state']} | Refresh: {result['headers'].get('Refresh')}")
    print(f"🛒 Carrito tras el pago: {call('GET', f'/cart/{CLIENT_ID}/count')['data']}")


if __name__ == "__main__":
    main()
