#!/usr/bin/env python3
"""
Debug script para inspeccionar en Redis los datos de un cliente:
carrito, descriptor de compra directa, credencial y sesiones de checkout.

Uso: python3 scripts/inspect_client_storage.py [client_id]
"""

import json
import sys
import time
from typing import Any, Dict, List

import redis

PREFIX = "dch:"


def connect_to_redis() -> redis.Redis:
    """Conectar a Redis"""
    try:
        r = redis.Redis(host="localhost", port=6379, decode_responses=True, db=0)
        r.ping()
        print("✅ Conectado a Redis exitosamente")
        return r
    except redis.ConnectionError:
        print("❌ Error: No se puede conectar a Redis")
        sys.exit(1)


def get_client_keys(r: redis.Redis, client_id: str = "*") -> Dict[str, List[str]]:
    """Obtener las keys del cliente organizadas por tipo"""
    organized = {"cart": [], "checkout": [], "session": [], "other": []}
    for key in r.scan_iter(f"{PREFIX}{client_id}:*"):
        name = key.split(":", 2)[-1]
        if name == "digital_concert_hall_cart":
            organized["cart"].append(key)
        elif name.startswith("checkout:") or name == "checkoutInfo":
            organized["checkout"].append(key)
        elif name == "credential" or name.startswith("payment-inflight:"):
            organized["session"].append(key)
        else:
            organized["other"].append(key)
    return organized


def inspect_key(r: redis.Redis, key: str) -> Dict[str, Any]:
    """Inspeccionar una key: valor desempaquetado, expiración y TTL de Redis"""
    raw = r.get(key)
    result: Dict[str, Any] = {"key": key, "ttl": r.ttl(key)}
    try:
        envelope = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        result["corrupt"] = raw
        return result
    result["value"] = envelope.get("value") if isinstance(envelope, dict) else envelope
    expiry = envelope.get("expiry") if isinstance(envelope, dict) else None
    if expiry is not None:
        result["expires_in"] = round(expiry - time.time())
    return result


def main():
    client_id = sys.argv[1] if len(sys.argv) > 1 else "*"
    r = connect_to_redis()
    keys = get_client_keys(r, client_id)

    for group, group_keys in keys.items():
        print(f"\n{'=' * 15} {group.upper()} ({len(group_keys)}) {'=' * 15}")
        for key in sorted(group_keys):
            info = inspect_key(r, key)
            if "corrupt" in info:
                print(f"⚠️  {key}: valor ilegible -> {info['corrupt']!r}")
                continue
            print(f"🔑 {key} (ttl={info['ttl']}, expira en={info.get('expires_in', '-')})")
            print(json.dumps(info["value"], indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
