# backend/concerthall/services/pricing.py
"""
Cálculo de importes del carrito y de la compra directa.

Todas las funciones son puras: no lanzan excepciones por datos numéricos
mal formados y nunca propagan NaN. Un item cuyo precio o cantidad no sea un
número finito aporta 0 al total.
"""
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Dict, Iterable


def coerce_number(value: Any) -> float:
    """
    Convierte un valor a número. Devuelve NaN si no es convertible.

    Acepta int, float, Decimal y strings numéricos ("1200", " 3.5 ").
    None, booleanos y cualquier otro tipo no son números.
    """
    if value is None or isinstance(value, bool):
        return math.nan
    try:
        if isinstance(value, (int, float, Decimal)):
            return float(value)
        if isinstance(value, str):
            return float(value.strip())
    except (OverflowError, ValueError):
        # Enteros fuera del rango de float, Decimal("sNaN") o texto no numérico
        return math.nan
    return math.nan


def safe_price(value: Any) -> float:
    """Precio validado: un número finito no negativo, o 0 en cualquier otro caso."""
    price = coerce_number(value)
    if not math.isfinite(price) or price < 0:
        return 0.0
    return price


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def line_total(item: Any) -> float:
    """Subtotal de una línea (precio x cantidad), 0 si alguno de los dos no es válido."""
    price = coerce_number(_field(item, "price"))
    quantity = coerce_number(_field(item, "quantity"))
    if not (math.isfinite(price) and math.isfinite(quantity)):
        return 0.0
    subtotal = price * quantity
    return subtotal if math.isfinite(subtotal) else 0.0


def compute_total(items: Iterable[Any]) -> float:
    """
    Calcula el total de una secuencia de items que exponen `price` y `quantity`.

    El resultado se redondea a céntimos: es el importe que se muestra y se cobra.

    Example:
        compute_total([{"price": 1200, "quantity": 2}, {"price": "bad", "quantity": 1}])
        -> 2400.0
    """
    total = 0.0
    for item in items:
        partial = total + line_total(item)
        # Una línea que desbordaría el total cuenta como inválida
        if math.isfinite(partial):
            total = partial
    return round(total, 2)


def summarize(price: Any, quantity: Any, discount: Any = None) -> Dict[str, float]:
    """
    Resumen de una compra directa de un único tipo de entrada.

    Los campos ausentes o no numéricos cuentan como 0 y el total nunca es negativo.
    """
    subtotal = compute_total([{"price": price, "quantity": quantity}])
    discount_amount = coerce_number(discount)
    if not math.isfinite(discount_amount) or discount_amount < 0:
        discount_amount = 0.0
    total_amount = max(round(subtotal - discount_amount, 2), 0.0)
    return {"subtotal": subtotal, "discount": discount_amount, "totalAmount": total_amount}
