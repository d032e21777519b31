# backend/concerthall/schemas/cart_schema.py
"""
Esquemas Pydantic para la gestión del carrito de la compra.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional

from concerthall.services.pricing import safe_price


def as_optional_str(value: Any) -> Optional[str]:
    """Los identificadores del catálogo llegan como números o strings; se guardan como string."""
    if value is None or value == "":
        return None
    return str(value)


class CartItem(BaseModel):
    """Una línea del carrito. El par (id, type) es único dentro de un carrito."""
    id: str = Field(..., description="ID de la unidad comprable (entrada)")
    type: str = Field(default="ticket", description="Categoría del item")
    name: str = Field(default="", description="Nombre para mostrar")
    price: float = Field(default=0.0, description="Precio unitario, 0 si no es un número válido")
    quantity: int = Field(default=1, ge=1, description="Cantidad, al menos 1")
    concert_id: Optional[str] = Field(default=None, alias="concertId")
    performance_id: Optional[str] = Field(default=None, alias="performanceId")

    # Campos extra de visualización (imagen, fecha...) se conservan tal cual
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        v = as_optional_str(v)
        if v is None or not v.strip():
            raise ValueError("El item necesita un identificador")
        return v

    @field_validator("concert_id", "performance_id", mode="before")
    @classmethod
    def validate_catalog_refs(cls, v):
        return as_optional_str(v)

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v):
        return safe_price(v)


class Cart(BaseModel):
    """Esquema que representa el estado completo del carrito."""
    items: List[CartItem] = Field(default_factory=list)
    total: float = 0.0


class CartQuantityUpdate(BaseModel):
    """Nueva cantidad de una línea. Una cantidad de 0 o menos elimina la línea."""
    quantity: int


class CartCount(BaseModel):
    """Número de entradas del carrito (para el contador del encabezado)."""
    count: int
