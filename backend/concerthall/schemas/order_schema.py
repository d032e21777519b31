# backend/concerthall/schemas/order_schema.py
"""
Se encarga de definir los esquemas Pydantic de los pedidos de la API externa.

El pedido pertenece al backend de pedidos: aquí solo se referencia. Su
`totalAmount` es la fuente de verdad y nunca se recalcula en este servicio.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime
import enum

from concerthall.schemas.cart_schema import as_optional_str


class OrderStatus(str, enum.Enum):
    """Define los posibles estados de un pedido."""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    """Línea de un pedido: cantidad y precio unitario en el momento de la compra."""
    id: Optional[str] = None
    type: str = "ticket"
    name: Optional[str] = None
    quantity: int = Field(..., gt=0, description="Cantidad comprada")
    price: float = Field(default=0.0, ge=0, description="Precio al momento de la compra")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        return as_optional_str(v)


class OrderCreate(BaseModel):
    """Cuerpo de `POST /orders`."""
    items: List[OrderItem] = Field(..., min_length=1, description="Items del pedido")


class Order(BaseModel):
    """Pedido tal como lo devuelve la API de pedidos."""
    order_number: str = Field(..., alias="orderNumber")
    items: List[OrderItem] = Field(default_factory=list)
    total_amount: float = Field(..., alias="totalAmount", ge=0)
    subtotal_amount: Optional[float] = Field(default=None, alias="subtotalAmount")
    discount_amount: Optional[float] = Field(default=None, alias="discountAmount")
    status: str = Field(default=OrderStatus.PENDING.value, description="Estado del pedido")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("order_number", mode="before")
    @classmethod
    def validate_order_number(cls, v):
        v = as_optional_str(v)
        if not v:
            raise ValueError("El pedido no tiene número")
        return v
