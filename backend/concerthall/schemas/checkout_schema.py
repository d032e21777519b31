# backend/concerthall/schemas/checkout_schema.py
"""
Esquemas Pydantic del checkout: compra directa, sesión de checkout y vista.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional
import enum

from concerthall.schemas.cart_schema import as_optional_str
from concerthall.schemas.order_schema import Order


class CheckoutState(str, enum.Enum):
    """Estados de la máquina de estados del checkout."""
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    PAYING = "paying"
    COMPLETED = "completed"
    FAILED = "failed"


class CheckoutOrigin(str, enum.Enum):
    """De dónde salió el pedido que se está pagando."""
    CART = "cart"
    DIRECT = "direct"
    ORDER = "order"


class DirectCheckout(BaseModel):
    """
    Descriptor de "comprar ahora" de un único tipo de entrada, guardado con alcance de sesión.

    Los campos numéricos se aceptan tal cual: el resumen cae a 0 si faltan y la
    validación estricta se hace al iniciar el pago.
    """
    concert_id: Optional[str] = Field(default=None, alias="concertId")
    concert_title: Optional[str] = Field(default=None, alias="concertTitle")
    performance_id: Optional[str] = Field(default=None, alias="performanceId")
    ticket_id: Optional[str] = Field(default=None, alias="ticketId")
    ticket_type_id: Optional[str] = Field(default=None, alias="ticketTypeId")
    ticket_type: Optional[str] = Field(default=None, alias="ticketType")
    ticket_price: Any = Field(default=None, alias="ticketPrice")
    quantity: Any = None
    discount: Any = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("concert_id", "performance_id", "ticket_id", "ticket_type_id", mode="before")
    @classmethod
    def validate_refs(cls, v):
        return as_optional_str(v)

    @property
    def resolved_ticket_id(self) -> Optional[str]:
        return self.ticket_id or self.ticket_type_id


class DirectCheckoutSummary(BaseModel):
    """Resumen calculado de una compra directa."""
    checkout: DirectCheckout
    subtotal: float
    discount: float
    total_amount: float = Field(..., alias="totalAmount")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSession(BaseModel):
    """Estado persistido del checkout de un pedido."""
    order_number: str = Field(..., alias="orderNumber")
    origin: CheckoutOrigin
    state: CheckoutState = CheckoutState.READY
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey")
    message: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class CheckoutView(BaseModel):
    """Lo que la vista de checkout debe mostrar. Exactamente uno de `order` o `direct`, salvo en error."""
    state: CheckoutState
    origin: Optional[CheckoutOrigin] = None
    order: Optional[Order] = None
    direct: Optional[DirectCheckoutSummary] = None
    total_amount: Optional[float] = Field(default=None, alias="totalAmount")
    error: Optional[str] = None
    catalog_url: Optional[str] = Field(default=None, alias="catalogUrl")

    model_config = ConfigDict(populate_by_name=True)
