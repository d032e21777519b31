# backend/concerthall/schemas/payment_schema.py
"""
Esquemas Pydantic del flujo de pago (pasarela real o simulada).
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import enum

from concerthall.schemas.order_schema import Order


class PaymentOutcome(str, enum.Enum):
    """Resultado de un pago según el código de retorno de la pasarela."""
    SUCCESS = "success"
    FAILURE = "failure"


class PaymentSession(BaseModel):
    """Sesión de pago creada por la pasarela: una URL de redirección o un formulario HTML."""
    order_number: str = Field(..., alias="orderNumber")
    redirect_url: Optional[str] = Field(default=None, alias="redirectUrl")
    redirect_form_html: Optional[str] = Field(default=None, alias="redirectFormHtml")
    state: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class PaymentResult(BaseModel):
    """Estado terminal mostrado tras volver de la pasarela."""
    order_number: str = Field(..., alias="orderNumber")
    outcome: PaymentOutcome
    state: str
    message: Optional[str] = None
    order: Optional[Order] = None
    redirect_to: Optional[str] = Field(default=None, alias="redirectTo")
    redirect_after_seconds: Optional[float] = Field(default=None, alias="redirectAfterSeconds")

    model_config = ConfigDict(populate_by_name=True)


class PaymentStatus(BaseModel):
    """Estado de pago de un pedido según la API de pagos."""
    order_number: str = Field(..., alias="orderNumber")
    status: str

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class MockPaymentScreen(BaseModel):
    """Datos de la pantalla de la pasarela simulada."""
    order_number: str = Field(..., alias="orderNumber")
    total_amount: float = Field(..., alias="totalAmount")
    status: str
    confirm_url: str = Field(..., alias="confirmUrl")
    cancel_url: str = Field(..., alias="cancelUrl")

    model_config = ConfigDict(populate_by_name=True)


class SimulatedPayment(BaseModel):
    """URL de resultado a la que navega la pasarela simulada."""
    result_url: str = Field(..., alias="resultUrl")

    model_config = ConfigDict(populate_by_name=True)
