# backend/concerthall/services/payment_result_service.py
"""
Gestor del resultado de pago.

Interpreta el código de retorno de la pasarela (real o simulada), cierra la
sesión de checkout y, si el pago fue correcto, carga el pedido final y
programa la redirección automática al detalle del pedido. La redirección se
cancela si el gestor se cierra antes de que venza el plazo.
"""
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from concerthall.core.config import Settings
from concerthall.core.exceptions import ValidationError
from concerthall.schemas.payment_schema import PaymentOutcome, PaymentResult
from concerthall.services.checkout_service import CheckoutService
from concerthall.services.payment_gateway import SUCCESS_CODE

logger = logging.getLogger(__name__)

Navigator = Callable[[str], Union[None, Awaitable[None]]]


def classify(rtn_code: Any) -> PaymentOutcome:
    """`RtnCode` 1 es éxito; cualquier otro valor (o su ausencia) es fallo."""
    if rtn_code is not None and str(rtn_code).strip() == SUCCESS_CODE:
        return PaymentOutcome.SUCCESS
    return PaymentOutcome.FAILURE


class PaymentResultHandler:

    def __init__(self, settings: Settings, checkout_service: CheckoutService, navigate: Optional[Navigator] = None):
        self.settings = settings
        self.checkout_service = checkout_service
        self.navigate = navigate
        self._redirect_task: Optional[asyncio.Task] = None
        self._closed = False

    def order_detail_url(self, order_number: str) -> str:
        return f"{self.settings.ORDER_DETAIL_PATH}/{order_number}"

    async def handle(self, client_id: str, merchant_trade_no: Optional[str], rtn_code: Any, rtn_msg: Optional[str] = None) -> PaymentResult:
        """Clasifica el resultado, lo aplica al checkout y devuelve el estado terminal a mostrar."""
        if not merchant_trade_no:
            raise ValidationError("Falta el número de pedido en el resultado del pago")

        outcome = classify(rtn_code)
        session = await self.checkout_service.resolve_payment(
            client_id, merchant_trade_no, outcome == PaymentOutcome.SUCCESS, rtn_msg
        )
        result = PaymentResult(
            order_number=merchant_trade_no,
            outcome=outcome,
            state=session.state.value,
            message=rtn_msg or session.message,
        )

        if outcome == PaymentOutcome.SUCCESS:
            result.order = await self.checkout_service.fetch_order(client_id, merchant_trade_no)
            result.redirect_to = self.order_detail_url(merchant_trade_no)
            result.redirect_after_seconds = self.settings.PAYMENT_REDIRECT_DELAY_SECONDS
            self.schedule_redirect(result.redirect_to)
        else:
            logger.info(f"Pago del pedido {merchant_trade_no} no completado: {rtn_msg}")

        return result

    # ========================================
    # REDIRECCIÓN AUTOMÁTICA
    # ========================================

    @property
    def redirect_pending(self) -> bool:
        return self._redirect_task is not None and not self._redirect_task.done()

    def schedule_redirect(self, url: str) -> None:
        """Programa la navegación a `url` tras el plazo configurado. Sin navegador no hace nada."""
        if self.navigate is None or self._closed:
            return
        self.cancel_redirect()
        self._redirect_task = asyncio.create_task(self._redirect_later(url))

    async def _redirect_later(self, url: str) -> None:
        await asyncio.sleep(self.settings.PAYMENT_REDIRECT_DELAY_SECONDS)
        if self._closed:
            return
        try:
            result = self.navigate(url)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"No se pudo redirigir a {url}: {e}")

    def cancel_redirect(self) -> None:
        if self._redirect_task is not None and not self._redirect_task.done():
            self._redirect_task.cancel()
        self._redirect_task = None

    def close(self) -> None:
        """Desmonta el gestor: cancela la redirección pendiente. Después no se navega nunca."""
        self._closed = True
        self.cancel_redirect()
