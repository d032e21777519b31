# backend/concerthall/services/checkout_service.py
"""
Orquestador del Checkout.

Este componente encapsula la máquina de estados y la lógica de negocio del
proceso de compra, desde que el usuario llega a la vista de checkout hasta
que la pasarela devuelve el resultado del pago:

    loading -> {ready(pedido) | ready(compra directa) | error} -> paying -> {completed | failed}

Cada transición se persiste en una sesión de checkout por pedido (alcance de
sesión), de modo que todas las operaciones se pueden repetir desde los datos
persistidos sin depender de recargar la página.
"""
import hashlib
import json
import logging
import math
import uuid
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from concerthall.core.config import Settings
from concerthall.core.exceptions import (
    CheckoutStateError,
    CredentialRejectedError,
    IntegrityError,
    OrderInProgressError,
    PaymentInProgressError,
    UpstreamError,
    ValidationError,
)
from concerthall.schemas.checkout_schema import (
    CheckoutOrigin,
    CheckoutSession,
    CheckoutState,
    CheckoutView,
    DirectCheckout,
    DirectCheckoutSummary,
)
from concerthall.schemas.order_schema import Order, OrderStatus
from concerthall.schemas.payment_schema import PaymentSession
from concerthall.services.auth_service import AuthService
from concerthall.services.cart_service import CartService
from concerthall.services.order_api import OrderApiClient
from concerthall.services.payment_gateway import PaymentGateway
from concerthall.services.pricing import coerce_number, summarize
from concerthall.storage.client_storage import ClientStorage, SESSION

logger = logging.getLogger(__name__)

NO_CHECKOUT_MESSAGE = "No hay ningún pedido ni compra en curso. Vuelve a la lista de conciertos para elegir tus entradas."

# Último pedido creado desde el carrito y la huella del carrito con que se creó
CART_ORDER_KEY = "cartOrder"
CART_INFLIGHT_KEY = "order-inflight:cart"


class CheckoutService:
    """
    Gestiona el proceso de checkout de varios pasos.
    """

    def __init__(
        self,
        settings: Settings,
        storage: ClientStorage,
        cart_service: CartService,
        auth_service: AuthService,
        order_api: OrderApiClient,
        gateway: PaymentGateway,
    ):
        self.settings = settings
        self.storage = storage
        self.cart_service = cart_service
        self.auth_service = auth_service
        self.order_api = order_api
        self.gateway = gateway

    # ========================================
    # PERSISTENCIA DE LA SESIÓN DE CHECKOUT
    # ========================================

    @staticmethod
    def _session_key(order_number: str) -> str:
        return f"checkout:{order_number}"

    @staticmethod
    def _inflight_key(order_number: Optional[str]) -> str:
        return f"payment-inflight:{order_number or 'direct'}"

    def checkout_path(self, order_number: Optional[str] = None) -> str:
        """Ruta de la vista de checkout, usada como ruta de vuelta tras el login."""
        if order_number:
            return f"{self.settings.CHECKOUT_PATH}/{order_number}"
        return self.settings.CHECKOUT_PATH

    async def get_session(self, client_id: str, order_number: str) -> Optional[CheckoutSession]:
        try:
            data = await self.storage.get(client_id, self._session_key(order_number))
        except IntegrityError as e:
            logger.warning(f"Sesión de checkout ilegible para {order_number}: {e}")
            return None
        if data is None:
            return None
        try:
            return CheckoutSession.model_validate(data)
        except PydanticValidationError:
            logger.warning(f"Sesión de checkout con formato inválido para {order_number}")
            return None

    async def _save_session(self, client_id: str, session: CheckoutSession) -> CheckoutSession:
        await self.storage.set(
            client_id,
            self._session_key(session.order_number),
            session.model_dump(mode="json", by_alias=True),
            scope=SESSION,
        )
        logger.info(f"Checkout {session.order_number} ({session.origin.value}) -> {session.state.value}")
        return session

    async def set_direct_checkout(self, client_id: str, descriptor: DirectCheckout) -> DirectCheckout:
        """Guarda el descriptor de "comprar ahora" con alcance de sesión."""
        await self.storage.set(
            client_id,
            self.settings.CHECKOUT_INFO_KEY,
            descriptor.model_dump(mode="json", by_alias=True),
            scope=SESSION,
        )
        return descriptor

    async def get_direct_checkout(self, client_id: str) -> Optional[DirectCheckout]:
        try:
            data = await self.storage.get(client_id, self.settings.CHECKOUT_INFO_KEY)
        except IntegrityError as e:
            logger.warning(f"Descriptor de compra directa ilegible para el cliente {client_id}: {e}")
            return None
        if not isinstance(data, dict):
            return None
        try:
            return DirectCheckout.model_validate(data)
        except PydanticValidationError:
            logger.warning(f"Descriptor de compra directa con formato inválido para el cliente {client_id}")
            return None

    # ========================================
    # ENTRADA A LA VISTA DE CHECKOUT
    # ========================================

    async def enter(self, client_id: str, order_number: Optional[str] = None) -> CheckoutView:
        """
        Resuelve el único objeto tipo pedido que debe mostrar la vista de checkout.

        Con número de pedido se carga el pedido de la API de pedidos y su
        `totalAmount` se muestra tal cual. Sin él se usa el descriptor de compra
        directa. Sin ninguno de los dos, la vista queda en error.
        """
        if order_number:
            return await self._enter_with_order(client_id, order_number)

        direct = await self.get_direct_checkout(client_id)
        if direct is None:
            logger.info(f"Checkout sin pedido ni compra directa para el cliente {client_id}")
            return CheckoutView(state=CheckoutState.ERROR, error=NO_CHECKOUT_MESSAGE, catalog_url=self.settings.CATALOG_PATH)

        summary = summarize(direct.ticket_price, direct.quantity, direct.discount)
        return CheckoutView(
            state=CheckoutState.READY,
            origin=CheckoutOrigin.DIRECT,
            direct=DirectCheckoutSummary(
                checkout=direct,
                subtotal=summary["subtotal"],
                discount=summary["discount"],
                total_amount=summary["totalAmount"],
            ),
            total_amount=summary["totalAmount"],
        )

    async def load_order(self, client_id: str, order_number: str, return_path: str) -> Order:
        """Carga un pedido con la credencial del cliente; sin ella o con un 401 se pide login."""
        credential = await self.auth_service.require_credential(client_id, return_path)
        try:
            return await self.order_api.get_order(credential.token, order_number)
        except CredentialRejectedError:
            raise await self.auth_service.expire(client_id, return_path)

    async def _enter_with_order(self, client_id: str, order_number: str) -> CheckoutView:
        try:
            order = await self.load_order(client_id, order_number, self.checkout_path(order_number))
        except UpstreamError as e:
            logger.error(f"No se pudo cargar el pedido {order_number} para el checkout: {e.message}")
            return CheckoutView(state=CheckoutState.ERROR, error=e.message, catalog_url=self.settings.CATALOG_PATH)

        session = await self.get_session(client_id, order_number)
        origin = session.origin if session else CheckoutOrigin.ORDER
        state = session.state if session else CheckoutState.READY
        if order.status == OrderStatus.PAID.value:
            state = CheckoutState.COMPLETED

        return CheckoutView(
            state=state,
            origin=origin,
            order=order,
            total_amount=order.total_amount,
            error=session.message if session and state == CheckoutState.FAILED else None,
        )

    # ========================================
    # CREACIÓN DE PEDIDOS
    # ========================================

    async def checkout_cart(self, client_id: str, idempotency_key: Optional[str] = None) -> Order:
        """
        Crea un pedido con el contenido del carrito.

        El carrito no se vacía aquí: se vacía cuando el pago del pedido se completa,
        para que un pago fallido no obligue a volver a añadir las entradas. Mientras
        ese pedido no esté pagado, volver a enviar el mismo carrito lo reutiliza.
        """
        cart = await self.cart_service.get_cart(client_id)
        if not cart.items:
            raise ValidationError("El carrito está vacío")

        return_path = self.settings.CART_PATH
        credential = await self.auth_service.require_credential(client_id, return_path)

        items = [item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in cart.items]
        fingerprint = self._cart_fingerprint(items)

        if not await self.storage.acquire(client_id, CART_INFLIGHT_KEY, self.settings.PAYMENT_INFLIGHT_TTL_SECONDS):
            raise OrderInProgressError("Ya se está creando el pedido, espera a que termine")

        try:
            pending = await self._pending_cart_order(client_id, fingerprint)
            if pending:
                logger.info(f"Carrito sin cambios para el cliente {client_id}: se reutiliza el pedido {pending}")
                return await self.order_api.get_order(credential.token, pending)

            key = idempotency_key or uuid.uuid4().hex
            order = await self.order_api.create_order(credential.token, items, idempotency_key=key)
            await self._save_session(
                client_id,
                CheckoutSession(order_number=order.order_number, origin=CheckoutOrigin.CART, idempotency_key=key),
            )
            await self.storage.set(
                client_id,
                CART_ORDER_KEY,
                {"fingerprint": fingerprint, "orderNumber": order.order_number},
                scope=SESSION,
            )
            return order
        except CredentialRejectedError:
            raise await self.auth_service.expire(client_id, return_path)
        finally:
            await self.storage.remove(client_id, CART_INFLIGHT_KEY)

    @staticmethod
    def _cart_fingerprint(items: List[dict]) -> str:
        payload = json.dumps(items, sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    async def _pending_cart_order(self, client_id: str, fingerprint: str) -> Optional[str]:
        """Número del pedido creado antes con este mismo carrito y todavía sin pagar."""
        try:
            data = await self.storage.get(client_id, CART_ORDER_KEY)
        except IntegrityError as e:
            logger.warning(f"Referencia al pedido del carrito ilegible para el cliente {client_id}: {e}")
            return None
        if not isinstance(data, dict) or data.get("fingerprint") != fingerprint:
            return None

        order_number = data.get("orderNumber")
        if not order_number:
            return None
        session = await self.get_session(client_id, str(order_number))
        if session is None or session.state == CheckoutState.COMPLETED:
            return None
        return session.order_number

    @staticmethod
    def _validate_direct(direct: DirectCheckout) -> dict:
        """Valida el descriptor de compra directa y construye la línea del pedido."""
        ticket_id = direct.resolved_ticket_id
        if not ticket_id:
            raise ValidationError("Falta el identificador de la entrada")

        quantity = coerce_number(direct.quantity)
        if not math.isfinite(quantity) or quantity < 1 or not quantity.is_integer():
            raise ValidationError("La cantidad de entradas debe ser un número entero positivo")

        price = coerce_number(direct.ticket_price)
        if not math.isfinite(price) or price < 0:
            raise ValidationError("El precio de la entrada no es válido")

        name = " - ".join(part for part in (direct.concert_title, direct.ticket_type) if part)
        line = {"id": ticket_id, "type": "ticket", "quantity": int(quantity), "price": price, "name": name or None}
        if direct.concert_id:
            line["concertId"] = direct.concert_id
        if direct.performance_id:
            line["performanceId"] = direct.performance_id
        return line

    async def _materialize_direct_order(self, client_id: str, token: str, direct: DirectCheckout, idempotency_key: Optional[str]) -> CheckoutSession:
        """Crea el pedido de una compra directa. Si ya se creó en un intento anterior, lo reutiliza."""
        existing_number = (direct.model_extra or {}).get("orderNumber")
        if existing_number:
            session = await self.get_session(client_id, existing_number)
            if session:
                return session

        line = self._validate_direct(direct)
        key = idempotency_key or uuid.uuid4().hex
        order = await self.order_api.create_order(token, [line], idempotency_key=key)

        # El descriptor recuerda su pedido para que un reintento no cree otro
        descriptor = direct.model_dump(mode="json", by_alias=True)
        descriptor["orderNumber"] = order.order_number
        await self.set_direct_checkout(client_id, DirectCheckout.model_validate(descriptor))
        return await self._save_session(
            client_id,
            CheckoutSession(order_number=order.order_number, origin=CheckoutOrigin.DIRECT, idempotency_key=key),
        )

    # ========================================
    # PAGO
    # ========================================

    async def initiate_payment(self, client_id: str, order_number: Optional[str] = None, idempotency_key: Optional[str] = None) -> PaymentSession:
        """
        Inicia el pago de un pedido existente o de la compra directa en curso.

        Sin credencial no se hace ninguna llamada de red: se lanza AuthRequiredError
        con la URL de login. Un 401 durante el flujo se convierte en AuthExpiredError.
        """
        return_path = self.checkout_path(order_number)
        credential = await self.auth_service.require_credential(client_id, return_path)

        direct: Optional[DirectCheckout] = None
        if not order_number:
            direct = await self.get_direct_checkout(client_id)
            if direct is None:
                raise ValidationError(NO_CHECKOUT_MESSAGE)
            if not (direct.model_extra or {}).get("orderNumber"):
                self._validate_direct(direct)
        else:
            session = await self.get_session(client_id, order_number)
            if session and session.state == CheckoutState.COMPLETED:
                raise CheckoutStateError(f"El pedido {order_number} ya está pagado")

        inflight_key = self._inflight_key(order_number)
        if not await self.storage.acquire(client_id, inflight_key, self.settings.PAYMENT_INFLIGHT_TTL_SECONDS):
            raise PaymentInProgressError("Ya hay un pago en curso, espera a que termine")

        try:
            if direct is not None:
                session = await self._materialize_direct_order(client_id, credential.token, direct, idempotency_key)
            else:
                session = await self.get_session(client_id, order_number) or CheckoutSession(
                    order_number=order_number, origin=CheckoutOrigin.ORDER, idempotency_key=idempotency_key
                )

            if session.state == CheckoutState.COMPLETED:
                raise CheckoutStateError(f"El pedido {session.order_number} ya está pagado")

            payment = await self.gateway.create(session.order_number, credential.token)
        except CredentialRejectedError:
            raise await self.auth_service.expire(client_id, return_path)
        except UpstreamError as e:
            logger.error(f"No se pudo iniciar el pago para el cliente {client_id}: {e.message}")
            raise
        finally:
            await self.storage.remove(client_id, inflight_key)

        session.state = CheckoutState.PAYING
        session.message = None
        await self._save_session(client_id, session)
        if direct is not None:
            await self.storage.remove(client_id, self.settings.CHECKOUT_INFO_KEY)

        payment.state = session.state.value
        return payment

    async def resolve_payment(self, client_id: str, order_number: str, success: bool, message: Optional[str] = None) -> CheckoutSession:
        """
        Aplica el resultado devuelto por la pasarela.

        Un pago completado no se revierte nunca. Con éxito se vacía el carrito si
        el pedido salió del carrito; con fallo el pedido y el carrito se conservan
        para poder reintentar el pago.
        """
        session = await self.get_session(client_id, order_number) or CheckoutSession(
            order_number=order_number, origin=CheckoutOrigin.ORDER
        )

        if session.state == CheckoutState.COMPLETED:
            if not success:
                logger.warning(f"Resultado de fallo ignorado: el pedido {order_number} ya está pagado")
            return session

        if success:
            session.state = CheckoutState.COMPLETED
            session.message = message
            if session.origin == CheckoutOrigin.CART:
                await self.cart_service.clear(client_id)
        else:
            session.state = CheckoutState.FAILED
            session.message = message or "El pago no se completó"

        return await self._save_session(client_id, session)

    async def fetch_order(self, client_id: str, order_number: str) -> Optional[Order]:
        """Carga un pedido solo para mostrarlo. Cualquier fallo devuelve None."""
        credential = await self.auth_service.get_credential(client_id)
        if credential is None:
            return None
        try:
            return await self.order_api.get_order(credential.token, order_number)
        except (CredentialRejectedError, UpstreamError) as e:
            logger.warning(f"No se pudo cargar el pedido {order_number} para mostrarlo: {e.message}")
            return None
