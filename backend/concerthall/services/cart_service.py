# backend/concerthall/services/cart_service.py
"""
Servicio de Carrito de Compras para la aplicación.

Este servicio es la única fuente de verdad de la selección en curso de cada
cliente. El carrito se persiste en el almacén clave-valor con alcance "local"
(sobrevive a recargas) después de cada modificación, y cada modificación se
notifica para que otras pestañas actualicen el contador sin recargar.
"""
import asyncio
import logging
import weakref
from typing import AsyncIterator, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from concerthall.core.config import Settings
from concerthall.core.exceptions import IntegrityError, ValidationError
from concerthall.schemas.cart_schema import Cart, CartItem
from concerthall.services.pricing import compute_total
from concerthall.storage.client_storage import ClientStorage, LOCAL

logger = logging.getLogger(__name__)

# Un lock por cliente, compartido por todas las instancias del servicio del proceso.
# La entrada desaparece cuando ninguna operación en curso usa el lock.
_cart_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


class CartService:
    """
    Servicio para gestionar el carrito de compras de cada cliente.

    Las modificaciones de un mismo cliente se serializan con un lock: cada una
    lee, modifica y persiste el carrito antes de devolver el control, así que
    ningún lector ve un estado intermedio. Entre procesos gana la última escritura.
    """

    def __init__(self, settings: Settings, storage: ClientStorage):
        self.settings = settings
        self.storage = storage

    def _get_cart_key(self) -> str:
        return self.settings.CART_STORAGE_KEY

    def _lock(self, client_id: str) -> asyncio.Lock:
        lock = _cart_locks.get(client_id)
        if lock is None:
            lock = asyncio.Lock()
            _cart_locks[client_id] = lock
        return lock

    @staticmethod
    def _find(cart: Cart, item_id: str, item_type: str) -> Optional[CartItem]:
        for item in cart.items:
            if item.id == item_id and item.type == item_type:
                return item
        return None

    async def get_cart(self, client_id: str) -> Cart:
        """
        Obtiene el carrito persistido, o un carrito vacío si no existe.
        Si los datos persistidos están corruptos se sustituyen por el carrito vacío.
        """
        try:
            cart_data = await self.storage.get(client_id, self._get_cart_key())
        except IntegrityError as e:
            logger.warning(f"Carrito ilegible para el cliente {client_id}, se usa uno vacío: {e}")
            return Cart()

        if cart_data is None:
            return Cart()

        try:
            cart = Cart.model_validate(cart_data)
        except PydanticValidationError as e:
            logger.warning(f"Carrito con formato inválido para el cliente {client_id}, se usa uno vacío: {e}")
            return Cart()

        # El total es derivado: nunca se confía en el valor persistido
        cart.total = compute_total(cart.items)
        return cart

    async def _save_cart(self, client_id: str, cart: Cart) -> Cart:
        cart.total = compute_total(cart.items)
        await self.storage.set(client_id, self._get_cart_key(), cart.model_dump(mode="json", by_alias=True), scope=LOCAL)
        await self.storage.notify(client_id, self._get_cart_key(), {"count": self.count_items(cart), "total": cart.total})
        return cart

    async def add_item(self, client_id: str, item: CartItem, quantity: int = 1) -> Cart:
        """
        Añade un item al carrito del cliente.
        Si ya existe una línea con el mismo (id, type), incrementa su cantidad.
        """
        if quantity < 1:
            raise ValidationError("La cantidad a añadir debe ser al menos 1")

        async with self._lock(client_id):
            cart = await self.get_cart(client_id)
            existing = self._find(cart, item.id, item.type)
            if existing:
                existing.quantity += quantity
            else:
                cart.items.append(item.model_copy(update={"quantity": quantity}))
            logger.info(f"Carrito {client_id}: +{quantity} x {item.type}:{item.id}")
            return await self._save_cart(client_id, cart)

    async def remove_item(self, client_id: str, item_id: str, item_type: str = "ticket") -> Cart:
        """Elimina una línea del carrito. Si no existe, no hace nada."""
        async with self._lock(client_id):
            cart = await self.get_cart(client_id)
            if self._find(cart, item_id, item_type) is None:
                return cart
            cart.items = [i for i in cart.items if not (i.id == item_id and i.type == item_type)]
            return await self._save_cart(client_id, cart)

    async def update_quantity(self, client_id: str, item_id: str, item_type: str, quantity: int) -> Cart:
        """
        Fija la cantidad de una línea. Con una cantidad de 0 o menos la línea se elimina.
        """
        async with self._lock(client_id):
            cart = await self.get_cart(client_id)
            existing = self._find(cart, item_id, item_type)
            if existing is None:
                return cart
            if quantity <= 0:
                cart.items.remove(existing)
            else:
                existing.quantity = quantity
            return await self._save_cart(client_id, cart)

    async def clear(self, client_id: str) -> Cart:
        """Vacía completamente el carrito del cliente."""
        async with self._lock(client_id):
            logger.info(f"Carrito {client_id} vaciado")
            return await self._save_cart(client_id, Cart())

    @staticmethod
    def count_items(cart: Cart) -> int:
        return sum(item.quantity for item in cart.items)

    async def count(self, client_id: str) -> int:
        return self.count_items(await self.get_cart(client_id))

    async def subscribe(self, client_id: str) -> AsyncIterator[Dict]:
        """Itera las notificaciones de cambio del carrito del cliente (contador y total)."""
        async for change in self.storage.listen(client_id, self._get_cart_key()):
            yield change
