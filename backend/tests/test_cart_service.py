import asyncio

import pytest

from concerthall.core.exceptions import ValidationError
from concerthall.schemas.cart_schema import CartItem


def ticket(item_id="t1", price=1200, **extra) -> CartItem:
    return CartItem(id=item_id, type="ticket", name=f"Entrada {item_id}", price=price, **extra)


async def test_new_client_has_empty_cart(cart_service, client_id):
    cart = await cart_service.get_cart(client_id)
    assert cart.items == []
    assert cart.total == 0.0
    assert await cart_service.count(client_id) == 0


async def test_add_item_merges_same_id_and_type(cart_service, client_id):
    await cart_service.add_item(client_id, ticket("t1"), 2)
    cart = await cart_service.add_item(client_id, ticket("t1"), 3)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 5
    assert cart.total == 6000.0


async def test_same_id_with_different_type_is_a_separate_line(cart_service, client_id):
    await cart_service.add_item(client_id, ticket("t1"))
    cart = await cart_service.add_item(client_id, CartItem(id="t1", type="merch", price=300))

    assert len(cart.items) == 2
    assert await cart_service.count(client_id) == 2


async def test_add_item_rejects_non_positive_quantity(cart_service, client_id):
    with pytest.raises(ValidationError):
        await cart_service.add_item(client_id, ticket(), 0)


async def test_count_is_sum_of_quantities(cart_service, client_id):
    await cart_service.add_item(client_id, ticket("t1"), 2)
    await cart_service.add_item(client_id, ticket("t2", price=800), 3)
    assert await cart_service.count(client_id) == 5


async def test_total_ignores_invalid_prices(cart_service, client_id):
    await cart_service.add_item(client_id, ticket("t1", price=1000), 2)
    cart = await cart_service.add_item(client_id, ticket("t2", price="not a price"), 4)

    assert cart.items[1].price == 0.0
    assert cart.total == 2000.0


async def test_update_quantity_to_zero_removes_line(cart_service, client_id):
    await cart_service.add_item(client_id, ticket("t1"), 2)
    await cart_service.add_item(client_id, ticket("t2"), 1)

    cart = await cart_service.update_quantity(client_id, "t1", "ticket", 0)

    assert [i.id for i in cart.items] == ["t2"]
    assert cart.total == 1200.0


async def test_update_quantity_sets_value(cart_service, client_id):
    await cart_service.add_item(client_id, ticket("t1"), 2)
    cart = await cart_service.update_quantity(client_id, "t1", "ticket", 7)
    assert cart.items[0].quantity == 7


async def test_remove_missing_item_is_a_noop(cart_service, client_id):
    await cart_service.add_item(client_id, ticket("t1"))
    cart = await cart_service.remove_item(client_id, "zzz", "ticket")
    assert len(cart.items) == 1


async def test_clear_empties_the_cart(cart_service, client_id):
    await cart_service.add_item(client_id, ticket("t1"), 3)
    cart = await cart_service.clear(client_id)
    assert cart.items == []
    assert await cart_service.count(client_id) == 0


async def test_cart_survives_a_new_service_instance(settings, storage, cart_service, client_id):
    from concerthall.services.cart_service import CartService

    await cart_service.add_item(client_id, ticket("t1", concertId=42), 2)

    reloaded = await CartService(settings, storage).get_cart(client_id)
    assert reloaded.items[0].quantity == 2
    assert reloaded.items[0].concert_id == "42"
    assert reloaded.total == 2400.0


async def test_corrupt_cart_is_replaced_by_empty_cart(cart_service, store, client_id):
    await store.set(f"dch:{client_id}:digital_concert_hall_cart", "[[[")
    cart = await cart_service.get_cart(client_id)
    assert cart.items == []

    cart = await cart_service.add_item(client_id, ticket("t1"))
    assert len(cart.items) == 1


async def test_concurrent_adds_are_not_lost(cart_service, client_id):
    await asyncio.gather(*(cart_service.add_item(client_id, ticket("t1")) for _ in range(10)))
    assert await cart_service.count(client_id) == 10


async def test_mutations_notify_subscribers(cart_service, client_id):
    changes = []

    async def watch():
        async for change in cart_service.subscribe(client_id):
            changes.append(change)
            if len(changes) == 2:
                return

    task = asyncio.create_task(watch())
    await asyncio.sleep(0)
    await cart_service.add_item(client_id, ticket("t1"), 2)
    await cart_service.clear(client_id)
    await asyncio.wait_for(task, timeout=1)

    assert changes == [{"count": 2, "total": 2400.0}, {"count": 0, "total": 0.0}]


async def test_get_cart_is_idempotent(cart_service, client_id):
    await cart_service.add_item(client_id, ticket("t1"), 2)
    first = await cart_service.get_cart(client_id)
    second = await cart_service.get_cart(client_id)
    assert first == second


async def test_cart_with_invalid_expiry_is_replaced_by_empty_cart(cart_service, store, client_id):
    await store.set(f"dch:{client_id}:digital_concert_hall_cart", '{"value": {"items": [{"id": "t1"}]}, "expiry": "soon"}')
    cart = await cart_service.get_cart(client_id)
    assert cart.items == []


async def test_locks_are_released_after_use(cart_service):
    import gc

    from concerthall.services.cart_service import _cart_locks

    client_ids = [f"lock-{i}" for i in range(50)]
    for cid in client_ids:
        await cart_service.clear(cid)
    gc.collect()

    assert not any(cid in _cart_locks for cid in client_ids)
