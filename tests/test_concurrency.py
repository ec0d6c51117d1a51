"""
Гонки двух запросов над одним заказом или одним водителем.
Первый запрос останавливается после чтения, второй успевает закоммитить, затем первый продолжает.
"""
import asyncio

import pytest

from food_delivery.crud.driver import get_driver
from food_delivery.crud.order import get_order_by_id
from food_delivery.exceptions import ConflictError, DriverUnavailableError
from food_delivery.models import OrderStatusEnum as S
from food_delivery.services import lifecycle
from food_delivery.services.events import OrderEventBus
from food_delivery.services.lifecycle import OrderLifecycleManager


def pause_after_first_call(monkeypatch, name):
    """
    Подменяет lifecycle.<name>: первый вызов ждёт proceed, остальные проходят сразу.
    """
    original = getattr(lifecycle, name)
    paused = asyncio.Event()
    proceed = asyncio.Event()

    async def wrapper(*args, **kwargs):
        result = await original(*args, **kwargs)
        if not paused.is_set():
            paused.set()
            await proceed.wait()
        return result

    monkeypatch.setattr(lifecycle, name, wrapper)
    return paused, proceed


async def test_cancel_races_with_prepare(place_order, actors, session_factory, monkeypatch):
    order = await place_order()
    paused, proceed = pause_after_first_call(monkeypatch, "load_order_for_transition")
    cancel_events = OrderEventBus()
    cancelled = []
    cancel_events.subscribe(cancelled.append)

    async with session_factory() as customer_db, session_factory() as owner_db:
        cancel = asyncio.create_task(
            OrderLifecycleManager(customer_db, events=cancel_events).transition(
                order.id, S.cancelled, actors.customer
            )
        )
        await paused.wait()

        prepared = await OrderLifecycleManager(owner_db, events=OrderEventBus()).transition(
            order.id, S.preparing, actors.owner
        )
        proceed.set()

        with pytest.raises(ConflictError) as exc_info:
            await cancel

    assert exc_info.value.order_id == order.id
    assert prepared.status == S.preparing
    assert cancelled == []

    async with session_factory() as session:
        stored = await get_order_by_id(session, order.id)
    assert stored.status == S.preparing
    assert [h.status for h in stored.status_history] == [S.pending, S.preparing]


async def test_same_driver_assigned_to_two_orders(ready_order, actors, session_factory, monkeypatch):
    first = await ready_order()
    second = await ready_order()
    paused, proceed = pause_after_first_call(monkeypatch, "is_driver_available")

    async with session_factory() as first_db, session_factory() as second_db:
        first_assign = asyncio.create_task(
            OrderLifecycleManager(first_db, events=OrderEventBus()).assign_driver(
                first.id, actors.driver_id, actors.admin
            )
        )
        await paused.wait()

        assigned = await OrderLifecycleManager(second_db, events=OrderEventBus()).assign_driver(
            second.id, actors.driver_id, actors.owner
        )
        proceed.set()

        with pytest.raises(DriverUnavailableError):
            await first_assign

    assert assigned.driver_id == actors.driver_id

    async with session_factory() as session:
        stored_first = await get_order_by_id(session, first.id)
        driver = await get_driver(session, actors.driver_id)
    assert stored_first.driver_id is None
    assert stored_first.status == S.ready_for_pickup
    assert driver.is_available is False
