"""
Событие смены статуса заказа для внешних получателей (email/SMS/push).
Доставка не наша забота: слушатели вызываются после коммита, их ошибки только логируются.
"""
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Union

from food_delivery.models.order import OrderStatusEnum, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderStatusChanged:
    order_id: int
    old_status: OrderStatusEnum
    new_status: OrderStatusEnum
    driver_id: Optional[int] = None
    occurred_at: datetime = field(default_factory=utcnow)


Listener = Callable[[OrderStatusChanged], Union[None, Awaitable[None]]]


class OrderEventBus:
    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Listener:
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def publish(self, event: OrderStatusChanged) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Listener %r failed for order_id=%s (%s -> %s)",
                    listener, event.order_id, event.old_status.value, event.new_status.value,
                )


def log_status_change(event: OrderStatusChanged) -> None:
    logger.info(
        "Order %s: %s -> %s (driver_id=%s)",
        event.order_id, event.old_status.value, event.new_status.value, event.driver_id,
    )


# глобальный экземпляр
event_bus = OrderEventBus()
