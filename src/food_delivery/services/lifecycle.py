"""
Менеджер жизненного цикла заказа.

Порядок проверок при смене статуса:
1. заказ существует (OrderNotFoundError);
2. переход разрешён таблицей (InvalidTransitionError);
3. у вызывающего есть права (NotAuthorizedError);
4. водитель существует и свободен, если его назначают (DriverUnavailableError);
5. статус, водитель и история сохраняются одним коммитом (ConflictError / PersistenceError).
Повторов нет: при ошибке заказ не изменён, решение о повторе за вызывающим.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from food_delivery.crud.driver import is_driver_available
from food_delivery.crud.order import (
    load_order_for_transition,
    persistence_errors,
    save_driver_assignment,
    save_order_transition,
)
from food_delivery.exceptions import (
    DriverUnavailableError,
    InvalidTransitionError,
    NotAuthorizedError,
    OrderLifecycleError,
    OrderNotFoundError,
)
from food_delivery.models import Order, OrderStatusEnum
from food_delivery.services.events import OrderEventBus, OrderStatusChanged, event_bus
from food_delivery.services.policy import Caller, OrderSnapshot, can_assign_driver, can_transition
from food_delivery.services.transitions import DRIVER_BINDING_STATUSES, is_valid_transition

logger = logging.getLogger(__name__)


class OrderLifecycleManager:
    def __init__(self, db: AsyncSession, events: Optional[OrderEventBus] = None):
        self.db = db
        self.events = events if events is not None else event_bus

    async def _load(self, order_id: int) -> OrderSnapshot:
        async with persistence_errors(self.db, f"loading order {order_id}"):
            order = await load_order_for_transition(self.db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _check_driver(self, caller: Caller, order: OrderSnapshot, driver_id: int) -> None:
        if driver_id == order.driver_id:
            return
        if not can_assign_driver(caller, order):
            raise NotAuthorizedError()
        async with persistence_errors(self.db, f"checking driver {driver_id}"):
            available = await is_driver_available(self.db, driver_id)
        if not available:
            raise DriverUnavailableError(driver_id)

    async def transition(
        self,
        order_id: int,
        requested_status: OrderStatusEnum,
        caller: Caller,
        driver_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Переводит заказ в requested_status и возвращает обновлённый заказ с позициями и историей.
        """
        requested_status = OrderStatusEnum(requested_status)
        try:
            order = await self._load(order_id)

            if not is_valid_transition(order.status, requested_status):
                raise InvalidTransitionError(order.status, requested_status)

            if not can_transition(caller, order, requested_status):
                raise NotAuthorizedError()

            if driver_id is not None:
                if requested_status not in DRIVER_BINDING_STATUSES:
                    raise InvalidTransitionError(
                        order.status,
                        requested_status,
                        message=f"A driver cannot be assigned to an order moving to '{requested_status.value}'",
                    )
                await self._check_driver(caller, order, driver_id)
            elif requested_status == OrderStatusEnum.out_for_delivery and order.driver_id is None:
                raise DriverUnavailableError(None)

            updated = await save_order_transition(
                self.db, order, requested_status, driver_id=driver_id, notes=notes
            )
        except OrderLifecycleError as e:
            logger.info(
                "Transition of order %s to %s rejected for user %s (%s): %s",
                order_id, requested_status.value, caller.id, caller.role.value, e.code,
            )
            raise

        await self.events.publish(
            OrderStatusChanged(
                order_id=updated.id,
                old_status=order.status,
                new_status=updated.status,
                driver_id=updated.driver_id,
            )
        )
        return updated

    async def assign_driver(self, order_id: int, driver_id: int, caller: Caller) -> Order:
        """
        Назначение водителя на заказ, готовый к выдаче (статус не меняется).
        """
        try:
            order = await self._load(order_id)

            if order.status != OrderStatusEnum.ready_for_pickup:
                raise InvalidTransitionError(
                    order.status,
                    order.status,
                    message="A driver can only be assigned to an order that is ready for pickup",
                )
            if not can_assign_driver(caller, order):
                raise NotAuthorizedError()

            await self._check_driver(caller, order, driver_id)
            updated = await save_driver_assignment(self.db, order, driver_id)
        except OrderLifecycleError as e:
            logger.info(
                "Driver %s assignment to order %s rejected for user %s: %s",
                driver_id, order_id, caller.id, e.code,
            )
            raise

        logger.info("Driver %s assigned to order %s by user %s", driver_id, order_id, caller.id)
        return updated
