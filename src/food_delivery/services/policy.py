"""
Права на смену статуса заказа.
Чистые функции: вызывающий и заказ передаются явно, глобального состояния нет.
"""
from dataclasses import dataclass
from typing import Optional

from food_delivery.models.order import OrderStatusEnum
from food_delivery.models.user import RoleEnum

S = OrderStatusEnum

RESTAURANT_OWNER_TARGETS = frozenset({S.preparing, S.ready_for_pickup, S.cancelled})
DRIVER_SOURCE_STATUSES = frozenset({S.ready_for_pickup, S.out_for_delivery})
CUSTOMER_CANCELLABLE_STATUSES = frozenset({S.pending, S.preparing})


@dataclass(frozen=True)
class Caller:
    """Пользователь, уже проверенный внешним слоем аутентификации."""
    id: int
    role: RoleEnum


@dataclass(frozen=True)
class OrderSnapshot:
    """Узкий срез заказа, которого достаточно для проверки перехода."""
    id: int
    status: OrderStatusEnum
    customer_id: int
    restaurant_owner_id: Optional[int]
    driver_id: Optional[int]
    driver_user_id: Optional[int]


def is_restaurant_owner(caller: Caller, order: OrderSnapshot) -> bool:
    return order.restaurant_owner_id is not None and caller.id == order.restaurant_owner_id


def is_assigned_driver(caller: Caller, order: OrderSnapshot) -> bool:
    return (
        caller.role == RoleEnum.driver
        and order.driver_user_id is not None
        and caller.id == order.driver_user_id
    )


def is_order_customer(caller: Caller, order: OrderSnapshot) -> bool:
    return caller.role == RoleEnum.customer and caller.id == order.customer_id


def can_transition(caller: Caller, order: OrderSnapshot, target: OrderStatusEnum) -> bool:
    """
    Достаточно совпадения хотя бы одного правила:
    - админ может всё;
    - владелец ресторана готовит заказ, отдаёт его курьеру и может отменить;
    - назначенный водитель забирает и доставляет заказ (или отменяет свой заказ);
    - клиент может только отменить свой заказ, пока его не забрали.
    """
    target = OrderStatusEnum(target)

    if caller.role == RoleEnum.admin:
        return True

    if is_restaurant_owner(caller, order) and target in RESTAURANT_OWNER_TARGETS:
        return True

    if is_assigned_driver(caller, order) and order.status in DRIVER_SOURCE_STATUSES:
        return True

    if (
        is_order_customer(caller, order)
        and target == S.cancelled
        and order.status in CUSTOMER_CANCELLABLE_STATUSES
    ):
        return True

    return False


def can_assign_driver(caller: Caller, order: OrderSnapshot) -> bool:
    return caller.role == RoleEnum.admin or is_restaurant_owner(caller, order)


def can_view_order(caller: Caller, order: OrderSnapshot) -> bool:
    return (
        caller.role == RoleEnum.admin
        or is_order_customer(caller, order)
        or is_restaurant_owner(caller, order)
        or is_assigned_driver(caller, order)
    )
