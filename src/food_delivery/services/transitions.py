"""
Конечный автомат статусов заказа. Переходы только вперёд, без пропусков.
"""
from food_delivery.models.order import OrderStatusEnum

S = OrderStatusEnum

# Текущий статус -> допустимые следующие
VALID_TRANSITIONS: dict[OrderStatusEnum, frozenset[OrderStatusEnum]] = {
    S.pending: frozenset({S.preparing, S.cancelled}),
    S.preparing: frozenset({S.ready_for_pickup, S.cancelled}),
    S.ready_for_pickup: frozenset({S.out_for_delivery, S.cancelled}),
    S.out_for_delivery: frozenset({S.delivered, S.cancelled}),
    S.delivered: frozenset(),  # terminal
    S.cancelled: frozenset(),  # terminal
}

_missing = set(OrderStatusEnum) - set(VALID_TRANSITIONS)
if _missing:
    raise RuntimeError(f"No transitions declared for statuses: {sorted(s.value for s in _missing)}")

# Статусы, в которых у заказа может (или должен) быть водитель
DRIVER_BINDING_STATUSES = frozenset({S.ready_for_pickup, S.out_for_delivery})


def allowed_next(status: OrderStatusEnum) -> frozenset[OrderStatusEnum]:
    return VALID_TRANSITIONS[OrderStatusEnum(status)]


def is_valid_transition(current: OrderStatusEnum, target: OrderStatusEnum) -> bool:
    """True, если из current можно перейти в target."""
    return OrderStatusEnum(target) in allowed_next(current)


def is_terminal(status: OrderStatusEnum) -> bool:
    return not allowed_next(status)
