"""
Ошибки жизненного цикла заказа.
Каждая ошибка означает, что заказ остался без изменений (транзакция откатывается целиком).
"""
from typing import Optional


class OrderLifecycleError(Exception):
    """Базовая ошибка. code: машинный код, message: текст для пользователя."""
    code = "order_error"
    message = "Order operation failed"
    transient = False

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class OrderNotFoundError(OrderLifecycleError):
    code = "order_not_found"
    message = "Order not found"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__()


class InvalidTransitionError(OrderLifecycleError):
    code = "invalid_transition"

    def __init__(self, current_status, requested_status, message: Optional[str] = None):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            message
            or f"Order cannot move from '{_value(current_status)}' to '{_value(requested_status)}'"
        )


class NotAuthorizedError(OrderLifecycleError):
    code = "not_authorized"
    message = "You are not allowed to perform this action"


class DriverUnavailableError(OrderLifecycleError):
    code = "driver_unavailable"

    def __init__(self, driver_id: Optional[int], message: Optional[str] = None):
        self.driver_id = driver_id
        if message is None:
            message = (
                "A driver must be assigned before the order goes out for delivery"
                if driver_id is None
                else f"Driver {driver_id} does not exist or is not available"
            )
        super().__init__(message)


class ConflictError(OrderLifecycleError):
    code = "conflict"
    message = "Order already moved to a different status, please refresh"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__()


class PersistenceError(OrderLifecycleError):
    """Единственная временная ошибка: можно повторить запрос позже."""
    code = "persistence_failure"
    message = "Order storage is temporarily unavailable, please try again"
    transient = True


def _value(status) -> str:
    return getattr(status, "value", status)
