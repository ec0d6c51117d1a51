from .user import User, RoleEnum
from .restaurant import Restaurant
from .driver import Driver
from .menu_item import MenuItem
from .order import Order, OrderStatusEnum
from .order_item import OrderItem
from .order_status_history import OrderStatusHistory

__all__ = [
    "User",
    "RoleEnum",
    "Restaurant",
    "Driver",
    "MenuItem",
    "Order",
    "OrderStatusEnum",
    "OrderItem",
    "OrderStatusHistory",
]
