from pydantic import BaseModel, Field, conint, condecimal
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from food_delivery.models.order import OrderStatusEnum


class OrderItemRead(BaseModel):
    id: int
    menu_item_id: int
    quantity: int
    unit_price: Decimal
    notes: Optional[str] = None
    menu_item_name: str | None = None

    @classmethod
    def from_orm_with_name(cls, item):
        return cls(
            id=item.id,
            menu_item_id=item.menu_item_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            notes=item.notes,
            menu_item_name=item.menu_item.name if item.menu_item else None
        )

    class Config:
        from_attributes = True


class OrderStatusHistoryRead(BaseModel):
    status: OrderStatusEnum
    created_at: datetime
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: int
    customer_id: int
    customer_name: Optional[str] = None
    restaurant_id: int
    restaurant_name: Optional[str] = None
    driver_id: Optional[int] = None
    status: OrderStatusEnum
    total_amount: Decimal
    delivery_fee: Decimal
    delivery_address: str
    delivery_latitude: Optional[Decimal] = None
    delivery_longitude: Optional[Decimal] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemRead] = []
    status_history: List[OrderStatusHistoryRead] = []
    count_items: int

    @classmethod
    def from_orm_with_name(cls, order):
        """
        Собирает read-модель заказа: позиции с названиями блюд, историю статусов,
        имена клиента и ресторана. Связи должны быть подгружены заранее.
        """
        customer = getattr(order, "customer", None)
        restaurant = getattr(order, "restaurant", None)

        return cls(
            id=order.id,
            customer_id=order.customer_id,
            customer_name=customer.full_name if customer else None,
            restaurant_id=order.restaurant_id,
            restaurant_name=restaurant.name if restaurant else None,
            driver_id=order.driver_id,
            status=order.status,
            total_amount=order.total_amount,
            delivery_fee=order.delivery_fee,
            delivery_address=order.delivery_address,
            delivery_latitude=order.delivery_latitude,
            delivery_longitude=order.delivery_longitude,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[OrderItemRead.from_orm_with_name(i) for i in order.items],
            status_history=[OrderStatusHistoryRead.model_validate(h) for h in order.status_history],
            count_items=sum(item.quantity for item in order.items),
        )

    class Config:
        from_attributes = True


class OrderItemCreate(BaseModel):
    menu_item_id: int
    quantity: conint(ge=1) = 1
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    restaurant_id: int
    items: List[OrderItemCreate] = Field(..., min_length=1)
    delivery_fee: condecimal(ge=0, max_digits=6, decimal_places=2) = Decimal("0")
    delivery_address: str = Field(..., min_length=5)
    delivery_latitude: Optional[Decimal] = None
    delivery_longitude: Optional[Decimal] = None
    notes: Optional[str] = None

    class Config:
        extra = "forbid"


class OrderStatusUpdate(BaseModel):
    status: OrderStatusEnum
    driver_id: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        extra = "forbid"


class DriverAssign(BaseModel):
    driver_id: int

    class Config:
        extra = "forbid"
