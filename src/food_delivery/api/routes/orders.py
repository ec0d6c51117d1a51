from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from food_delivery.api.deps import get_caller
from food_delivery.crud.driver import get_driver_by_user_id
from food_delivery.crud.order import create_order, get_order_by_id, get_orders, load_order_for_transition
from food_delivery.db.session import get_async_session
from food_delivery.models import OrderStatusEnum, RoleEnum
from food_delivery.schemas.order import DriverAssign, OrderCreate, OrderRead, OrderStatusUpdate
from food_delivery.services.lifecycle import OrderLifecycleManager
from food_delivery.services.policy import Caller, can_view_order


router = APIRouter(prefix="/orders", tags=["orders"])


def parse_statuses(status: Optional[str]) -> List[OrderStatusEnum]:
    """
    'ready_for_pickup,out_for_delivery' -> [OrderStatusEnum.ready_for_pickup, OrderStatusEnum.out_for_delivery]
    """
    if not status:
        return []
    try:
        return [OrderStatusEnum(s.strip()) for s in status.split(",") if s.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status filter: {status}")


@router.get("/", response_model=List[OrderRead])
async def list_orders(
    status: Optional[str] = Query(None, description="Фильтр по статусу (несколько через запятую)"),
    restaurant_id: Optional[int] = Query(None, description="Фильтр по ресторану"),
    limit: Optional[int] = Query(None, ge=1, description="Количество записей для вывода"),
    offset: Optional[int] = Query(None, ge=0, description="Смещение для пагинации"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Возвращает список заказов.
    Клиент видит только свои заказы, водитель видит назначенные ему, админ видит все.
    """
    customer_id = None
    driver_id = None

    if caller.role == RoleEnum.customer:
        customer_id = caller.id
    elif caller.role == RoleEnum.driver:
        driver = await get_driver_by_user_id(db, caller.id)
        if not driver:
            raise HTTPException(status_code=404, detail="Driver record not found")
        driver_id = driver.id

    orders = await get_orders(
        db,
        customer_id=customer_id,
        restaurant_id=restaurant_id,
        driver_id=driver_id,
        statuses=parse_statuses(status),
        limit=limit,
        offset=offset,
    )
    return [OrderRead.from_orm_with_name(o) for o in orders]


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: int = Path(..., description="ID заказа"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Возвращает детализацию заказа по id: позиции и историю статусов.
    """
    snapshot = await load_order_for_transition(db, order_id)
    if not snapshot:
        raise HTTPException(status_code=404, detail="Order not found")
    if not can_view_order(caller, snapshot):
        raise HTTPException(status_code=403, detail="Not authorized to view this order")

    order = await get_order_by_id(db, order_id)
    return OrderRead.from_orm_with_name(order)


@router.post("/", response_model=OrderRead, status_code=201)
async def create_order_endpoint(
    order_in: OrderCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Клиент оформляет заказ. Статус pending, первая запись в истории создаётся вместе с заказом.
    """
    if caller.role != RoleEnum.customer:
        raise HTTPException(status_code=403, detail="Only customers can place orders")

    try:
        order = await create_order(db, order_in, customer_id=caller.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return OrderRead.from_orm_with_name(order)


@router.put("/{order_id}/status", response_model=OrderRead)
async def update_order_status_endpoint(
    order_in: OrderStatusUpdate,
    order_id: int = Path(..., description="ID заказа"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Смена статуса заказа (и, опционально, назначение водителя).
    Ошибки жизненного цикла превращаются в ответы обработчиком из api/errors.py.
    """
    manager = OrderLifecycleManager(db)
    order = await manager.transition(
        order_id,
        order_in.status,
        caller,
        driver_id=order_in.driver_id,
        notes=order_in.notes,
    )
    return OrderRead.from_orm_with_name(order)


@router.put("/{order_id}/assign-driver", response_model=OrderRead)
async def assign_driver_endpoint(
    order_in: DriverAssign,
    order_id: int = Path(..., description="ID заказа"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Назначение водителя на заказ, готовый к выдаче.
    """
    manager = OrderLifecycleManager(db)
    order = await manager.assign_driver(order_id, order_in.driver_id, caller)
    return OrderRead.from_orm_with_name(order)
