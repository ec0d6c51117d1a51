from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from food_delivery.models import Driver, Order, OrderStatusEnum

ACTIVE_DELIVERY_STATUSES = (OrderStatusEnum.ready_for_pickup, OrderStatusEnum.out_for_delivery)


async def get_driver(db: AsyncSession, driver_id: int) -> Optional[Driver]:
    return await db.get(Driver, driver_id)


async def get_driver_by_user_id(db: AsyncSession, user_id: int) -> Optional[Driver]:
    result = await db.execute(
        select(Driver).where(Driver.user_id == user_id).options(selectinload(Driver.user))
    )
    return result.scalars().first()


async def is_driver_available(db: AsyncSession, driver_id: int) -> bool:
    """
    Водитель существует и свободен. Это только предварительная проверка:
    окончательно занятость проверяется в claim_driver внутри транзакции перехода.
    """
    result = await db.execute(select(Driver.is_available).where(Driver.id == driver_id))
    is_available = result.scalar_one_or_none()
    return bool(is_available)


async def list_drivers(db: AsyncSession) -> List[Driver]:
    result = await db.execute(select(Driver).options(selectinload(Driver.user)).order_by(Driver.id))
    return result.scalars().all()


async def list_available_drivers(db: AsyncSession) -> List[Driver]:
    result = await db.execute(
        select(Driver)
        .where(Driver.is_available.is_(True))
        .options(selectinload(Driver.user))
        .order_by(Driver.id)
    )
    return result.scalars().all()


async def claim_driver(db: AsyncSession, driver_id: int) -> bool:
    """
    Атомарно занимает водителя: is_available true -> false.
    Возвращает False, если водитель уже занят (или его нет).
    Коммит делает вызывающий.
    """
    result = await db.execute(
        update(Driver)
        .where(Driver.id == driver_id, Driver.is_available.is_(True))
        .values(is_available=False)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_driver(db: AsyncSession, driver_id: int) -> None:
    await db.execute(
        update(Driver)
        .where(Driver.id == driver_id)
        .values(is_available=True)
        .execution_options(synchronize_session=False)
    )


async def count_active_deliveries(db: AsyncSession, driver_id: int) -> int:
    result = await db.execute(
        select(func.count(Order.id)).where(
            Order.driver_id == driver_id,
            Order.status.in_(ACTIVE_DELIVERY_STATUSES),
        )
    )
    return result.scalar_one()


async def update_driver_availability(db: AsyncSession, driver: Driver, is_available: bool) -> Driver:
    """
    Водитель сам выходит на линию или уходит с неё.
    Пока за водителем числится активная доставка, флагом управляет заказ:
    водитель занят до delivered/cancelled и освобождается автоматически.
    """
    if await count_active_deliveries(db, driver.id):
        raise ValueError("Availability cannot change during an active delivery")

    driver.is_available = is_available
    await db.commit()
    return driver


async def update_driver_location(
    db: AsyncSession, driver: Driver, latitude: Decimal, longitude: Decimal
) -> Driver:
    """Последние координаты водителя. Маршруты и ETA здесь не считаются."""
    driver.current_latitude = latitude
    driver.current_longitude = longitude
    await db.commit()
    return driver
