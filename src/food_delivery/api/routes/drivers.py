from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from food_delivery.api.deps import get_caller
from food_delivery.crud.driver import (
    get_driver_by_user_id,
    list_available_drivers,
    list_drivers,
    update_driver_availability,
    update_driver_location,
)
from food_delivery.db.session import get_async_session
from food_delivery.models import Driver, RoleEnum
from food_delivery.schemas.driver import DriverAvailabilityUpdate, DriverLocationUpdate, DriverRead
from food_delivery.services.policy import Caller


router = APIRouter(prefix="/drivers", tags=["drivers"])


def require_admin(caller: Caller) -> None:
    if caller.role != RoleEnum.admin:
        raise HTTPException(status_code=403, detail="Not authorized")


async def get_own_driver(caller: Caller, db: AsyncSession) -> Driver:
    """Запись водителя для вызывающего с ролью driver."""
    if caller.role != RoleEnum.driver:
        raise HTTPException(status_code=403, detail="Not authorized")

    driver = await get_driver_by_user_id(db, caller.id)
    if not driver:
        raise HTTPException(status_code=404, detail="Driver record not found")
    return driver


@router.get("/", response_model=List[DriverRead])
async def list_drivers_endpoint(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Все водители с именами пользователей (только админ).
    """
    require_admin(caller)
    drivers = await list_drivers(db)
    return [DriverRead.from_orm_with_name(d) for d in drivers]


@router.get("/available", response_model=List[DriverRead])
async def list_available_drivers_endpoint(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Свободные водители для назначения на заказ (только админ).
    """
    require_admin(caller)
    drivers = await list_available_drivers(db)
    return [DriverRead.from_orm_with_name(d) for d in drivers]


@router.put("/location", response_model=DriverRead)
async def update_location_endpoint(
    body: DriverLocationUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_async_session),
):
    driver = await get_own_driver(caller, db)
    driver = await update_driver_location(db, driver, body.latitude, body.longitude)
    return DriverRead.from_orm_with_name(driver)


@router.put("/availability", response_model=DriverRead)
async def update_availability_endpoint(
    body: DriverAvailabilityUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_async_session),
):
    driver = await get_own_driver(caller, db)

    try:
        driver = await update_driver_availability(db, driver, body.is_available)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return DriverRead.from_orm_with_name(driver)
