from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, condecimal


class DriverRead(BaseModel):
    id: int
    user_id: int
    full_name: Optional[str] = None
    vehicle_type: str
    license_plate: str
    is_available: bool
    current_latitude: Optional[Decimal] = None
    current_longitude: Optional[Decimal] = None

    @classmethod
    def from_orm_with_name(cls, driver):
        user = getattr(driver, "user", None)
        return cls(
            id=driver.id,
            user_id=driver.user_id,
            full_name=user.full_name if user else None,
            vehicle_type=driver.vehicle_type,
            license_plate=driver.license_plate,
            is_available=driver.is_available,
            current_latitude=driver.current_latitude,
            current_longitude=driver.current_longitude,
        )

    class Config:
        from_attributes = True


class DriverAvailabilityUpdate(BaseModel):
    is_available: bool


class DriverLocationUpdate(BaseModel):
    latitude: condecimal(ge=-90, le=90, max_digits=10, decimal_places=6)
    longitude: condecimal(ge=-180, le=180, max_digits=10, decimal_places=6)

    class Config:
        extra = "forbid"
