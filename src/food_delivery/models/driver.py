from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from ..db.base import Base


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    vehicle_type = Column(String(50), nullable=False)
    license_plate = Column(String(20), nullable=False)
    # False, пока водитель везёт заказ или вышел с линии
    is_available = Column(Boolean, default=True, nullable=False)
    current_latitude = Column(Numeric(10, 6), nullable=True)
    current_longitude = Column(Numeric(10, 6), nullable=True)

    # связи
    user = relationship("User", back_populates="driver")
    orders = relationship("Order", back_populates="driver")
