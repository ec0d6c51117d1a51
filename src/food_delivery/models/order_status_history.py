from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum as SAEnum, func
from sqlalchemy.orm import relationship
from ..db.base import Base
from .order import OrderStatusEnum, utcnow


class OrderStatusHistory(Base):
    """
    Журнал смен статуса заказа. Строки только добавляются.
    """
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(SAEnum(OrderStatusEnum, name="order_status"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="status_history")
