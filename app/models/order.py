from decimal import Decimal

from sqlalchemy import Column, Enum, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..db.base import Base
from ..enums import OrderStatus
from ..models.base import TimeStampMixin, generate_uuid


class Order(Base, TimeStampMixin):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    customer_id = Column(String(64), nullable=False, index=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    total_discount = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    final_total = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING, index=True)
    version = Column(Integer, nullable=False, default=0)

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    discounts = relationship(
        "OrderDiscount",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderDiscount.applied_at",
    )


    def __repr__(self):
        return f'<Order(id={self.id}, status={self.status}, total_discount={self.total_discount})>'
