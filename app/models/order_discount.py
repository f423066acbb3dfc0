from sqlalchemy import Column, DateTime, Enum, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.base import Base
from ..enums import AppliedDiscountType
from ..models.base import generate_uuid
from ..utils.dates import utcnow


class OrderDiscount(Base):
    """
    A voucher or promotion applied to an order.

    The rule is referenced by code only, so the record keeps its amount even if the
    rule is modified later.
    """
    __tablename__ = "order_discounts"
    __table_args__ = (
        UniqueConstraint("order_id", "discount_code", name="uq_order_discounts_order_code"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    discount_type = Column(Enum(AppliedDiscountType), nullable=False)
    discount_code = Column(String(20), nullable=False, index=True)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    applied_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    order = relationship("Order", back_populates="discounts")


    def __repr__(self):
        return f'<OrderDiscount(order_id={self.order_id}, code={self.discount_code}, amount={self.discount_amount})>'
