from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, Numeric, String

from ..db.base import Base
from ..enums import DiscountType
from ..models.base import SoftDeleteMixin, TimeStampMixin, generate_uuid


class Voucher(Base, TimeStampMixin, SoftDeleteMixin):
    __tablename__ = "vouchers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    code = Column(String(20), nullable=False, unique=True, index=True)
    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    expiration_date = Column(DateTime, nullable=False, index=True)
    usage_limit = Column(Integer, nullable=False)
    current_usage = Column(Integer, nullable=False, default=0)
    min_order_value = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    version = Column(Integer, nullable=False, default=0)


    def __repr__(self):
        return f'<Voucher(code={self.code}, usage={self.current_usage}/{self.usage_limit}, version={self.version})>'
