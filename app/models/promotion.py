from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, JSON, Numeric, String

from ..db.base import Base
from ..enums import DiscountType
from ..models.base import SoftDeleteMixin, TimeStampMixin, generate_uuid


class Promotion(Base, TimeStampMixin, SoftDeleteMixin):
    __tablename__ = "promotions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    code = Column(String(20), nullable=False, unique=True, index=True)
    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    expiration_date = Column(DateTime, nullable=False, index=True)
    usage_limit = Column(Integer, nullable=False)
    current_usage = Column(Integer, nullable=False, default=0)
    eligible_categories = Column(JSON, nullable=False, default=list)
    eligible_items = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    version = Column(Integer, nullable=False, default=0)


    def __repr__(self):
        return f'<Promotion(code={self.code}, usage={self.current_usage}/{self.usage_limit}, version={self.version})>'
