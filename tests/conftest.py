"""Shared fixtures for the discount API tests.

Every test gets its own SQLite file database (via aiosqlite) with the schema
created from the ORM metadata. API tests run the FastAPI app in-process over
httpx's ASGI transport with ``get_db`` pointed at that database.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import timedelta
from decimal import Decimal
from typing import Dict

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app import app
from app.core.config import Config
from app.core.dependencies import get_db
from app.db.base import Base
from app.enums import DiscountType
from app.models import Promotion, Voucher
from app.schemas.order import OrderCreate
from app.services.order_service import OrderService
from app.utils.dates import utcnow


CUSTOMER_ID = "customer-1"
OTHER_CUSTOMER_ID = "customer-2"
ADMIN_ID = "admin-1"

# Laptop 100.00 (electronics) + 2 x T-Shirt 25.00 (clothing) = 150.00
DEFAULT_ITEMS = [
    {"product_id": "laptop-1", "product_name": "Laptop", "category": "electronics", "unit_price": "100.00", "quantity": 1},
    {"product_id": "shirt-1", "product_name": "T-Shirt", "category": "clothing", "unit_price": "25.00", "quantity": 2},
]


def make_token(sub: str = CUSTOMER_ID, role: str = "CUSTOMER", expires_in: timedelta = timedelta(hours=1)) -> str:
    claims = {"sub": sub, "email": f"{sub}@example.com", "role": role, "exp": utcnow() + expires_in}
    return jwt.encode(claims, Config.JWT_SECRET, algorithm=Config.JWT_ALGORITHM)


def auth_headers(sub: str = CUSTOMER_ID, role: str = "CUSTOMER") -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub, role)}"}


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'discounts.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def customer_headers() -> Dict[str, str]:
    return auth_headers(CUSTOMER_ID, "CUSTOMER")


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return auth_headers(ADMIN_ID, "ADMIN")


@pytest.fixture
def create_voucher(db):
    """Insert a voucher directly, bypassing service validation (for expired or exhausted fixtures)."""

    async def _create(**overrides) -> Voucher:
        values = {
            "code": "SAVE10",
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("10"),
            "expiration_date": utcnow() + timedelta(days=30),
            "usage_limit": 100,
            "is_active": True,
        }
        values.update(overrides)
        voucher = Voucher(**values)
        db.add(voucher)
        await db.commit()
        await db.refresh(voucher)
        return voucher

    return _create


@pytest.fixture
def create_promotion(db):
    """Insert a promotion directly, bypassing service validation."""

    async def _create(**overrides) -> Promotion:
        values = {
            "code": "CLOTHES20",
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("20"),
            "expiration_date": utcnow() + timedelta(days=30),
            "usage_limit": 100,
            "eligible_categories": ["clothing"],
            "eligible_items": [],
            "is_active": True,
        }
        values.update(overrides)
        promotion = Promotion(**values)
        db.add(promotion)
        await db.commit()
        await db.refresh(promotion)
        return promotion

    return _create


@pytest.fixture
def create_order(db):
    async def _create(items=None, customer_id: str = CUSTOMER_ID):
        order_data = OrderCreate(items=items or DEFAULT_ITEMS)
        return await OrderService().create_order(customer_id, order_data, db)

    return _create
