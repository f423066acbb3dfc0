from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from app.core.config import Config
from app.core.logging import setup_logging
from app.db.database import init_db
from app.exceptions import (
    create_exception_handler,
    validation_exception_handler,
    AccessTokenRequiredException,
    ConflictException,
    DiscountCapReachedException,
    InvalidInputException,
    InvalidStateException,
    InvalidTokenException,
    PermissionRequiredException,
    ResourceNotFoundException,
    RuleUnusableException,
)
from app.middleware.auth_middleware import CustomAuthMiddleWare
from app.middleware.request_logging import RequestLoggingMiddleware
from app.routers.orders import router as orders_router
from app.routers.promotions import router as promotions_router
from app.routers.vouchers import router as vouchers_router

setup_logging(Config.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


api_version = "v1"
swagger_docs_url = f"/api/{api_version}/docs"
redoc_docs_url = f"/api/{api_version}/redoc"
openapi_url = f"/api/{api_version}/openapi.json"

app = FastAPI(
    docs_url=swagger_docs_url,
    redoc_url=redoc_docs_url,
    openapi_url=openapi_url,
    title="Voucher & Promotion Discount API",
    description="Applies vouchers and promotions to orders, with a cap on the total discount per order.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['GET', 'POST', 'PATCH', 'DELETE'],
    allow_headers=["*"],
)

# Auth runs before CORS; request logging wraps everything (order matters!)
app.add_middleware(CustomAuthMiddleWare)
app.add_middleware(RequestLoggingMiddleware)

# Register endpoints
app.include_router(orders_router, prefix=f'/api/{api_version}/orders', tags=['Orders'])
app.include_router(vouchers_router, prefix=f'/api/{api_version}/vouchers', tags=['Vouchers'])
app.include_router(promotions_router, prefix=f'/api/{api_version}/promotions', tags=['Promotions'])


@app.get("/")
async def root():
    return {
        "message": "Voucher & Promotion Discount API",
        "version": "1.0.0",
        "docs": swagger_docs_url,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Register custom exceptions

# Auth-related exception handlers
app.add_exception_handler(AccessTokenRequiredException, create_exception_handler(401))
app.add_exception_handler(InvalidTokenException, create_exception_handler(401))
app.add_exception_handler(PermissionRequiredException, create_exception_handler(403))

# Discount and order exception handlers (subclasses resolve to their base kind)
app.add_exception_handler(ResourceNotFoundException, create_exception_handler(404))
app.add_exception_handler(InvalidInputException, create_exception_handler(400))
app.add_exception_handler(ConflictException, create_exception_handler(409))
app.add_exception_handler(InvalidStateException, create_exception_handler(400))
app.add_exception_handler(RuleUnusableException, create_exception_handler(400))
app.add_exception_handler(DiscountCapReachedException, create_exception_handler(400))

app.add_exception_handler(RequestValidationError, validation_exception_handler)
