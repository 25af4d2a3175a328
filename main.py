import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError

import auth
import cart
import config
from checkout import CheckoutCoordinator
from database import AccountStore, CatalogStore, OrderStore, ensure_indexes, get_db
from errors import (
    AuthenticationError,
    DuplicateEmailError,
    InsufficientStockError,
    NotFoundError,
    PaymentError,
    ShopError,
    ValidationError,
)
from payments import PaymentGateway, get_payment_gateway
from schemas import (
    ApiModel,
    AuthResponse,
    CartLineOut,
    CheckoutResponse,
    OrderOut,
    Product as ProductSchema,
    ProductOut,
    UserOut,
)

config.configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_indexes(get_db())
        logger.info("MongoDB connected")
    except PyMongoError as e:
        logger.error("MongoDB connection error: %s", e)
    yield


app = FastAPI(title="ShopHub API", lifespan=lifespan)

app.add_middleware(GZipMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.CORS_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    client = request.client.host if request.client else "-"
    logger.info(
        '%s "%s %s" %s %.1fms',
        client, request.method, request.url.path, response.status_code, elapsed_ms,
    )
    return response


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


# Errors

ERROR_STATUS_CODES: Dict[type, int] = {
    ValidationError: 400,
    DuplicateEmailError: 400,
    AuthenticationError: 401,
    NotFoundError: 404,
    InsufficientStockError: 409,
    PaymentError: 502,
}


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    """Map ShopError subclasses to HTTP responses."""
    status_code = next(
        (ERROR_STATUS_CODES[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS_CODES),
        500,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# Dependencies

def get_checkout_coordinator(
    db: Database = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> CheckoutCoordinator:
    return CheckoutCoordinator(CatalogStore(db), OrderStore(db), AccountStore(db), gateway)


# Routes
@app.get("/")
def read_root():
    return {"message": "ShopHub API running"}


@app.get("/health")
def health(db: Database = Depends(get_db)):
    response = {
        "backend": "running",
        "database": "not available",
        "database_name": config.DATABASE_NAME,
        "collections": [],
    }
    try:
        response["collections"] = db.list_collection_names()
        response["database"] = "connected"
    except PyMongoError as e:
        response["database"] = f"error: {str(e)[:80]}"
    return response


# Products
class ProductIn(ApiModel):
    name: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    category: Optional[str] = None
    stock: int = Field(default=0, ge=0)
    image: Optional[str] = None


class ProductUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=0)
    image: Optional[str] = None


class ReviewIn(ApiModel):
    user_id: str
    comment: Optional[str] = None
    rating: float = Field(..., ge=0, le=5)


@app.get("/products", response_model=List[ProductOut])
def list_products(db: Database = Depends(get_db)):
    return CatalogStore(db).find_all()


@app.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: Database = Depends(get_db)):
    return CatalogStore(db).find_by_id(product_id)


@app.post("/products", response_model=ProductOut, status_code=201)
def create_product(data: ProductIn, db: Database = Depends(get_db)):
    catalog = CatalogStore(db)
    product = ProductSchema(**data.model_dump())
    product_id = catalog.create(product.model_dump())
    return catalog.find_by_id(product_id)


@app.put("/products/{product_id}", response_model=ProductOut)
def update_product(product_id: str, data: ProductUpdate, db: Database = Depends(get_db)):
    update_dict = data.model_dump(exclude_unset=True)
    if not update_dict:
        raise ValidationError("No fields to update")
    return CatalogStore(db).update(product_id, update_dict)


@app.post("/products/{product_id}/reviews", response_model=ProductOut, status_code=201)
def add_review(product_id: str, data: ReviewIn, db: Database = Depends(get_db)):
    return CatalogStore(db).add_review(product_id, data.model_dump())


# Checkout and orders
class CheckoutItem(ApiModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class CheckoutIn(ApiModel):
    items: List[CheckoutItem]
    email: EmailStr
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    shipping_address: Optional[Dict[str, Any]] = None


@app.post("/checkout", response_model=CheckoutResponse)
def checkout(payload: CheckoutIn, coordinator: CheckoutCoordinator = Depends(get_checkout_coordinator)):
    result = coordinator.checkout(
        [item.model_dump() for item in payload.items],
        email=payload.email,
        amount=payload.amount,
        shipping_address=payload.shipping_address,
    )
    return CheckoutResponse(client_secret=result.client_secret, order_id=result.order_id)


@app.get("/orders/{user_id}", response_model=List[OrderOut])
def list_orders(user_id: str, db: Database = Depends(get_db)):
    return OrderStore(db).find_for_user(user_id)


@app.post("/webhook")
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    coordinator: CheckoutCoordinator = Depends(get_checkout_coordinator),
):
    event = gateway.parse_event(await request.body(), stripe_signature)
    await run_in_threadpool(coordinator.handle_payment_event, event)
    return {"received": True}


# Auth
class RegisterInput(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    name: Optional[str] = None


class LoginInput(ApiModel):
    email: EmailStr
    password: str


@app.post("/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterInput, db: Database = Depends(get_db)):
    token, user = auth.register(AccountStore(db), payload.email, payload.password, payload.name)
    return AuthResponse(token=token, user=UserOut(**user))


@app.post("/login", response_model=AuthResponse)
def login(payload: LoginInput, db: Database = Depends(get_db)):
    token, user = auth.login(AccountStore(db), payload.email, payload.password)
    return AuthResponse(token=token, user=UserOut(**user))


@app.get("/me", response_model=UserOut)
def me(current_user: dict = Depends(auth.get_current_user)):
    return current_user


# Cart
class CartItemIn(ApiModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


@app.get("/cart/{user_id}", response_model=List[CartLineOut])
def get_cart(user_id: str, db: Database = Depends(get_db)):
    return AccountStore(db).find_by_id(user_id).get("cart", [])


@app.post("/cart/{user_id}", response_model=List[CartLineOut])
def add_to_cart(user_id: str, item: CartItemIn, db: Database = Depends(get_db)):
    accounts = AccountStore(db)
    user = accounts.find_by_id(user_id)
    # ensure product exists
    CatalogStore(db).find_by_id(item.product_id)
    updated = cart.add_or_increment(user.get("cart", []), item.product_id, item.quantity)
    return accounts.save_cart(user_id, updated)


@app.delete("/cart/{user_id}/{product_id}", response_model=List[CartLineOut])
def remove_from_cart(user_id: str, product_id: str, db: Database = Depends(get_db)):
    accounts = AccountStore(db)
    user = accounts.find_by_id(user_id)
    return accounts.save_cart(user_id, cart.remove(user.get("cart", []), product_id))


@app.delete("/cart/{user_id}", response_model=List[CartLineOut])
def clear_cart(user_id: str, db: Database = Depends(get_db)):
    return AccountStore(db).save_cart(user_id, [])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
