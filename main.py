from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

import config
from database import COLLECTIONS, Store, open_store, seed_store
from errors import AccountExpiredError, InvalidCredentialError, InvalidTransitionError, NotFoundError
from guard import ADMIN_AREA, Decision, Permission, authorize, roles_with
from logging_config import configure_logging
from portal import PortalAPI
from schemas import Brand, OrderStatus, Product, User, UserRole, build_order_request

logger = structlog.get_logger(__name__)

# ----------------------- Utils -----------------------
security = HTTPBearer(auto_error=False)


def create_token(user_id: str) -> str:
    exp = datetime.now(timezone.utc) + timedelta(hours=config.JWT_EXPIRY_HOURS)
    return jwt.encode({"sub": user_id, "exp": exp}, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_api(request: Request) -> PortalAPI:
    return request.app.state.api


def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    api: PortalAPI = Depends(get_api),
) -> Optional[User]:
    """Live account behind the bearer token, or None when there is no usable one."""
    if credentials is None:
        return None
    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    user = api.get_user(user_id)
    if user is None or not user.can_login():
        return None
    return user


def require_roles(roles=None):
    def dependency(identity: Optional[User] = Depends(get_identity)) -> User:
        decision = authorize(identity, roles)
        if decision is Decision.REDIRECT_LOGIN:
            raise HTTPException(status_code=401, detail="Not authenticated")
        if decision is Decision.REDIRECT_HOME:
            raise HTTPException(status_code=403, detail="Not allowed")
        return identity

    return dependency


signed_in = require_roles()
admin_only = require_roles(ADMIN_AREA)
can_request_orders = require_roles(roles_with(Permission.REQUEST_ORDER))


# ----------------------- Models -----------------------
class LoginBody(BaseModel):
    username: str
    password: str


class BrandBody(Brand):
    id: Optional[str] = None


class ProductBody(Product):
    id: Optional[str] = None


class UserBody(User):
    id: Optional[str] = None
    password: Optional[str] = None


class OrderCreateBody(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    notes: Optional[str] = None


class StatusBody(BaseModel):
    status: OrderStatus


# ----------------------- App -----------------------
def create_app(
    store: Optional[Store] = None,
    seed: bool = config.SEED_ON_START,
    configure_logs: bool = True,
) -> FastAPI:
    """Build the app around ``store``. Logging setup and seeding happen at startup."""
    store = store or open_store()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logs:
            configure_logging(log_level=config.LOG_LEVEL, json_format=config.LOG_JSON)
        if seed:
            seed_store(store)
        yield
        store.close()

    app = FastAPI(title="Aesthetix Distributor Portal API", lifespan=lifespan)
    app.state.store = store
    app.state.api = PortalAPI(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_routes(app)
    logger.info("app_created", store=type(store).__name__, seed_on_start=seed)
    return app


def register_routes(app: FastAPI) -> None:
    # ----------------------- Health -----------------------
    @app.get("/")
    def root():
        return {"message": "Aesthetix portal API running"}

    @app.get("/test")
    def test_store(request: Request):
        store = request.app.state.store
        response = {
            "backend": "✅ Running",
            "store": type(store).__name__,
            "database_url": config.DATABASE_URL.split(":", 1)[0],
            "collections": {},
        }
        try:
            for name in COLLECTIONS:
                response["collections"][name] = "✅ Present" if store.get(name) is not None else "❌ Empty"
        except Exception as e:
            response["store"] = f"❌ Error: {str(e)[:80]}"
        return response

    # ----------------------- Auth -----------------------
    @app.post("/auth/login")
    def login(body: LoginBody, api: PortalAPI = Depends(get_api)):
        try:
            user = api.verify_login(body.username, body.password)
        except InvalidCredentialError as e:
            raise HTTPException(status_code=401, detail=e.user_message)
        except AccountExpiredError as e:
            raise HTTPException(status_code=403, detail=e.user_message)
        return {"token": create_token(user.id), "user": user.model_dump(mode="json")}

    @app.get("/me")
    def me(user: User = Depends(signed_in)):
        return user.model_dump(mode="json")

    # ----------------------- Brands -----------------------
    @app.get("/brands")
    def list_brands(user: User = Depends(signed_in), api: PortalAPI = Depends(get_api)):
        return [b.model_dump(mode="json") for b in api.list_brands()]

    @app.get("/brands/{brand_id}")
    def get_brand(brand_id: str, user: User = Depends(signed_in), api: PortalAPI = Depends(get_api)):
        brand = api.get_brand(brand_id)
        if not brand:
            raise HTTPException(status_code=404, detail="Brand not found")
        return {
            **brand.model_dump(mode="json"),
            "products": [
                {**p.model_dump(mode="json"), "your_price": user.price_for(p.base_price)}
                for p in api.list_products(brand_id)
            ],
        }

    @app.put("/brands/{brand_id}")
    def save_brand(brand_id: str, body: BrandBody, user: User = Depends(admin_only), api: PortalAPI = Depends(get_api)):
        brand = Brand(**{**body.model_dump(), "id": brand_id})
        api.upsert_brand(brand)
        return brand.model_dump(mode="json")

    # ----------------------- Products -----------------------
    @app.get("/products")
    def list_products(brand_id: Optional[str] = None, user: User = Depends(signed_in), api: PortalAPI = Depends(get_api)):
        return [
            {**p.model_dump(mode="json"), "your_price": user.price_for(p.base_price)}
            for p in api.list_products(brand_id)
        ]

    @app.put("/products/{product_id}")
    def save_product(product_id: str, body: ProductBody, user: User = Depends(admin_only), api: PortalAPI = Depends(get_api)):
        if api.get_brand(body.brand_id) is None:
            raise HTTPException(status_code=400, detail="Unknown brand")
        product = Product(**{**body.model_dump(), "id": product_id})
        api.upsert_product(product)
        return product.model_dump(mode="json")

    @app.delete("/products/{product_id}")
    def delete_product(product_id: str, user: User = Depends(admin_only), api: PortalAPI = Depends(get_api)):
        api.delete_product(product_id)
        return {"ok": True}

    # ----------------------- Users -----------------------
    @app.get("/users")
    def list_users(user: User = Depends(admin_only), api: PortalAPI = Depends(get_api)):
        return [u.model_dump(mode="json") for u in api.list_users()]

    @app.put("/users/{user_id}")
    def save_user(user_id: str, body: UserBody, user: User = Depends(admin_only), api: PortalAPI = Depends(get_api)):
        taken = next((u for u in api.list_users() if u.username == body.username and u.id != user_id), None)
        if taken:
            raise HTTPException(status_code=400, detail="Username already taken")
        record = User(**{**body.model_dump(exclude={"password"}), "id": user_id})
        api.upsert_user(record, password=body.password)
        return record.model_dump(mode="json")

    # ----------------------- Orders -----------------------
    @app.get("/orders")
    def list_orders(user: User = Depends(signed_in), api: PortalAPI = Depends(get_api)):
        if user.role == UserRole.ADMIN:
            orders = api.list_orders()
        else:
            orders = api.list_orders_for_user(user.id)
        return [{**o.model_dump(mode="json"), "total": o.total} for o in orders]

    @app.post("/orders", status_code=201)
    def create_order(body: OrderCreateBody, user: User = Depends(can_request_orders), api: PortalAPI = Depends(get_api)):
        product = api.get_product(body.product_id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        order = build_order_request(user, product, body.quantity, notes=body.notes)
        api.create_order(order)
        return {**order.model_dump(mode="json"), "total": order.total}

    @app.patch("/orders/{order_id}/status")
    def update_order_status(order_id: str, body: StatusBody, user: User = Depends(admin_only), api: PortalAPI = Depends(get_api)):
        try:
            order = api.advance_order(order_id, body.status)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=e.user_message)
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=e.user_message)
        return order.model_dump(mode="json")

    # ----------------------- Admin -----------------------
    @app.get("/admin/stats")
    def admin_stats(user: User = Depends(admin_only), api: PortalAPI = Depends(get_api)):
        return api.dashboard_stats()


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
