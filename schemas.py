"""
Data Schemas for the Aesthetix distributor portal

Each Pydantic model corresponds to one collection in the key-value store.
Collections are kept as JSON arrays under the keys users, brands, products
and orders.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    SHIPPED = "SHIPPED"
    CANCELLED = "CANCELLED"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in ORDER_TRANSITIONS.get(self, ())


ORDER_TRANSITIONS = {
    OrderStatus.PENDING: (OrderStatus.APPROVED, OrderStatus.CANCELLED),
    OrderStatus.APPROVED: (OrderStatus.SHIPPED,),
}


class StockStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """Account as seen by callers. Never carries the password hash."""
    id: str
    username: str = Field(..., min_length=1)
    role: UserRole = UserRole.USER
    full_name: str
    clinic_name: Optional[str] = None
    discount_tier: float = Field(1.0, gt=0, description="1.0 = full price, 0.85 = 15% off")
    is_active: bool = True
    access_expires_at: Optional[datetime] = None

    @field_validator("access_expires_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.access_expires_at is None:
            return False
        return self.access_expires_at <= (now or utcnow())

    def can_login(self, now: Optional[datetime] = None) -> bool:
        return self.is_active and not self.is_expired(now)

    def price_for(self, base_price: int) -> int:
        """Quoted unit price for this account's discount tier."""
        return int(round(base_price * self.discount_tier))


class StoredUser(User):
    password_hash: Optional[str] = None

    def public(self) -> User:
        return User(**self.model_dump(exclude={"password_hash"}))


class Brand(BaseModel):
    id: str
    name: str
    description: str = ""
    origin_country: str = ""
    certifications: List[str] = Field(default_factory=list)
    image_url: str = ""


class Product(BaseModel):
    id: str
    brand_id: str
    name: str
    specs: str = Field("", description="Pack size, e.g. '2 x 1.1ml Syringes'")
    description: str = ""
    usage_notes: Optional[str] = None
    base_price: int = Field(..., ge=0)
    image_url: str = ""
    stock_status: StockStatus = StockStatus.IN_STOCK


class OrderItem(BaseModel):
    product_id: str
    product_name: str
    quantity: int = Field(..., ge=1)
    unit_price_at_request: int = Field(..., ge=0, description="Frozen at submission time")

    @property
    def subtotal(self) -> int:
        return self.quantity * self.unit_price_at_request


class OrderRequest(BaseModel):
    id: str
    user_id: str
    user_full_name: str
    clinic_name: Optional[str] = None
    items: List[OrderItem]
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    notes: Optional[str] = None

    @property
    def total(self) -> int:
        return sum(item.subtotal for item in self.items)


def build_order_request(user: User, product: Product, quantity: int, notes: Optional[str] = None) -> OrderRequest:
    """Quote request for a single product, priced at the requester's tier."""
    return OrderRequest(
        id=str(uuid.uuid4()),
        user_id=user.id,
        user_full_name=user.full_name,
        clinic_name=user.clinic_name,
        items=[
            OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price_at_request=user.price_for(product.base_price),
            )
        ],
        status=OrderStatus.PENDING,
        notes=notes,
    )
