"""
Data access layer over the users, brands, products and orders collections.

Each call materializes the whole collection, mutates it in memory and writes
it back. Writes are last-writer-wins.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import List, Optional

import structlog

from database import BRANDS, ORDERS, PRODUCTS, USERS, Store
from errors import AccountExpiredError, InvalidCredentialError, InvalidTransitionError, NotFoundError
from schemas import Brand, OrderRequest, OrderStatus, Product, StoredUser, User
from security import hash_password, verify_password

logger = structlog.get_logger(__name__)


class PortalAPI:
    def __init__(self, store: Store):
        self.store = store

    # ----------------------- Helpers -----------------------
    def _load(self, key: str) -> list:
        raw = self.store.get(key)
        if raw is None:
            return []
        return json.loads(raw)

    def _save(self, key: str, models) -> None:
        self.store.set(key, json.dumps([m.model_dump(mode="json") for m in models]))

    @staticmethod
    def _upsert(items: list, record) -> list:
        for index, existing in enumerate(items):
            if existing.id == record.id:
                items[index] = record
                return items
        items.append(record)
        return items

    def _stored_users(self) -> List[StoredUser]:
        return [StoredUser(**u) for u in self._load(USERS)]

    # ----------------------- Auth -----------------------
    def authenticate(self, username: str, password: str, now: Optional[datetime] = None) -> Optional[User]:
        """Return the matching account without its secret, or None.

        Inactive accounts read as no match. An active account past its
        ``access_expires_at`` raises ``AccountExpiredError``.
        """
        user = next(
            (u for u in self._stored_users() if u.username == username and verify_password(password, u.password_hash)),
            None,
        )
        if user is None:
            logger.info("login_failed", username=username, reason="no_match")
            return None
        if not user.is_active:
            logger.info("login_failed", username=username, reason="inactive")
            return None
        if user.is_expired(now):
            logger.info("login_failed", username=username, reason="expired")
            raise AccountExpiredError()
        logger.info("login_succeeded", user_id=user.id)
        return user.public()

    def verify_login(self, username: str, password: str, now: Optional[datetime] = None) -> User:
        """Like ``authenticate`` but raises ``InvalidCredentialError`` instead of returning None."""
        user = self.authenticate(username, password, now)
        if user is None:
            raise InvalidCredentialError("Invalid credentials")
        return user

    # ----------------------- Brands -----------------------
    def list_brands(self) -> List[Brand]:
        return [Brand(**b) for b in self._load(BRANDS)]

    def get_brand(self, brand_id: str) -> Optional[Brand]:
        return next((b for b in self.list_brands() if b.id == brand_id), None)

    def upsert_brand(self, brand: Brand) -> None:
        self._save(BRANDS, self._upsert(self.list_brands(), brand))
        logger.info("brand_saved", brand_id=brand.id)

    # ----------------------- Products -----------------------
    def list_products(self, brand_id: Optional[str] = None) -> List[Product]:
        products = [Product(**p) for p in self._load(PRODUCTS)]
        if brand_id:
            return [p for p in products if p.brand_id == brand_id]
        return products

    def get_product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.list_products() if p.id == product_id), None)

    def upsert_product(self, product: Product) -> None:
        self._save(PRODUCTS, self._upsert(self.list_products(), product))
        logger.info("product_saved", product_id=product.id, brand_id=product.brand_id)

    def delete_product(self, product_id: str) -> None:
        self._save(PRODUCTS, [p for p in self.list_products() if p.id != product_id])
        logger.info("product_deleted", product_id=product_id)

    # ----------------------- Users -----------------------
    def list_users(self) -> List[User]:
        return [u.public() for u in self._stored_users()]

    def get_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.list_users() if u.id == user_id), None)

    def upsert_user(self, user: User, password: Optional[str] = None) -> None:
        """Overwrite the account wholesale.

        The stored password hash survives when ``password`` is omitted. Any
        ``password_hash`` carried by ``user`` itself is ignored; new secrets
        only come in through ``password``.
        """
        users = self._stored_users()
        existing = next((u for u in users if u.id == user.id), None)
        if password:
            password_hash = hash_password(password)
        else:
            password_hash = existing.password_hash if existing else None
        fields = user.model_dump(exclude={"password_hash"})
        self._save(USERS, self._upsert(users, StoredUser(**fields, password_hash=password_hash)))
        logger.info("user_saved", user_id=user.id, created=existing is None, password_changed=bool(password))

    # ----------------------- Orders -----------------------
    def list_orders(self) -> List[OrderRequest]:
        return [OrderRequest(**o) for o in self._load(ORDERS)]

    def list_orders_for_user(self, user_id: str) -> List[OrderRequest]:
        return [o for o in self.list_orders() if o.user_id == user_id]

    def get_order(self, order_id: str) -> Optional[OrderRequest]:
        return next((o for o in self.list_orders() if o.id == order_id), None)

    def create_order(self, order: OrderRequest) -> None:
        orders = self.list_orders()
        orders.insert(0, order)
        self._save(ORDERS, orders)
        logger.info("order_created", order_id=order.id, user_id=order.user_id, items=len(order.items))

    def update_order_status(self, order_id: str, status: OrderStatus) -> OrderRequest:
        orders = self.list_orders()
        order = next((o for o in orders if o.id == order_id), None)
        if order is None:
            raise NotFoundError("Order not found", internal_details=f"update_order_status on unknown id {order_id}")
        previous = order.status
        order.status = OrderStatus(status)
        self._save(ORDERS, orders)
        logger.info("order_status_updated", order_id=order_id, previous=previous.value, status=order.status.value)
        return order

    def advance_order(self, order_id: str, status: OrderStatus) -> OrderRequest:
        """Move an order along its lifecycle, refusing transitions it does not allow."""
        order = self.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        status = OrderStatus(status)
        if not order.status.can_transition_to(status):
            raise InvalidTransitionError(f"Cannot move order from {order.status.value} to {status.value}")
        return self.update_order_status(order_id, status)

    # ----------------------- Admin -----------------------
    def dashboard_stats(self) -> dict:
        return {
            "users": len(self._load(USERS)),
            "brands": len(self._load(BRANDS)),
            "products": len(self._load(PRODUCTS)),
            "pending_orders": sum(1 for o in self.list_orders() if o.status == OrderStatus.PENDING),
        }
