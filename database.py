"""
Key-value store handles backing the portal.

Every collection is one JSON blob under a namespaced key. A handle is opened
once at startup with ``open_store`` and passed to whatever needs it.
"""
from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import structlog
from pymongo import MongoClient

import config
from errors import StoreError
from schemas import Brand, Product, StockStatus, StoredUser, UserRole
from security import hash_password

logger = structlog.get_logger(__name__)

USERS = "users"
BRANDS = "brands"
PRODUCTS = "products"
ORDERS = "orders"
SESSION = "session"

COLLECTIONS = (USERS, BRANDS, PRODUCTS, ORDERS)


class Store(ABC):
    """Namespaced string store. Missing keys read as ``None``."""

    def __init__(self, namespace: str = config.STORE_NAMESPACE):
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def close(self) -> None:
        pass


class MemoryStore(Store):
    def __init__(self, namespace: str = config.STORE_NAMESPACE):
        super().__init__(namespace)
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self._data[self._key(key)] = value

    def delete(self, key: str) -> None:
        self._data.pop(self._key(key), None)


class JsonFileStore(Store):
    """One ``<namespace><key>.json`` file per key inside ``directory``."""

    def __init__(self, directory, namespace: str = config.STORE_NAMESPACE):
        super().__init__(namespace)
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{self._key(key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        # temp name is unique per call; concurrent writers each replace atomically
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=self.directory, prefix=f"{path.stem}.",
                                         suffix=".tmp", delete=False) as tmp:
            tmp.write(value)
        os.replace(tmp.name, path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class MongoStore(Store):
    """Keeps each key as ``{"_id": key, "value": text}`` in one collection."""

    def __init__(self, db, namespace: str = config.STORE_NAMESPACE, collection: str = "kv", client=None):
        super().__init__(namespace)
        self.collection = db[collection]
        self._client = client

    def get(self, key: str) -> Optional[str]:
        doc = self.collection.find_one({"_id": self._key(key)})
        if not doc:
            return None
        return doc.get("value")

    def set(self, key: str, value: str) -> None:
        self.collection.update_one({"_id": self._key(key)}, {"$set": {"value": value}}, upsert=True)

    def delete(self, key: str) -> None:
        self.collection.delete_one({"_id": self._key(key)})

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


def open_store(url: str = config.DATABASE_URL, namespace: str = config.STORE_NAMESPACE) -> Store:
    """Open a store handle from a ``memory://``, ``file://`` or ``mongodb://`` URL."""
    if url.startswith("memory://"):
        store: Store = MemoryStore(namespace)
    elif url.startswith("file://"):
        store = JsonFileStore(url[len("file://"):], namespace)
    elif url.startswith(("mongodb://", "mongodb+srv://")):
        client = MongoClient(url)
        store = MongoStore(client[config.DATABASE_NAME], namespace, client=client)
    else:
        raise StoreError("Storage is not configured correctly", internal_details=f"unsupported store url scheme: {url.split(':', 1)[0]}")
    logger.info("store_opened", backend=type(store).__name__, namespace=namespace)
    return store


# ----------------------- Seed Data -----------------------
SEED_PASSWORD = "password123"

DEMO_USERS = [
    {
        "id": "admin-1",
        "username": "admin",
        "role": UserRole.ADMIN,
        "full_name": "System Administrator",
        "discount_tier": 1.0,
        "is_active": True,
    },
    {
        "id": "user-1",
        "username": "doctor",
        "role": UserRole.USER,
        "full_name": "Dr. Sarah Smith",
        "clinic_name": "Elite Aesthetics",
        "discount_tier": 0.85,
        "is_active": True,
    },
]

DEMO_BRANDS = [
    {
        "id": "b-1",
        "name": "LuminaTox",
        "description": "Premium Botulinum Toxin Type A for superior smoothing.",
        "origin_country": "South Korea",
        "certifications": ["FDA Approved", "CE Certified"],
        "image_url": "https://picsum.photos/id/10/800/600",
    },
    {
        "id": "b-2",
        "name": "VelourFill",
        "description": "Hyaluronic Acid fillers with advanced cross-linking technology.",
        "origin_country": "France",
        "certifications": ["CE Certified", "ISO 13485"],
        "image_url": "https://picsum.photos/id/20/800/600",
    },
]

DEMO_PRODUCTS = [
    {
        "id": "p-1",
        "brand_id": "b-1",
        "name": "LuminaTox 100U",
        "specs": "100 Units / Vial",
        "description": "Standard vial for glabellar lines.",
        "base_price": 150000,
        "image_url": "https://picsum.photos/id/30/400/400",
        "stock_status": StockStatus.IN_STOCK,
    },
    {
        "id": "p-2",
        "brand_id": "b-1",
        "name": "LuminaTox 200U",
        "specs": "200 Units / Vial",
        "description": "Larger volume for body contouring applications.",
        "base_price": 280000,
        "image_url": "https://picsum.photos/id/31/400/400",
        "stock_status": StockStatus.LOW_STOCK,
    },
    {
        "id": "p-3",
        "brand_id": "b-2",
        "name": "VelourFill Deep",
        "specs": "2 x 1.1ml Syringes",
        "description": "Ideal for nasolabial folds and deep wrinkles.",
        "base_price": 120000,
        "image_url": "https://picsum.photos/id/40/400/400",
        "stock_status": StockStatus.IN_STOCK,
    },
    {
        "id": "p-4",
        "brand_id": "b-2",
        "name": "VelourFill Kiss",
        "specs": "1 x 1.1ml Syringe",
        "description": "Designed specifically for lip augmentation.",
        "base_price": 95000,
        "image_url": "https://picsum.photos/id/41/400/400",
        "stock_status": StockStatus.IN_STOCK,
    },
]


def _dump(models) -> str:
    return json.dumps([m.model_dump(mode="json") for m in models])


def seed_store(store: Store) -> list:
    """Write fixture data for every collection whose key is absent.

    Returns the names of the collections that were seeded.
    """
    seeded = []
    if store.get(USERS) is None:
        users = [StoredUser(**u, password_hash=hash_password(SEED_PASSWORD)) for u in DEMO_USERS]
        store.set(USERS, _dump(users))
        seeded.append(USERS)
    if store.get(BRANDS) is None:
        store.set(BRANDS, _dump(Brand(**b) for b in DEMO_BRANDS))
        seeded.append(BRANDS)
    if store.get(PRODUCTS) is None:
        store.set(PRODUCTS, _dump(Product(**p) for p in DEMO_PRODUCTS))
        seeded.append(PRODUCTS)
    if seeded:
        logger.info("store_seeded", collections=seeded)
    return seeded
