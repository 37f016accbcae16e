"""
Runtime settings, read once from the environment at import time.
"""
import os

DATABASE_URL = os.getenv("DATABASE_URL", "memory://")
DATABASE_NAME = os.getenv("DATABASE_NAME", "aesthetix")
STORE_NAMESPACE = os.getenv("STORE_NAMESPACE", "aesthetix_")

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_EXPIRY_HOURS = int(os.getenv("JWT_EXPIRY_HOURS", "12"))

PASSWORD_HASH_ITERATIONS = int(os.getenv("PASSWORD_HASH_ITERATIONS", "260000"))

SEED_ON_START = os.getenv("SEED_ON_START", "1") == "1"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "1") == "1"

PORT = int(os.getenv("PORT", "8000"))
