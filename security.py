"""
Password hashing helpers.

Hashes are stored as ``pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>``.
"""
import hashlib
import hmac
import secrets
from typing import Optional

import config

ALGORITHM = "pbkdf2_sha256"


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, iterations)


def hash_password(password: str, iterations: Optional[int] = None) -> str:
    iterations = iterations or config.PASSWORD_HASH_ITERATIONS
    salt = secrets.token_bytes(16)
    digest = _derive(password, salt, iterations)
    return f"{ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: Optional[str]) -> bool:
    """Constant-time check of ``password`` against a stored hash."""
    if not encoded:
        return False
    try:
        algorithm, iterations, salt_hex, digest_hex = encoded.split("$")
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != ALGORITHM:
        return False
    return hmac.compare_digest(_derive(password, salt, rounds), expected)
