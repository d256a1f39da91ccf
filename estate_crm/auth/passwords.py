# =============================================================================
# Password Hashing
# =============================================================================
#
# PBKDF2-HMAC-SHA256 with a random 16-byte salt and a 256-bit derived key.
# Stored as "hex(salt):hex(key)". The iteration count is not part of the
# stored value, so changing it invalidates existing hashes.
#
# =============================================================================

from __future__ import annotations

import hashlib
import secrets

from estate_crm.config import MIN_HASH_ITERATIONS, get_settings

SALT_BYTES = 16
KEY_BYTES = 32


def _iterations() -> int:
    return max(get_settings().password_hash_iterations, MIN_HASH_ITERATIONS)


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        iterations=iterations,
        dklen=KEY_BYTES,
    )


def hash_password(password: str) -> str:
    """
    Hash a password using PBKDF2-SHA256.

    Returns: salt:hash format string
    """
    salt = secrets.token_bytes(SALT_BYTES)
    return f"{salt.hex()}:{_derive(password, salt, _iterations()).hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its stored hash.

    Never raises: anything malformed simply fails verification.
    """
    try:
        salt_hex, key_hex = password_hash.split(":")
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(key_hex)
        if not salt or len(expected) != KEY_BYTES:
            return False
        derived = _derive(password, salt, _iterations())
        return secrets.compare_digest(derived, expected)
    except (ValueError, AttributeError, TypeError):
        return False
