"""PBKDF2 password hashing."""

import hashlib
import hmac
import secrets

_ALGORITHM = "pbkdf2_sha256"
PBKDF2_ITERATIONS = 200_000


def _derive(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations
    ).hex()


def hash_password(password: str, *, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    salt = secrets.token_hex(16)
    return f"{_ALGORITHM}${iterations}${salt}${_derive(password, salt, iterations)}"


def verify_password(password: str, encoded: str) -> bool:
    """Check a password against a stored hash. Unknown formats never match."""
    try:
        algorithm, iterations, salt, digest = encoded.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != _ALGORITHM or rounds <= 0:
        return False
    return hmac.compare_digest(digest, _derive(password, salt, rounds))
