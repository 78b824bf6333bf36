"""Token issuing, verification and password hashing."""

from ._gate import AuthGate
from ._passwords import hash_password, verify_password
from ._tokens import DEFAULT_TOKEN_TTL, Identity, TokenSigner

__all__ = [
    "DEFAULT_TOKEN_TTL",
    "AuthGate",
    "Identity",
    "TokenSigner",
    "hash_password",
    "verify_password",
]
