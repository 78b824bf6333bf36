"""Signed bearer tokens.

A token is ``<claims>.<signature>`` where ``claims`` is base64url encoded
compact JSON (``sub``, ``name``, ``iat``, ``exp``) and ``signature`` is the
base64url HMAC-SHA256 of the raw claims under the worker's secret.
"""

import base64
import binascii
import hashlib
import hmac
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import final

import pendulum

from huddle.exceptions import ForbiddenError

DEFAULT_TOKEN_TTL = 3600


def _now() -> int:
    return pendulum.now("UTC").int_timestamp


def _b64u(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _b64u_dec(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


@dataclass(frozen=True, slots=True)
class Identity:
    """A verified principal.

    Attributes:
        user_id: Primary key of the user.
        username: Display name at the time the token was issued.
        expires_at: Unix timestamp after which the token is rejected.
    """

    user_id: int
    username: str
    expires_at: int

    @property
    def key(self) -> str:
        """Stable registry key for this principal."""
        return str(self.user_id)


@final
class TokenSigner:
    """Issues and verifies HMAC-signed tokens for one secret."""

    __slots__ = ("_clock", "_secret", "ttl")

    def __init__(
        self,
        secret: str,
        *,
        ttl: int = DEFAULT_TOKEN_TTL,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize the signer.

        Args:
            secret: Shared signing secret.
            ttl: Token lifetime in seconds.
            clock: Returns the current Unix time. Defaults to pendulum UTC now.
        """
        if not secret:
            msg = "Token secret must not be empty"
            raise ValueError(msg)
        self._secret = secret.encode()
        self._clock = clock or _now
        self.ttl = ttl

    def _sign(self, blob: bytes) -> str:
        return _b64u(hmac.new(self._secret, blob, hashlib.sha256).digest())

    def issue(self, user_id: int, username: str) -> str:
        """Issue a token for a user, valid for ``ttl`` seconds from now."""
        issued_at = self._clock()
        claims = {
            "sub": user_id,
            "name": username,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        raw = json.dumps(claims, separators=(",", ":"), sort_keys=True).encode()
        return _b64u(raw) + "." + self._sign(raw)

    def verify(self, token: str) -> Identity:
        """Verify a token and return its identity.

        Raises:
            ForbiddenError: If the token is malformed, its signature does not
                match, or it has expired.
        """
        try:
            raw_b64, signature = token.split(".", 1)
            raw = _b64u_dec(raw_b64)
        except (ValueError, binascii.Error) as e:
            msg = "Malformed token"
            raise ForbiddenError(msg) from e

        if not hmac.compare_digest(signature, self._sign(raw)):
            msg = "Invalid token signature"
            raise ForbiddenError(msg)

        try:
            claims = json.loads(raw)
            identity = Identity(
                user_id=int(claims["sub"]),
                username=str(claims["name"]),
                expires_at=int(claims["exp"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            msg = "Malformed token claims"
            raise ForbiddenError(msg) from e

        if identity.expires_at <= self._clock():
            msg = "Token expired"
            raise ForbiddenError(msg)
        return identity
