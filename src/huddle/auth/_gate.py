"""Credential verification for HTTP requests and WebSocket handshakes."""

from typing import final

from huddle.exceptions import UnauthenticatedError

from ._tokens import Identity, TokenSigner

_BEARER_PREFIX = "bearer "


@final
class AuthGate:
    """Verifies bearer headers and query-parameter tokens.

    Missing or malformed credentials raise
    :class:`~huddle.exceptions.UnauthenticatedError`; credentials that are
    present but invalid or expired raise
    :class:`~huddle.exceptions.ForbiddenError`.
    """

    __slots__ = ("signer",)

    def __init__(self, signer: TokenSigner) -> None:
        self.signer = signer

    def authenticate_header(self, authorization: str | None) -> Identity:
        """Verify an ``Authorization: Bearer <token>`` header value."""
        if not authorization:
            msg = "Missing Authorization header"
            raise UnauthenticatedError(msg)
        if not authorization.lower().startswith(_BEARER_PREFIX):
            msg = "Authorization header is not a bearer credential"
            raise UnauthenticatedError(msg)
        token = authorization[len(_BEARER_PREFIX) :].strip()
        if not token:
            msg = "Empty bearer token"
            raise UnauthenticatedError(msg)
        return self.signer.verify(token)

    def authenticate_token(self, token: str | None) -> Identity:
        """Verify a raw token, as passed in the ``token`` query parameter."""
        if not token:
            msg = "Missing token"
            raise UnauthenticatedError(msg)
        return self.signer.verify(token)

    def issue(self, user_id: int, username: str) -> str:
        """Issue a fresh token for a user."""
        return self.signer.issue(user_id, username)
