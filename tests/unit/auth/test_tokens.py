import pytest

from huddle.auth import DEFAULT_TOKEN_TTL, Identity, TokenSigner
from huddle.exceptions import ForbiddenError


class FixedClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class TestTokenSigner:
    def test_issued_token_verifies(self) -> None:
        signer = TokenSigner("secret", clock=FixedClock(1_000))

        identity = signer.verify(signer.issue(7, "alice"))

        assert identity == Identity(user_id=7, username="alice", expires_at=1_000 + DEFAULT_TOKEN_TTL)
        assert identity.key == "7"

    def test_expired_token_is_forbidden(self) -> None:
        clock = FixedClock(1_000)
        signer = TokenSigner("secret", ttl=60, clock=clock)
        token = signer.issue(7, "alice")

        clock.now = 1_060

        with pytest.raises(ForbiddenError, match="expired"):
            _ = signer.verify(token)

    def test_token_from_other_secret_is_forbidden(self) -> None:
        token = TokenSigner("one").issue(7, "alice")

        with pytest.raises(ForbiddenError, match="signature"):
            _ = TokenSigner("two").verify(token)

    def test_tampered_claims_are_forbidden(self) -> None:
        signer = TokenSigner("secret")
        claims, signature = signer.issue(7, "alice").split(".")
        forged = signer.issue(8, "mallory").split(".")[0]

        with pytest.raises(ForbiddenError):
            _ = signer.verify(f"{forged}.{signature}")
        assert signer.verify(f"{claims}.{signature}").user_id == 7

    @pytest.mark.parametrize("token", ["", "no-dot", "!!!.sig", "a.b.c"])
    def test_malformed_token_is_forbidden(self, token: str) -> None:
        with pytest.raises(ForbiddenError):
            _ = TokenSigner("secret").verify(token)

    def test_empty_secret_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            _ = TokenSigner("")
