"""Access-token verification tests."""

import jwt
import pytest

from codebro.auth.jwt import Identity, has_role, verify_token


class TestVerifyToken:
    def test_valid_token(self, token_for):
        identity = verify_token(token_for("user-123"))
        assert identity.user_id == "user-123"
        assert identity.email == "user-123@example.com"
        assert identity.roles == frozenset()

    def test_role_claim(self, token_for):
        identity = verify_token(token_for("user-123", role="admin"))
        assert has_role(identity, "admin")
        assert not has_role(identity, "moderator")

    def test_expired(self, token_for):
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token_for("user-123", expires_in=-10))

    def test_wrong_secret(self, token_for):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token_for("user-123", secret="not-the-secret-at-all-0123456789"))

    def test_wrong_audience(self, token_for):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token_for("user-123", audience="someone-else"))

    def test_garbage(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token("not.a.token")


def test_has_role_reads_identity_only():
    assert has_role(Identity("u", roles=frozenset({"admin"})), "admin")
    assert not has_role(Identity("u", email="admin@example.com"), "admin")
