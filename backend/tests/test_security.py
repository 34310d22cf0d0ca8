"""
Tests for access tokens.
"""
from app.core.security import create_access_token, decode_access_token, user_id_from_token


class TestAccessToken:
    def test_create_access_token_contains_subject(self):
        token = create_access_token("123")
        payload = decode_access_token(token)

        assert payload is not None
        assert payload.get("sub") == "123"
        assert payload.get("type") == "access"
        assert "exp" in payload

    def test_decode_invalid_token_returns_none(self):
        for token in ("invalid.token.here", "", "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.invalid"):
            assert decode_access_token(token) is None

    def test_expired_token_returns_none(self):
        token = create_access_token("123", expires_delta_minutes=-1)
        assert decode_access_token(token) is None

    def test_multiple_tokens_for_same_subject(self):
        token1 = create_access_token("123")
        token2 = create_access_token("123")

        # jti differs per token
        assert token1 != token2
        assert decode_access_token(token1).get("sub") == "123"
        assert decode_access_token(token2).get("sub") == "123"


class TestUserIdFromToken:
    def test_numeric_subject(self):
        assert user_id_from_token(create_access_token("42")) == 42

    def test_non_numeric_subject(self):
        assert user_id_from_token(create_access_token("user-abc")) is None

    def test_missing_token(self):
        assert user_id_from_token(None) is None
        assert user_id_from_token("") is None
