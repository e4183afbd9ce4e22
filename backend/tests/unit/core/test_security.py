"""
Unit Tests for Security Module
Tests for: password hashing, JWT tokens
"""
import pytest
from datetime import timedelta
from jose import jwt

from school_ledger.core.config import settings
from school_ledger.core.exceptions import InvalidTokenError
from school_ledger.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    decode_token,
)


class TestPasswordHashing:
    """Test password hashing functions"""

    def test_hash_password_returns_different_value(self):
        password = "testpassword123"
        hashed = get_password_hash(password)

        assert hashed != password
        assert len(hashed) > 0

    def test_hash_password_different_each_time(self):
        """Bcrypt salts every hash"""
        assert get_password_hash("testpassword123") != get_password_hash("testpassword123")

    def test_verify_password_correct(self):
        hashed = get_password_hash("testpassword123")
        assert verify_password("testpassword123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = get_password_hash("testpassword123")
        assert verify_password("wrongpassword", hashed) is False

    def test_hash_long_password_truncated(self):
        """Bcrypt has a 72 byte limit"""
        long_password = "a" * 100
        hashed = get_password_hash(long_password)
        assert verify_password(long_password, hashed) is True

    def test_verify_against_malformed_hash(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestAccessTokens:
    """Test JWT creation and decoding"""

    def test_token_round_trip(self):
        token = create_access_token({"sub": "user-1", "role": "ADMIN"})
        payload = decode_token(token)

        assert payload["sub"] == "user-1"
        assert payload["role"] == "ADMIN"
        assert payload["type"] == "access"
        assert "exp" in payload

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(InvalidTokenError):
            decode_token(token)

    def test_token_signed_with_other_key_rejected(self):
        token = jwt.encode({"sub": "user-1", "type": "access"}, "other-key", algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(InvalidTokenError):
            decode_token(token)

    def test_garbage_token_rejected(self):
        with pytest.raises(InvalidTokenError) as exc_info:
            decode_token("not.a.token")

        assert exc_info.value.status_code == 401
