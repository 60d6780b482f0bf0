"""Unit tests for authentication functions."""
from datetime import timedelta

import pytest
from fastapi import HTTPException
from jose import jwt

from office_common.auth import (
    authenticate_user,
    create_access_token,
    create_user_token,
    decode_token,
    get_password_hash,
    token_subject,
    verify_password,
)
from office_common.config import get_settings

settings = get_settings()


class TestPasswordHashing:
    """Test password hashing and verification."""

    def test_password_hash_and_verify(self):
        password = "MySecurePassword123!"
        hashed = get_password_hash(password)

        assert hashed != password
        assert verify_password(password, hashed) is True
        assert verify_password("WrongPassword", hashed) is False

    def test_same_password_different_hashes(self):
        hash1 = get_password_hash("TestPassword123")
        hash2 = get_password_hash("TestPassword123")

        assert hash1 != hash2


class TestJWTTokens:
    """Test JWT token creation and decoding."""

    def test_create_access_token(self):
        token = create_access_token({"sub": "testuser", "role": "admin"})

        decoded = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        assert decoded["sub"] == "testuser"
        assert "exp" in decoded

    def test_user_token_carries_id_and_role(self, alice):
        payload = decode_token(create_user_token(alice))

        assert payload["sub"] == "alice"
        assert payload["user_id"] == alice.id
        assert payload["role"] == "user"

    def test_expired_token_is_rejected(self):
        token = create_access_token({"sub": "testuser"}, expires_delta=timedelta(minutes=-1))

        with pytest.raises(HTTPException) as excinfo:
            decode_token(token)

        assert excinfo.value.status_code == 401

    def test_garbage_token_is_rejected(self):
        with pytest.raises(HTTPException):
            decode_token("not-a-token")


class TestAuthenticateUser:
    def test_valid_credentials(self, db_session, alice):
        assert authenticate_user(db_session, "alice", "Passw0rd!").id == alice.id

    def test_wrong_password(self, db_session, alice):
        assert authenticate_user(db_session, "alice", "nope") is None

    def test_unknown_user(self, db_session):
        assert authenticate_user(db_session, "ghost", "Passw0rd!") is None


class TestTokenSubject:
    def test_valid_token(self):
        assert token_subject(create_access_token({"sub": "alice"})) == "alice"

    def test_invalid_token(self):
        assert token_subject("garbage") is None
