from datetime import timedelta

import pytest
from jose import JWTError, jwt

from newsdesk.config import JWT_ALGORITHM, JWT_SECRET_KEY
from newsdesk.services.auth_utils import (
    create_access_token,
    decode_access_token,
    hash_password,
    user_id_from_token,
    verify_password,
)


def test_password_hashing():
    hashed = hash_password("Secret123")
    assert hashed != "Secret123"
    assert verify_password("Secret123", hashed)
    assert not verify_password("secret123", hashed)


def test_token_round_trip():
    token = create_access_token(42)
    assert decode_access_token(token)["sub"] == "42"
    assert user_id_from_token(token) == 42


def test_expired_token_is_rejected():
    token = create_access_token(42, expires_delta=timedelta(seconds=-1))
    with pytest.raises(JWTError):
        user_id_from_token(token)


def test_token_with_non_numeric_subject_is_rejected():
    token = jwt.encode({"sub": "alice"}, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
    with pytest.raises(JWTError):
        user_id_from_token(token)


def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode({"sub": "42"}, "someone-elses-key", algorithm=JWT_ALGORITHM)
    with pytest.raises(JWTError):
        user_id_from_token(token)
