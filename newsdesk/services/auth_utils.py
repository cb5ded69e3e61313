# newsdesk/services/auth_utils.py

from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from newsdesk.config import JWT_SECRET_KEY, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_DAYS

# pbkdf2_sha256 instead of bcrypt
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    user_id: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Bearer token for one account. `sub` carries the user's primary key as a
    string; nothing else about the user (role, active flag) is baked in, so
    role changes and deactivation take effect on the next request.
    """
    if expires_delta is None:
        expires_delta = timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)

    claims = {
        "sub": str(user_id),
        "iat": datetime.utcnow(),
        "exp": datetime.utcnow() + expires_delta,
    }
    return jwt.encode(claims, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Raises JWTError if invalid/expired.
    """
    return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])


def user_id_from_token(token: str) -> int:
    """
    The account id a token was issued to.
    Raises JWTError for bad signatures, expiry, or a malformed `sub`.
    """
    subject = decode_access_token(token).get("sub")
    if subject is None or not str(subject).isdigit():
        raise JWTError("Invalid token payload")
    return int(subject)
