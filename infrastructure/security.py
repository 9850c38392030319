from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt
from passlib.context import CryptContext
import hashlib

from infrastructure.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    # bcrypt 4.x compatibility: explicitly handle password length
    bcrypt__ident="2b"
)


def _prepare_password(password: str) -> str:
    """
    bcrypt only looks at the first 72 bytes; longer passwords are
    pre-hashed with SHA256 so the whole password still counts.
    """
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > 72:
        return hashlib.sha256(password_bytes).hexdigest()
    return password


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash"""
    return pwd_context.verify(_prepare_password(plain_password), hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(_prepare_password(password))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token; callers put the username in 'sub' and the role in 'role'"""
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and verify a JWT; raises jose.JWTError when invalid or expired"""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def create_staff_token(username: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """Token for a front-desk user; the role claim drives capability checks"""
    return create_access_token({"sub": username, "role": role}, expires_delta=expires_delta)
