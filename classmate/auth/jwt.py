from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt

from classmate.core.config import settings
from classmate.core.exceptions import AuthenticationError
from classmate.core.timeutils import utcnow

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())


def _encode(data: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    now = utcnow()
    to_encode = {k: (str(v) if v is not None else None) for k, v in data.items()}
    to_encode = {k: v for k, v in to_encode.items() if v is not None}
    to_encode.update({"type": token_type, "iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    return _encode(
        data,
        ACCESS_TOKEN,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(data: Dict[str, Any]) -> str:
    return _encode(data, REFRESH_TOKEN, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def create_token_pair(user, branch_id=None) -> Dict[str, str]:
    """Issue access and refresh tokens carrying the tenant claims."""
    claims = {
        "sub": user.id,
        "email": user.email,
        "company_id": user.company_id,
        "branch_id": branch_id,
    }
    return {
        "token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
    }


def verify_token(token: str, expected_type: str = ACCESS_TOKEN) -> Dict[str, Any]:
    """Decode a token and check its type, raising 401 on any failure"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired", code="TOKEN_EXPIRED")
    except jwt.PyJWTError:
        raise AuthenticationError("Could not validate credentials", code="INVALID_TOKEN")

    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type", code="INVALID_TOKEN")
    if not payload.get("sub") or not payload.get("company_id"):
        raise AuthenticationError("Could not validate credentials", code="INVALID_TOKEN")
    return payload
