"""JWT helpers. Tokens are issued by the identity service; this service only verifies them."""
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from uniclips.config import settings


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token with the shared secret. Used by the identity service and in tests."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Return the token payload, or None if the signature or expiry is invalid."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload
