"""
Credentials: bcrypt password hashes and signed bearer tokens

A bearer token names one principal: `sub` is the user id (as a string),
`role` its role at issue time. Only tokens whose `type` claim is "access"
are accepted back; anything else decodes to None.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from logistics_pro.core.config import settings

TOKEN_TYPE_ACCESS = "access"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """False for a wrong password or an unreadable stored hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(
    subject,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign a bearer token for one principal."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(subject),
        "role": role,
        "type": TOKEN_TYPE_ACCESS,
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str, expected_type: str = TOKEN_TYPE_ACCESS) -> Optional[dict]:
    """
    Claims of a valid, unexpired token of the expected type, else None.
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if claims.get("type") != expected_type:
        return None
    return claims
