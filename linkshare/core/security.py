from datetime import timedelta
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from .config import get_settings
from .time import utcnow


# Link password secrets are stored hashed; pbkdf2_sha256 avoids bcrypt backend issues.
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)
ALGORITHM = "HS256"


def hash_secret(secret: str) -> str:
    return pwd_context.hash(secret)


def verify_secret(secret: str, secret_hash: str) -> bool:
    return pwd_context.verify(secret, secret_hash)


def create_token(payload: Dict[str, Any], expires_minutes: int) -> str:
    settings = get_settings()
    now = utcnow()
    expire = now + timedelta(minutes=expires_minutes)
    claims = {
        **payload,
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        issuer=settings.jwt_issuer,
        algorithms=[ALGORITHM],
        options={"require": ["iss", "iat", "exp"]},
    )


def create_access_token(user_id: str, role: str) -> str:
    """Tokens are normally issued by the auth service; kept here for tooling and tests."""
    settings = get_settings()
    return create_token({"sub": user_id, "role": role, "type": "access"}, settings.access_token_exp_minutes)
