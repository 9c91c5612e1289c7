"""
Token and password helpers.

The API verifies bearer tokens signed with SECRET_KEY (HS256). Minting and
hashing are only used by operator tooling (scripts/create_admin.py) and
the test suite; end-user sign-in lives in the account service.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from jose import JWTError, jwt
import bcrypt
from core.config import settings

ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = timedelta(days=30)


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(claims: Dict, ttl: Optional[timedelta] = None) -> str:
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + (ttl or DEFAULT_TOKEN_TTL)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict]:
    """Claims of a valid, unexpired token; None otherwise."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
