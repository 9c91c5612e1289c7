"""
Caller resolution for the day and admin routers.

Bearer tokens are issued by the account service; this API only checks the
signature and maps the `sub` claim to an app_user row. Failures surface as
UnauthorizedError (401) / ForbiddenError (403) so they carry an error_code
like every other API error.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from core.database import get_db
from core.exceptions import ForbiddenError, UnauthorizedError
from core.security import decode_access_token
from models import User

# auto_error=False: a missing header must be 401, not FastAPI's default 403
bearer_scheme = HTTPBearer(auto_error=False)


def _user_id_from_token(token: str) -> UUID:
    claims = decode_access_token(token)
    if not claims:
        raise UnauthorizedError("Invalid or expired token")

    subject = claims.get("sub")
    if not subject:
        raise UnauthorizedError("Token has no subject")

    try:
        return UUID(str(subject))
    except ValueError:
        raise UnauthorizedError("Token subject is not a user id")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """The user a request acts for. Every /v1 day and content route depends on this."""
    if credentials is None:
        raise UnauthorizedError()

    user = db.query(User).filter(User.id == _user_id_from_token(credentials.credentials)).first()
    if user is None:
        raise UnauthorizedError("Unknown user")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if (current_user.role or "").lower() != "admin":
        raise ForbiddenError("Admin role required")
    return current_user
