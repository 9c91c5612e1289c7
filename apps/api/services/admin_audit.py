from __future__ import annotations

from typing import Any, Dict, Optional

import logging
from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import AdminAuditEvent, User

logger = logging.getLogger(__name__)


def record_admin_audit_event(
    db: Session,
    *,
    request: Optional[Request],
    actor: Optional[User],
    action: str,
    target: Optional[str] = None,
    reason: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Best-effort append-only audit logging for template administration.

    Safety:
    - Never throws (does not block the primary operation).
    - Written inside a savepoint so a failed insert leaves the caller's
      transaction usable.
    - Payload must be bounded and must not contain secrets.
    """
    ip_address = None
    user_agent = None
    if request is not None:
        ip_address = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent")

    try:
        with db.begin_nested():
            db.add(
                AdminAuditEvent(
                    actor_user_id=actor.id if actor is not None else None,
                    action=action,
                    target=target,
                    reason=reason,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    payload=payload or {},
                )
            )
    except SQLAlchemyError as e:
        # Never block admin operations on audit logging, but do emit a server log.
        logger.exception("Admin audit logging failed: %s", str(e))
