"""
Content Template Store

Role-scoped, versioned templates with exactly one active version per role.

Usage:
    template = create_template_version(db, "public", content)
    activate_template(db, "public", template.version)

    snapshot = get_active_template(db, "public")   # cached dict
    snapshot["content"]["masterChecklist"]

Write-time guarantees:
- versions are assigned by the store (max + 1) and unique per role
- activation swaps the per-role pointer with a compare-and-swap and
  rewrites the `is_active` flags in the same transaction, so no reader
  ever observes zero or two active templates
- activation always ends in a clean single-active state, whatever drift
  existed before the call
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.cache import cache_active_template, get_cached_active_template, invalidate_active_template_cache
from core.config import settings
from core.exceptions import ConfigurationError, ConflictError, NotFoundError, ValidationError
from models import ActiveTemplatePointer, ContentTemplate
from schemas import TemplateContent
from services.conditional_writes import insert_if_absent
from services.day_keys import validate_role
from services.template_defaults import default_template_content

logger = logging.getLogger(__name__)

CHECKLIST_KEYS = ("masterChecklist", "habitBreakChecklist", "workoutChecklist")
TIME_BLOCKS_KEY = "timeBlocks"
CONTENT_KEYS = CHECKLIST_KEYS + (TIME_BLOCKS_KEY,)


class PointerSwapLost(Exception):
    """Another activation for the same role committed first."""


def validate_template_content(content: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate and normalize template content; raises ValidationError."""
    try:
        model = TemplateContent.model_validate(content or {})
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()))
        message = first.get("msg", "invalid content")
        raise ValidationError(
            f"Invalid template content{f' at {where}' if where else ''}: {message}",
            field="content",
        )
    return model.model_dump(exclude_none=True)


def template_snapshot(template: ContentTemplate) -> Dict[str, Any]:
    """Detached, JSON-safe copy of a template row."""
    return {
        "id": str(template.id),
        "role": template.role,
        "version": template.version,
        "is_active": bool(template.is_active),
        "revision": template.revision,
        "content": copy.deepcopy(template.content or {}),
    }


def get_template(db: Session, role: str, version: int) -> Optional[ContentTemplate]:
    return (
        db.query(ContentTemplate)
        .filter(ContentTemplate.role == role, ContentTemplate.version == version)
        .first()
    )


def list_templates(db: Session, role: Optional[str] = None) -> List[ContentTemplate]:
    query = db.query(ContentTemplate)
    if role:
        query = query.filter(ContentTemplate.role == validate_role(role))
    return query.order_by(ContentTemplate.role.asc(), ContentTemplate.version.desc()).all()


def resolve_active_template(db: Session, role: str) -> Optional[ContentTemplate]:
    """
    Find the active template row for a role, bypassing the cache.

    The pointer is authoritative. Without one, a single flagged row is
    accepted; several flagged rows are a configuration error until the
    reconciliation routine (or an activation) repairs them.
    """
    pointer = db.query(ActiveTemplatePointer).filter(ActiveTemplatePointer.role == role).first()
    if pointer is not None:
        template = db.query(ContentTemplate).filter(ContentTemplate.id == pointer.template_id).first()
        if template is not None and template.role == role:
            return template
        logger.warning(f"Active template pointer for role '{role}' references a missing or foreign template")

    flagged = (
        db.query(ContentTemplate)
        .filter(ContentTemplate.role == role, ContentTemplate.is_active.is_(True))
        .order_by(ContentTemplate.version.desc())
        .all()
    )
    if len(flagged) > 1:
        raise ConfigurationError(
            f"Role '{role}' has {len(flagged)} active content templates "
            f"(versions {[t.version for t in flagged]}); run template reconciliation"
        )
    return flagged[0] if flagged else None


def _pointer_target(db: Session, role: str) -> Optional[UUID]:
    row = db.query(ActiveTemplatePointer.template_id).filter(ActiveTemplatePointer.role == role).first()
    return row[0] if row else None


def get_active_template(db: Session, role: str) -> Dict[str, Any]:
    """
    Snapshot of the active template for `role`.

    Raises ConfigurationError when the role has no active template: callers
    must never fall back to empty content.

    Only a row the role pointer still targets is cached, so a reader that
    resolved before a concurrent activation cannot leave the old version in
    Redis after the activation invalidated it. Flag-only roles (no pointer
    yet) are served uncached until an activation or reconciliation runs.
    """
    role = validate_role(role)
    cached = get_cached_active_template(role)
    if cached is not None:
        return cached

    template = resolve_active_template(db, role)
    if template is None:
        logger.error(
            f"No active content template for role '{role}'",
            extra={"extra_fields": {"role": role}},
        )
        raise ConfigurationError(f"No active content template for role '{role}'")

    snapshot = template_snapshot(template)
    if _pointer_target(db, role) == template.id and cache_active_template(role, snapshot):
        # Activation may have committed between the check and the write.
        if _pointer_target(db, role) != template.id:
            invalidate_active_template_cache(role)
    return snapshot


def _swap_pointer(db: Session, template: ContentTemplate) -> Optional[UUID]:
    """Compare-and-swap the role pointer to `template`. Returns the previous target."""
    pointer = (
        db.query(ActiveTemplatePointer)
        .filter(ActiveTemplatePointer.role == template.role)
        .populate_existing()
        .first()
    )
    if pointer is None:
        inserted = insert_if_absent(
            db,
            ActiveTemplatePointer,
            {"role": template.role, "template_id": template.id, "revision": 1},
            ["role"],
        )
        if not inserted:
            raise PointerSwapLost()
        return None

    previous = pointer.template_id
    seen_revision = pointer.revision
    swapped = (
        db.query(ActiveTemplatePointer)
        .filter(
            ActiveTemplatePointer.role == template.role,
            ActiveTemplatePointer.revision == seen_revision,
        )
        .update(
            {
                ActiveTemplatePointer.template_id: template.id,
                ActiveTemplatePointer.revision: seen_revision + 1,
            },
            synchronize_session="fetch",
        )
    )
    if swapped != 1:
        raise PointerSwapLost()
    return previous


def _apply_active_flags(db: Session, role: str, target_id: UUID) -> int:
    """Flag `target_id` as the only active template of `role`. Returns rows deactivated."""
    deactivated = (
        db.query(ContentTemplate)
        .filter(
            ContentTemplate.role == role,
            ContentTemplate.id != target_id,
            ContentTemplate.is_active.is_(True),
        )
        .update({ContentTemplate.is_active: False}, synchronize_session="fetch")
    )
    (
        db.query(ContentTemplate)
        .filter(ContentTemplate.id == target_id)
        .update({ContentTemplate.is_active: True}, synchronize_session="fetch")
    )
    return deactivated


def activate_in_transaction(db: Session, template: ContentTemplate) -> Dict[str, Any]:
    """Activation body; caller owns the transaction."""
    flagged_before = [
        row.id
        for row in db.query(ContentTemplate.id)
        .filter(ContentTemplate.role == template.role, ContentTemplate.is_active.is_(True))
        .all()
    ]
    previous = _swap_pointer(db, template)
    deactivated = _apply_active_flags(db, template.role, template.id)

    if previous is None:
        # No pointer yet: any flagged row predates pointer bookkeeping.
        drift = bool(flagged_before)
    else:
        drift = flagged_before != [previous]
    if drift:
        logger.warning(
            f"Activation of '{template.role}' v{template.version} repaired active-template drift",
            extra={"extra_fields": {
                "role": template.role,
                "version": template.version,
                "flagged_before": [str(x) for x in flagged_before],
                "pointer_before": str(previous) if previous else None,
            }},
        )
    return {
        "previous_template_id": str(previous) if previous else None,
        "deactivated": deactivated,
        "repaired_drift": drift,
    }


def activate_template(db: Session, role: str, version: int) -> ContentTemplate:
    """
    Make (`role`, `version`) the single active template for `role`.

    One retry if a concurrent activation wins the pointer swap; a second
    loss raises ConflictError. Commits, then drops the cached lookup.
    """
    role = validate_role(role)
    for attempt in (1, 2):
        template = get_template(db, role, version)
        if template is None:
            raise NotFoundError("ContentTemplate", f"{role}@v{version}")
        try:
            outcome = activate_in_transaction(db, template)
            db.commit()
            break
        except PointerSwapLost:
            db.rollback()
            if attempt == 2:
                raise ConflictError(f"Concurrent activation for role '{role}'; retry")
            logger.info(f"Lost activation race for role '{role}', retrying once")

    invalidate_active_template_cache(role)
    logger.info(
        f"Activated content template {role} v{version}",
        extra={"extra_fields": {"role": role, "version": version, **outcome}},
    )
    return template


def create_template_version(
    db: Session,
    role: str,
    content: Dict[str, Any],
    *,
    activate: bool = False,
    created_by: Optional[UUID] = None,
) -> ContentTemplate:
    """Store `content` as the next version for `role`, optionally activating it."""
    role = validate_role(role)
    normalized = validate_template_content(content)

    latest = (
        db.query(func.max(ContentTemplate.version))
        .filter(ContentTemplate.role == role)
        .scalar()
    ) or 0
    template = ContentTemplate(
        role=role,
        version=latest + 1,
        is_active=False,
        content=normalized,
        created_by=created_by,
    )
    db.add(template)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Version {latest + 1} of the '{role}' template was created concurrently; retry")

    if activate:
        try:
            activate_in_transaction(db, template)
        except PointerSwapLost:
            db.rollback()
            raise ConflictError(f"Concurrent activation for role '{role}'; retry")

    db.commit()
    if activate:
        invalidate_active_template_cache(role)

    logger.info(
        f"Created content template {role} v{template.version}",
        extra={"extra_fields": {"role": role, "version": template.version, "activated": activate}},
    )
    return template


def seed_default_templates(db: Session, *, created_by: Optional[UUID] = None) -> List[ContentTemplate]:
    """Create and activate version 1 for every configured role that has no template."""
    created = []
    for role in settings.template_roles:
        exists = db.query(ContentTemplate.id).filter(ContentTemplate.role == role).first()
        if exists:
            continue
        created.append(
            create_template_version(
                db,
                role,
                default_template_content(role),
                activate=True,
                created_by=created_by,
            )
        )
    return created
