"""
Admin API Router

Template administration: versions, activation, seeding, reconciliation,
and the admin's own content view mode. Admin role only; every mutation is
recorded in the admin audit log.
"""

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import List, Optional

from core.database import get_db
from core.auth import require_admin
from models import User
from schemas import (
    ActivateTemplateRequest,
    ContentTemplateCreate,
    ContentTemplateResponse,
    ReconcileRequest,
    ViewModeUpdate,
)
from services.admin_audit import record_admin_audit_event
from services.template_reconciliation import reconcile_active_flags, reconcile_template_structure
from services.template_store import (
    activate_template,
    create_template_version,
    list_templates,
    seed_default_templates,
)
from services.user_spaces import effective_role, get_user_space, set_view_mode

router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.get("/templates", response_model=List[ContentTemplateResponse])
def get_templates(
    role: Optional[str] = Query(default=None, description="Filter by role"),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List every stored template version, newest first within each role."""
    return list_templates(db, role)


@router.post("/templates", response_model=ContentTemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    request: Request,
    body: ContentTemplateCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    template = create_template_version(
        db,
        body.role,
        body.content.model_dump(exclude_none=True),
        activate=body.activate,
        created_by=current_user.id,
    )
    record_admin_audit_event(
        db,
        request=request,
        actor=current_user,
        action="template.create",
        target=f"{template.role}@v{template.version}",
        reason=body.reason,
        payload={"activate": body.activate},
    )
    db.commit()
    return template


@router.post("/templates/{role}/{version}/activate", response_model=ContentTemplateResponse)
def activate(
    request: Request,
    role: str,
    version: int,
    body: Optional[ActivateTemplateRequest] = Body(default=None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Make this version the single active template for its role."""
    template = activate_template(db, role, version)
    record_admin_audit_event(
        db,
        request=request,
        actor=current_user,
        action="template.activate",
        target=f"{template.role}@v{template.version}",
        reason=body.reason if body else None,
    )
    db.commit()
    return template


@router.post("/templates/seed")
def seed_templates(
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create and activate default content for roles that have none."""
    created = seed_default_templates(db, created_by=current_user.id)
    labels = [f"{t.role}@v{t.version}" for t in created]
    record_admin_audit_event(
        db,
        request=request,
        actor=current_user,
        action="template.seed",
        payload={"created": labels},
    )
    db.commit()
    return {"created": labels}


@router.post("/templates/reconcile")
def reconcile_templates(
    request: Request,
    body: Optional[ReconcileRequest] = Body(default=None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Repair legacy template shapes and active flags. Supports dry runs."""
    body = body or ReconcileRequest()
    structure = reconcile_template_structure(db, dry_run=body.dry_run)
    active_flags = reconcile_active_flags(db, promote_latest=body.promote_latest, dry_run=body.dry_run)

    if not body.dry_run:
        record_admin_audit_event(
            db,
            request=request,
            actor=current_user,
            action="template.reconcile",
            reason=body.reason,
            payload={
                "rewritten": structure["rewritten"],
                "skipped_concurrent": structure["skipped_concurrent"],
                "roles": {role: outcome["status"] for role, outcome in active_flags["roles"].items()},
            },
        )
        db.commit()
    return {"structure": structure, "active_flags": active_flags}


@router.get("/view-mode")
def get_view_mode(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    space = get_user_space(db, current_user.id)
    return {
        "view_mode": (space.view_mode if space and space.view_mode else "admin"),
        "effective_role": effective_role(db, current_user),
    }


@router.post("/view-mode")
def update_view_mode(
    request: Request,
    body: ViewModeUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Switch between admin content and the public view."""
    space = set_view_mode(db, current_user, body.view_mode)
    record_admin_audit_event(
        db,
        request=request,
        actor=current_user,
        action="view_mode.set",
        target=str(current_user.id),
        payload={"view_mode": space.view_mode},
    )
    db.commit()
    return {"view_mode": space.view_mode, "effective_role": effective_role(db, current_user)}
