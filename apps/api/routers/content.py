"""
Content API Router

Read-only view of the active template for the caller's effective role.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import get_current_user
from models import User
from schemas import ActiveContentResponse
from services.template_store import get_active_template
from services.user_spaces import effective_role

router = APIRouter(prefix="/v1/content", tags=["Content"])


@router.get("", response_model=ActiveContentResponse)
def get_content(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    role = effective_role(db, current_user)
    template = get_active_template(db, role)
    return {
        "content": template["content"],
        "version": template["version"],
        "user_role": current_user.role,
        "effective_role": role,
    }
