from sqlalchemy import Column, Integer, Boolean, Date, DateTime, ForeignKey, Text, Index, UniqueConstraint, JSON, Uuid, text
from sqlalchemy.orm import relationship, validates
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
import uuid

# JSONB on PostgreSQL, plain JSON (TEXT) on SQLite.
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    """
    Account row owned by the auth service.

    The only field the content core depends on is `role`: it selects the
    content template a user's days are seeded from.
    """

    __tablename__ = "app_user"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    email = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=True)
    role = Column(Text, default="public", nullable=False)  # 'public', 'admin'
    display_name = Column(Text, nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)

    space = relationship("UserSpace", back_populates="user", uselist=False)

    @validates("email")
    def _normalize_email(self, key, value):
        return (value or "").strip().lower()


class UserSpace(Base):
    """Per-user settings split out of the legacy `user_data` documents."""

    __tablename__ = "user_space"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), primary_key=True)
    timezone = Column(Text, nullable=True)  # IANA name, e.g. "America/New_York"
    wake_time = Column(Text, nullable=True)  # "04:00"
    # Admins may preview another role's content ('admin' | 'public'); NULL means own role.
    view_mode = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="space")


class ContentTemplate(Base):
    """
    Versioned, role-scoped default content.

    `content` holds masterChecklist / habitBreakChecklist / workoutChecklist /
    timeBlocks. Rows are never deleted; superseded versions stay for audit.
    At most one row per role may be flagged active (partial unique index).
    """

    __tablename__ = "content_template"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    role = Column(Text, nullable=False, index=True)
    version = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    content = Column(JSONDocument, nullable=False, default=dict)
    # Top-level fields imported from legacy documents; cleared by structural reconciliation.
    legacy_fields = Column(JSONDocument, nullable=True)
    # Bumped on every rewrite. Full-document replacements are guarded by (id, revision).
    revision = Column(Integer, nullable=False, default=1)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("role", "version", name="uq_content_template_role_version"),
        Index(
            "uq_content_template_one_active_per_role",
            "role",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )


class ActiveTemplatePointer(Base):
    """
    Current template version per role.

    Activation swaps `template_id` with a compare-and-swap on `revision`;
    `ContentTemplate.is_active` mirrors this row inside the same transaction.
    """

    __tablename__ = "active_template"

    role = Column(Text, primary_key=True)
    template_id = Column(Uuid(as_uuid=True), ForeignKey("content_template.id"), nullable=False)
    revision = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    template = relationship("ContentTemplate")


class DayEntry(Base):
    """
    One user's tracked state for one calendar day.

    Seeded from the active template on first access, then owned by the user:
    later template changes never rewrite an existing entry.
    """

    __tablename__ = "day_entry"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    day = Column(Date, nullable=False)

    master_checklist = Column(JSONDocument, nullable=False, default=list)
    habit_break_checklist = Column(JSONDocument, nullable=False, default=list)
    workout_checklist = Column(JSONDocument, nullable=False, default=list)
    time_blocks = Column(JSONDocument, nullable=False, default=list)
    todo_list = Column(JSONDocument, nullable=False, default=list)  # user-authored, no template origin
    notes = Column(Text, nullable=False, default="")
    wake_time = Column(Text, nullable=True)  # "HH:MM"; NULL falls back to the space default

    # Provenance of the seed (NULL for entries imported from legacy data)
    template_id = Column(Uuid(as_uuid=True), ForeignKey("content_template.id"), nullable=True)
    template_version = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_day_entry_user_day"),
    )


class AdminAuditEvent(Base):
    """
    Append-only audit log for template administration.

    Non-negotiable invariants:
    - write-only from the application (no update/delete in code paths)
    - bounded payload (no secrets; minimal PII)
    """

    __tablename__ = "admin_audit_event"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # NULL when the action ran from an operator script.
    actor_user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(Text, nullable=False, index=True)  # e.g., template.create | template.activate | template.reconcile
    target = Column(Text, nullable=True)  # e.g., "public@v3"
    reason = Column(Text, nullable=True)

    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)

    payload = Column(JSONDocument, nullable=False, default=dict)
