"""
Template Reconciliation

Offline repair of stored content templates. Never runs on the request path;
invoked from scripts/reconcile_templates.py or the admin reconcile endpoint.

Two passes:
1. Structure: legacy document shapes (top-level checklist lists, templateSets
   `checklists`/`blockId` layout, missing item ids) are rewritten to the
   canonical nested `content` shape. Rewrites are full replacements guarded
   by (id, revision); a row changed underneath us is skipped and reported.
2. Active flags: every role ends with exactly one active template, chosen as
   pointer target, else highest active version, else (only when asked)
   highest version.

Both passes are idempotent and return a report dict.
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.cache import invalidate_active_template_cache
from core.config import settings
from core.exceptions import ValidationError
from models import ActiveTemplatePointer, ContentTemplate
from services.template_store import (
    CHECKLIST_KEYS,
    CONTENT_KEYS,
    TIME_BLOCKS_KEY,
    PointerSwapLost,
    activate_in_transaction,
    validate_template_content,
)

logger = logging.getLogger(__name__)

# Prefix used when an item id has to be generated.
ID_PREFIXES = {
    "masterChecklist": "mc",
    "habitBreakChecklist": "hb",
    "workoutChecklist": "wk",
}

# templateSets `checklistId` -> content key
CHECKLIST_ID_ALIASES = {
    "master": "masterChecklist",
    "master-checklist": "masterChecklist",
    "daily-master-checklist": "masterChecklist",
    "habit": "habitBreakChecklist",
    "habit-break-checklist": "habitBreakChecklist",
    "habit-break-tracker": "habitBreakChecklist",
    "workout": "workoutChecklist",
    "workout-checklist": "workoutChecklist",
}

SEMVER_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


def _stored_order(entry: Dict[str, Any]) -> Optional[int]:
    order = entry.get("order")
    return order if isinstance(order, int) and not isinstance(order, bool) else None


def _ordered(entries: Optional[List[Any]], sort_by_order: bool) -> List[Dict[str, Any]]:
    """
    Dict entries, in list order unless `sort_by_order`.

    Only templateSets documents rely on `order` for sequencing; in nested
    `content` the list order itself is authoritative.
    """
    rows = [entry for entry in entries or [] if isinstance(entry, dict)]
    if not sort_by_order:
        return rows

    def sort_key(pair):
        index, entry = pair
        order = _stored_order(entry)
        return (0, order, index) if order is not None else (1, 0, index)

    return [entry for _, entry in sorted(enumerate(rows), key=sort_key)]


def _unique_id(candidate: str, seen: set) -> str:
    if candidate not in seen:
        return candidate
    n = 2
    while f"{candidate}-{n}" in seen:
        n += 1
    return f"{candidate}-{n}"


def normalize_checklist_items(
    items: Optional[List[Any]], content_key: str, *, sort_by_order: bool = False
) -> List[Dict[str, Any]]:
    """Legacy checklist items -> canonical {id, text, category[, order]}. A stored `order` is kept as-is."""
    prefix = ID_PREFIXES.get(content_key, "item")
    seen: set = set()
    normalized = []
    for position, item in enumerate(_ordered(items, sort_by_order), start=1):
        category = str(item.get("category") or "general")
        item_id = item.get("id") or item.get("itemId") or f"{prefix}-{category}-{position:03d}"
        item_id = _unique_id(str(item_id), seen)
        seen.add(item_id)
        entry = {"id": item_id, "text": str(item.get("text") or ""), "category": category}
        if _stored_order(item) is not None:
            entry["order"] = _stored_order(item)
        normalized.append(entry)
    return normalized


def normalize_time_blocks(blocks: Optional[List[Any]], *, sort_by_order: bool = False) -> List[Dict[str, Any]]:
    seen: set = set()
    normalized = []
    for position, block in enumerate(_ordered(blocks, sort_by_order), start=1):
        block_id = _unique_id(str(block.get("id") or block.get("blockId") or f"block-{position}"), seen)
        seen.add(block_id)
        activities = block.get("activities")
        entry = {
            "id": block_id,
            "time": str(block.get("time") or ""),
            "label": str(block.get("label") or ""),
            "activities": [str(a) for a in activities] if isinstance(activities, list) else [],
            "duration": block.get("duration") if isinstance(block.get("duration"), int) else 60,
        }
        if _stored_order(block) is not None:
            entry["order"] = _stored_order(block)
        normalized.append(entry)
    return normalized


def legacy_version_number(value: Any) -> Optional[int]:
    """
    Integer version for a legacy document.

    content_templates used integers; templateSets used "x.y.z" strings,
    mapped to x*10000 + y*100 + z so imports stay ordered and repeatable.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    match = SEMVER_PATTERN.match(str(value or "").strip())
    if not match:
        return None
    major, minor, patch = (int(part) for part in match.groups())
    return major * 10000 + minor * 100 + patch or None


def _template_set_lists(doc: Dict[str, Any]) -> Dict[str, List[Any]]:
    """templateSets `checklists` array -> {content_key: items}."""
    lists: Dict[str, List[Any]] = {}
    for checklist in doc.get("checklists") or []:
        if not isinstance(checklist, dict):
            continue
        key = CHECKLIST_ID_ALIASES.get(str(checklist.get("checklistId", "")).lower())
        if key and key not in lists:
            lists[key] = checklist.get("items") or []
    return lists


def canonicalize_template_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """
    Any known legacy template document -> canonical template dict.

    Nested `content` always wins; a top-level list (or templateSets
    checklist) only fills a key that `content` lacks. Pure function.
    """
    nested = doc.get("content") if isinstance(doc.get("content"), dict) else {}
    template_set_lists = _template_set_lists(doc)
    # templateSets documents sequence entries by `order`
    sort_by_order = "checklists" in doc

    content: Dict[str, Any] = {}
    for key in CHECKLIST_KEYS:
        if key in nested:
            source = nested[key]
        elif key in doc:
            source = doc[key]
        else:
            source = template_set_lists.get(key)
        content[key] = normalize_checklist_items(source, key, sort_by_order=sort_by_order)

    if TIME_BLOCKS_KEY in nested:
        blocks = nested[TIME_BLOCKS_KEY]
    else:
        blocks = doc.get(TIME_BLOCKS_KEY)
    content[TIME_BLOCKS_KEY] = normalize_time_blocks(blocks, sort_by_order=sort_by_order)

    role = doc.get("role") or doc.get("userRole")
    return {
        "role": str(role).strip().lower() if role else None,
        "version": legacy_version_number(doc.get("version")),
        "isActive": bool(doc.get("isActive", False)),
        "content": content,
        "createdAt": doc.get("createdAt"),
        "updatedAt": doc.get("updatedAt"),
    }


def extract_legacy_fields(doc: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Top-level fields of a legacy document that belong inside `content`."""
    legacy = {
        key: copy.deepcopy(doc[key])
        for key in (*CONTENT_KEYS, "checklists")
        if key in doc
    }
    return legacy or None


def reconcile_template_structure(db: Session, *, dry_run: bool = False) -> Dict[str, Any]:
    """Rewrite templates whose stored shape is not canonical."""
    report: Dict[str, Any] = {
        "checked": 0,
        "rewritten": [],
        "unchanged": 0,
        "skipped_concurrent": [],
        "invalid": [],
        "dry_run": dry_run,
    }
    touched_roles = set()

    templates = db.query(ContentTemplate).order_by(ContentTemplate.role, ContentTemplate.version).all()
    for template in templates:
        report["checked"] += 1
        label = f"{template.role}@v{template.version}"
        doc = dict(template.legacy_fields or {})
        doc["content"] = template.content or {}

        try:
            canonical = validate_template_content(canonicalize_template_document(doc)["content"])
        except ValidationError as e:
            report["invalid"].append({"template": label, "error": e.detail})
            logger.warning(f"Template {label} cannot be canonicalized: {e.detail}")
            continue

        if canonical == (template.content or {}) and not template.legacy_fields:
            report["unchanged"] += 1
            continue

        if dry_run:
            report["rewritten"].append(label)
            continue

        seen_revision = template.revision
        updated = (
            db.query(ContentTemplate)
            .filter(ContentTemplate.id == template.id, ContentTemplate.revision == seen_revision)
            .update(
                {
                    ContentTemplate.content: canonical,
                    ContentTemplate.legacy_fields: None,
                    ContentTemplate.revision: seen_revision + 1,
                },
                synchronize_session="fetch",
            )
        )
        if updated != 1:
            report["skipped_concurrent"].append(label)
            logger.warning(f"Template {label} changed during reconciliation; skipped")
            continue
        report["rewritten"].append(label)
        if template.is_active:
            touched_roles.add(template.role)

    if not dry_run:
        db.commit()
        for role in touched_roles:
            invalidate_active_template_cache(role)

    logger.info(
        f"Template structure reconciliation: {len(report['rewritten'])} rewritten, "
        f"{report['unchanged']} unchanged, {len(report['skipped_concurrent'])} skipped",
        extra={"extra_fields": {
            "dry_run": dry_run,
            "rewritten": report["rewritten"],
            "skipped_concurrent": report["skipped_concurrent"],
            "invalid": len(report["invalid"]),
        }},
    )
    return report


def _choose_active(
    templates: List[ContentTemplate],
    pointer: Optional[ActiveTemplatePointer],
    promote_latest: bool,
) -> Optional[ContentTemplate]:
    if pointer is not None:
        for template in templates:
            if template.id == pointer.template_id:
                return template
    flagged = [t for t in templates if t.is_active]
    if flagged:
        return max(flagged, key=lambda t: t.version)
    if promote_latest and templates:
        return max(templates, key=lambda t: t.version)
    return None


def reconcile_active_flags(db: Session, *, promote_latest: bool = False, dry_run: bool = False) -> Dict[str, Any]:
    """Force exactly one active template per role. Returns {role: outcome}."""
    stored_roles = {row.role for row in db.query(ContentTemplate.role).distinct().all()}
    roles = sorted(set(settings.template_roles) | stored_roles)

    outcomes: Dict[str, Dict[str, Any]] = {}
    for role in roles:
        templates = (
            db.query(ContentTemplate)
            .filter(ContentTemplate.role == role)
            .order_by(ContentTemplate.version.desc())
            .all()
        )
        if not templates:
            outcomes[role] = {"status": "no_templates"}
            continue

        pointer = db.query(ActiveTemplatePointer).filter(ActiveTemplatePointer.role == role).first()
        target = _choose_active(templates, pointer, promote_latest)
        flagged = [t.version for t in templates if t.is_active]
        if target is None:
            outcomes[role] = {"status": "no_active", "flagged": flagged}
            logger.error(f"Role '{role}' has no active template and none was promoted")
            continue

        consistent = (
            flagged == [target.version]
            and pointer is not None
            and pointer.template_id == target.id
        )
        if consistent:
            outcomes[role] = {"status": "ok", "version": target.version}
            continue

        outcome = {"status": "repaired", "version": target.version, "flagged_before": flagged}
        if dry_run:
            outcomes[role] = outcome
            continue

        try:
            activate_in_transaction(db, target)
            db.commit()
        except PointerSwapLost:
            db.rollback()
            outcomes[role] = {"status": "skipped_concurrent", "flagged_before": flagged}
            logger.warning(f"Concurrent activation for role '{role}' during reconciliation; skipped")
            continue

        invalidate_active_template_cache(role)
        outcomes[role] = outcome
        logger.warning(
            f"Reconciled active template for role '{role}' to v{target.version}",
            extra={"extra_fields": {"role": role, "version": target.version, "flagged_before": flagged}},
        )

    return {"roles": outcomes, "dry_run": dry_run, "promote_latest": promote_latest}
