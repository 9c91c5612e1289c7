"""
Tests for legacy template canonicalization and offline reconciliation.
"""
import pytest

from models import ActiveTemplatePointer, ContentTemplate
from services import template_reconciliation
from services.template_defaults import default_template_content
from services.template_reconciliation import (
    canonicalize_template_document,
    legacy_version_number,
    reconcile_active_flags,
    reconcile_template_structure,
)
from services.template_store import create_template_version, get_active_template


def _legacy_row(db, role, version, content, legacy_fields=None, is_active=False):
    row = ContentTemplate(
        role=role,
        version=version,
        is_active=is_active,
        content=content,
        legacy_fields=legacy_fields,
    )
    db.add(row)
    db.commit()
    return row


def _active_versions(db, role):
    return sorted(
        t.version
        for t in db.query(ContentTemplate)
        .filter(ContentTemplate.role == role, ContentTemplate.is_active.is_(True))
        .populate_existing()
    )


class TestCanonicalizeTemplateDocument:
    def test_nested_content_wins_over_top_level_lists(self):
        doc = {
            "userRole": "public",
            "content": {"masterChecklist": [{"id": "m1", "text": "Nested", "category": "morning"}]},
            "masterChecklist": [{"id": "x1", "text": "Top level"}],
            "workoutChecklist": [{"id": "w1", "text": "Walk", "category": "walking"}],
        }

        canonical = canonicalize_template_document(doc)

        assert canonical["role"] == "public"
        assert [i["text"] for i in canonical["content"]["masterChecklist"]] == ["Nested"]
        # Top-level list fills a key the nested content lacks.
        assert [i["id"] for i in canonical["content"]["workoutChecklist"]] == ["w1"]
        assert canonical["content"]["habitBreakChecklist"] == []

    def test_template_set_shape(self):
        doc = {
            "role": "admin",
            "version": "1.2.0",
            "isActive": True,
            "checklists": [
                {
                    "checklistId": "daily-master-checklist",
                    "title": "Master",
                    "items": [
                        {"itemId": "b", "text": "Second", "order": 2},
                        {"itemId": "a", "text": "First", "order": 1},
                    ],
                },
                {"checklistId": "habit-break-tracker", "items": [{"itemId": "h", "text": "No sugar", "order": 1}]},
            ],
            "timeBlocks": [{"blockId": "tb-1", "time": "4:00 AM", "label": "Wake", "order": 1}],
        }

        canonical = canonicalize_template_document(doc)

        assert canonical["role"] == "admin"
        assert canonical["version"] == 10200
        assert canonical["isActive"] is True
        assert [i["id"] for i in canonical["content"]["masterChecklist"]] == ["a", "b"]
        assert [i["order"] for i in canonical["content"]["masterChecklist"]] == [1, 2]
        assert canonical["content"]["habitBreakChecklist"][0]["id"] == "h"
        assert canonical["content"]["timeBlocks"][0]["id"] == "tb-1"

    def test_missing_ids_filled_deterministically(self):
        doc = {"content": {"masterChecklist": [
            {"text": "One", "category": "work"},
            {"text": "Two", "category": "work"},
        ], "timeBlocks": [{"time": "5:00 AM", "label": "Block"}]}}

        first = canonicalize_template_document(doc)
        second = canonicalize_template_document(doc)

        assert [i["id"] for i in first["content"]["masterChecklist"]] == ["mc-work-001", "mc-work-002"]
        assert first["content"]["timeBlocks"][0]["id"] == "block-1"
        assert first == second

    def test_duplicate_ids_made_unique(self):
        doc = {"content": {"workoutChecklist": [{"id": "w", "text": "A"}, {"id": "w", "text": "B"}]}}

        ids = [i["id"] for i in canonicalize_template_document(doc)["content"]["workoutChecklist"]]

        assert ids == ["w", "w-2"]

    @pytest.mark.parametrize("value,expected", [
        (3, 3), ("2.0.1", 20001), ("1.0.0", 10000), ("v1", None), (None, None), (True, None), (0, None),
    ])
    def test_legacy_version_number(self, value, expected):
        assert legacy_version_number(value) == expected


class TestReconcileTemplateStructure:
    def test_rewrites_legacy_rows_and_bumps_revision(self, db_session):
        row = _legacy_row(
            db_session,
            "public",
            1,
            content={"masterChecklist": [{"text": "Plan the day", "category": "morning"}]},
            legacy_fields={"workoutChecklist": [{"id": "w1", "text": "Run", "category": "cardio"}]},
        )

        report = reconcile_template_structure(db_session)

        db_session.refresh(row)
        assert report["rewritten"] == ["public@v1"]
        assert row.revision == 2
        assert row.legacy_fields is None
        assert row.content["masterChecklist"][0]["id"] == "mc-morning-001"
        assert row.content["workoutChecklist"][0]["id"] == "w1"

    def test_second_run_is_noop(self, db_session):
        _legacy_row(db_session, "public", 1, content={}, legacy_fields={"masterChecklist": [{"id": "m", "text": "x"}]})

        reconcile_template_structure(db_session)
        report = reconcile_template_structure(db_session)

        assert report["rewritten"] == []
        assert report["unchanged"] == 1

    def test_canonical_rows_untouched(self, db_session):
        template = create_template_version(db_session, "public", default_template_content("public"), activate=True)

        report = reconcile_template_structure(db_session)

        db_session.refresh(template)
        assert report["rewritten"] == []
        assert template.revision == 1

    def test_rows_without_order_untouched(self, db_session):
        template = create_template_version(
            db_session,
            "public",
            {
                "masterChecklist": [{"id": "m2", "text": "Stretch"}, {"id": "m1", "text": "Drink water"}],
                "timeBlocks": [{"id": "b1", "time": "4:00 AM", "label": "Wake"}],
            },
        )

        dry = reconcile_template_structure(db_session, dry_run=True)
        report = reconcile_template_structure(db_session)

        db_session.refresh(template)
        assert dry["rewritten"] == []
        assert report["rewritten"] == []
        assert template.revision == 1
        assert [i["id"] for i in template.content["masterChecklist"]] == ["m2", "m1"]
        assert "order" not in template.content["masterChecklist"][0]

    def test_explicit_order_kept_as_stored(self, db_session):
        content = default_template_content("public")
        content["workoutChecklist"][0]["order"] = 10
        template = create_template_version(db_session, "public", content)

        report = reconcile_template_structure(db_session)

        db_session.refresh(template)
        assert report["rewritten"] == []
        assert template.content["workoutChecklist"][0]["order"] == 10

    def test_dry_run_changes_nothing(self, db_session):
        row = _legacy_row(db_session, "public", 1, content={}, legacy_fields={"masterChecklist": [{"id": "m", "text": "x"}]})

        report = reconcile_template_structure(db_session, dry_run=True)

        db_session.refresh(row)
        assert report["rewritten"] == ["public@v1"]
        assert row.legacy_fields is not None
        assert row.revision == 1

    def test_concurrently_modified_row_is_skipped(self, db_session, monkeypatch):
        row = _legacy_row(db_session, "public", 1, content={}, legacy_fields={"masterChecklist": [{"id": "m", "text": "x"}]})
        real_canonicalize = template_reconciliation.canonicalize_template_document

        def edit_during_reconcile(doc):
            # An admin save lands between our read and our guarded write.
            db_session.query(ContentTemplate).filter(ContentTemplate.id == row.id).update(
                {ContentTemplate.revision: ContentTemplate.revision + 1}, synchronize_session=False
            )
            return real_canonicalize(doc)

        monkeypatch.setattr(template_reconciliation, "canonicalize_template_document", edit_during_reconcile)

        report = reconcile_template_structure(db_session)

        assert report["skipped_concurrent"] == ["public@v1"]
        assert report["rewritten"] == []
        db_session.refresh(row)
        assert row.legacy_fields is not None


class TestReconcileActiveFlags:
    def test_prefers_pointer_target(self, db_session):
        create_template_version(db_session, "public", default_template_content("public"), activate=True)
        create_template_version(db_session, "public", default_template_content("public"))
        # Stale flags: pointer says v1, flag says v2.
        db_session.query(ContentTemplate).filter(ContentTemplate.version == 1).update({ContentTemplate.is_active: False})
        db_session.query(ContentTemplate).filter(ContentTemplate.version == 2).update({ContentTemplate.is_active: True})
        db_session.commit()

        report = reconcile_active_flags(db_session)

        assert report["roles"]["public"]["status"] == "repaired"
        assert _active_versions(db_session, "public") == [1]

    def test_without_pointer_highest_flagged_wins(self, db_session):
        _legacy_row(db_session, "public", 1, default_template_content("public"))
        _legacy_row(db_session, "public", 2, default_template_content("public"), is_active=True)
        _legacy_row(db_session, "public", 3, default_template_content("public"))

        report = reconcile_active_flags(db_session)

        assert report["roles"]["public"] == {"status": "repaired", "version": 2, "flagged_before": [2]}
        assert _active_versions(db_session, "public") == [2]
        pointer = db_session.query(ActiveTemplatePointer).filter(ActiveTemplatePointer.role == "public").one()
        assert get_active_template(db_session, "public")["id"] == str(pointer.template_id)

    def test_no_active_requires_promote_latest(self, db_session):
        _legacy_row(db_session, "public", 1, default_template_content("public"))
        _legacy_row(db_session, "public", 2, default_template_content("public"))

        report = reconcile_active_flags(db_session)
        assert report["roles"]["public"]["status"] == "no_active"
        assert _active_versions(db_session, "public") == []

        report = reconcile_active_flags(db_session, promote_latest=True)
        assert report["roles"]["public"]["status"] == "repaired"
        assert _active_versions(db_session, "public") == [2]

    def test_consistent_roles_report_ok_and_idempotent(self, db_session):
        create_template_version(db_session, "public", default_template_content("public"), activate=True)

        first = reconcile_active_flags(db_session)
        second = reconcile_active_flags(db_session)

        assert first["roles"]["public"] == {"status": "ok", "version": 1}
        assert second == first
        assert first["roles"]["admin"] == {"status": "no_templates"}

    def test_dry_run_reports_without_writing(self, db_session):
        _legacy_row(db_session, "public", 1, default_template_content("public"), is_active=True)

        report = reconcile_active_flags(db_session, dry_run=True)

        assert report["roles"]["public"]["status"] == "repaired"
        assert db_session.query(ActiveTemplatePointer).count() == 0
