"""
Tests for day hydration from the active content template.

Covers:
- a fresh day mirrors the active template, everything incomplete
- repeat hydration returns the stored day untouched
- template activation never rewrites an existing day
- no active template: ConfigurationError and nothing persisted
- malformed input rejected before any store access
- the loser of a first-hydration race returns the winner's row
"""
from datetime import date

import pytest

from conftest import make_user
from core.exceptions import ConfigurationError, StorageError, ValidationError
from models import DayEntry
from services import hydration
from services.day_entries import toggle_checklist_item
from services.hydration import build_day_entry_values, hydrate, seed_checklist_items, seed_time_blocks
from services.template_store import activate_template, create_template_version, get_active_template


def _content(master):
    return {
        "masterChecklist": master,
        "habitBreakChecklist": [{"id": "hb1", "text": "No doomscrolling", "category": "lsd"}],
        "workoutChecklist": [{"id": "w1", "text": "Stretch", "category": "stretching"}],
        "timeBlocks": [{"id": "block-1", "time": "4:00 AM", "label": "Early Morning Block 1"}],
    }


def _day_count(db, user_id):
    return db.query(DayEntry).filter(DayEntry.user_id == user_id).count()


class TestSeedHelpers:
    def test_checklist_items_start_incomplete_and_keep_identity(self):
        template_items = [{"id": "m1", "text": "Drink water", "category": "morning", "order": 1}]

        seeded = seed_checklist_items(template_items)

        assert seeded == [{
            "id": "m1",
            "text": "Drink water",
            "category": "morning",
            "order": 1,
            "completed": False,
            "completedAt": None,
        }]
        # The template list itself is not mutated.
        assert "completed" not in template_items[0]

    def test_time_blocks_start_open_without_notes(self):
        seeded = seed_time_blocks([{"id": "block-1", "time": "4:00 AM", "label": "Block 1"}])

        assert seeded[0]["complete"] is False
        assert seeded[0]["notes"] == []
        assert seeded[0]["activities"] == []

    def test_missing_lists_seed_as_empty(self):
        values = build_day_entry_values(
            user_id=None,
            day=date(2024, 1, 1),
            template={"id": "6f1c2f4e-8c55-4b4e-9d6e-4f4b8f1f2a10", "version": 2, "content": {}},
        )

        assert values["master_checklist"] == []
        assert values["time_blocks"] == []
        assert values["todo_list"] == []
        assert values["template_version"] == 2


class TestHydrate:
    def test_fresh_day_mirrors_active_template(self, db_session, public_user, public_template):
        entry = hydrate(db_session, public_user.id, "public", "2024-03-05")
        content = public_template.content

        for key, column in hydration.CHECKLIST_COLUMNS.items():
            stored = getattr(entry, column)
            assert [i["id"] for i in stored] == [i["id"] for i in content[key]]
            assert [i["text"] for i in stored] == [i["text"] for i in content[key]]
            assert all(i["completed"] is False and i["completedAt"] is None for i in stored)

        assert [b["id"] for b in entry.time_blocks] == [b["id"] for b in content["timeBlocks"]]
        assert all(b["complete"] is False for b in entry.time_blocks)
        assert entry.todo_list == []
        assert entry.notes == ""
        assert entry.template_version == public_template.version

    def test_sequential_hydrates_return_identical_content(self, db_session, public_user, public_template):
        first = hydrate(db_session, public_user.id, "public", "2024-03-05")
        snapshot = (first.id, first.master_checklist, first.time_blocks)

        second = hydrate(db_session, public_user.id, "public", "2024-03-05")

        assert (second.id, second.master_checklist, second.time_blocks) == snapshot
        assert _day_count(db_session, public_user.id) == 1

    def test_role_is_normalized(self, db_session, public_user, public_template):
        entry = hydrate(db_session, public_user.id, " Public ", "2024-03-05")
        assert entry.template_version == public_template.version

    def test_days_are_independent(self, db_session, public_user, public_template):
        monday = hydrate(db_session, public_user.id, "public", "2024-03-04")
        tuesday = hydrate(db_session, public_user.id, "public", "2024-03-05")

        assert monday.id != tuesday.id
        assert _day_count(db_session, public_user.id) == 2

    def test_users_are_independent(self, db_session, public_user, public_template):
        other = make_user(db_session, "public")

        mine = hydrate(db_session, public_user.id, "public", "2024-03-05")
        theirs = hydrate(db_session, other.id, "public", "2024-03-05")

        assert mine.id != theirs.id

    def test_first_access_commits_pending_session_work(self, db_session, public_user, public_template):
        public_user.display_name = "Seeded alongside"
        hydrate(db_session, public_user.id, "public", "2024-03-05")
        db_session.rollback()

        assert public_user.display_name == "Seeded alongside"
        assert _day_count(db_session, public_user.id) == 1

    def test_reading_existing_day_does_not_commit(self, db_session, public_user, public_template):
        hydrate(db_session, public_user.id, "public", "2024-03-05")
        public_user.display_name = "Not committed"
        hydrate(db_session, public_user.id, "public", "2024-03-05")
        db_session.rollback()

        assert public_user.display_name != "Not committed"

    def test_no_active_template_is_configuration_error(self, db_session, public_user):
        with pytest.raises(ConfigurationError):
            hydrate(db_session, public_user.id, "public", "2024-03-05")

        assert _day_count(db_session, public_user.id) == 0

    def test_inactive_versions_do_not_count_as_active(self, db_session, public_user):
        create_template_version(db_session, "public", _content([{"id": "m1", "text": "Drink water"}]))

        with pytest.raises(ConfigurationError):
            hydrate(db_session, public_user.id, "public", "2024-03-05")
        assert _day_count(db_session, public_user.id) == 0

    @pytest.mark.parametrize("bad_day", ["2024-13-01", "2024-02-30", "24-01-01", "2024-01-01T00:00:00", "", None])
    def test_malformed_day_rejected(self, db_session, public_user, public_template, bad_day):
        with pytest.raises(ValidationError) as exc:
            hydrate(db_session, public_user.id, "public", bad_day)
        assert exc.value.field == "date"
        assert _day_count(db_session, public_user.id) == 0

    def test_unknown_role_rejected(self, db_session, public_user, public_template):
        with pytest.raises(ValidationError) as exc:
            hydrate(db_session, public_user.id, "superuser", "2024-03-05")
        assert exc.value.field == "role"

    def test_role_without_template_does_not_borrow_another_roles(self, db_session, admin_user, public_template):
        with pytest.raises(ConfigurationError):
            hydrate(db_session, admin_user.id, "admin", "2024-03-05")


class TestTemplateChangesNeverReachExistingDays:
    def test_mark_complete_then_activate_new_version(self, db_session, public_user):
        v1 = create_template_version(db_session, "public", _content([{"id": "m0", "text": "Old item"}]))
        v2 = create_template_version(db_session, "public", _content([{"id": "m0", "text": "Old item"}]))
        v3 = create_template_version(
            db_session, "public", _content([{"id": "m1", "text": "Drink water"}]), activate=True
        )
        assert (v1.version, v2.version, v3.version) == (1, 2, 3)

        entry = hydrate(db_session, public_user.id, "public", "2024-01-01")
        assert entry.master_checklist[0]["id"] == "m1"
        assert entry.master_checklist[0]["completed"] is False

        toggle_checklist_item(db_session, public_user.id, "public", "2024-01-01", "masterChecklist", "m1")

        create_template_version(
            db_session, "public", _content([{"id": "m1", "text": "Drink two glasses of water"}])
        )
        activate_template(db_session, "public", 4)
        assert get_active_template(db_session, "public")["version"] == 4

        again = hydrate(db_session, public_user.id, "public", "2024-01-01")
        assert again.master_checklist[0]["completed"] is True
        assert again.master_checklist[0]["text"] == "Drink water"
        assert again.template_version == 3

        # A day first opened after the activation gets the new text.
        later = hydrate(db_session, public_user.id, "public", "2024-01-02")
        assert later.master_checklist[0]["text"] == "Drink two glasses of water"
        assert later.master_checklist[0]["completed"] is False


class TestFirstHydrationRace:
    def test_loser_returns_winners_row(self, db_session, public_user, public_template, monkeypatch, caplog):
        # Another request seeds the day between our "not found" read and our insert.
        winner = hydrate(db_session, public_user.id, "public", "2024-03-05")
        winner_id = winner.id
        real_find = hydration.find_day_entry
        calls = {"n": 0}

        def stale_first_read(db, user_id, day):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_find(db, user_id, day)

        monkeypatch.setattr(hydration, "find_day_entry", stale_first_read)

        with caplog.at_level("INFO", logger="services.hydration"):
            entry = hydrate(db_session, public_user.id, "public", "2024-03-05")

        assert entry.id == winner_id
        assert _day_count(db_session, public_user.id) == 1
        assert any("Lost first-hydration race" in r.getMessage() for r in caplog.records)

    def test_unreadable_row_after_insert_is_storage_error(self, db_session, public_user, public_template, monkeypatch):
        monkeypatch.setattr(hydration, "find_day_entry", lambda db, user_id, day: None)

        with pytest.raises(StorageError):
            hydrate(db_session, public_user.id, "public", "2024-03-05")
