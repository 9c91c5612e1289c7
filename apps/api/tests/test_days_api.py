"""
API tests for /v1/days.
"""
from conftest import auth_headers, make_user
from models import DayEntry


def test_requires_authentication(client):
    resp = client.get("/v1/days/2024-01-01")
    assert resp.status_code == 401


def test_get_day_hydrates_from_active_template(client, db_session, public_user, public_template):
    resp = client.get("/v1/days/2024-01-01", headers=auth_headers(public_user))

    assert resp.status_code == 200
    body = resp.json()
    assert body["effective_role"] == "public"
    assert body["entry"]["day"] == "2024-01-01"
    assert body["entry"]["template_version"] == 1
    assert [i["id"] for i in body["entry"]["master_checklist"]] == [
        i["id"] for i in public_template.content["masterChecklist"]
    ]
    assert all(i["completed"] is False for i in body["entry"]["master_checklist"])
    assert body["summary"]["score"] == 0


def test_get_day_twice_returns_same_entry(client, public_user, public_template):
    headers = auth_headers(public_user)

    first = client.get("/v1/days/2024-01-01", headers=headers).json()
    second = client.get("/v1/days/2024-01-01", headers=headers).json()

    assert first["entry"]["id"] == second["entry"]["id"]


def test_invalid_day_is_422(client, db_session, public_user, public_template):
    resp = client.get("/v1/days/2024-02-30", headers=auth_headers(public_user))

    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR_DATE"
    assert db_session.query(DayEntry).count() == 0


def test_missing_template_is_configuration_error(client, db_session, public_user):
    resp = client.get("/v1/days/2024-01-01", headers=auth_headers(public_user))

    assert resp.status_code == 500
    assert resp.json()["error_code"] == "CONFIGURATION_ERROR"
    assert db_session.query(DayEntry).count() == 0


def test_toggle_checklist_item(client, public_user, public_template):
    headers = auth_headers(public_user)

    resp = client.post("/v1/days/2024-01-01/checklists/masterChecklist/morning-1/toggle", headers=headers)

    assert resp.status_code == 200
    assert resp.json()["item"]["completed"] is True
    day = client.get("/v1/days/2024-01-01", headers=headers).json()
    assert day["entry"]["master_checklist"][0]["completed"] is True
    assert day["summary"]["lists"]["masterChecklist"]["completed"] == 1


def test_toggle_unknown_item_is_404(client, public_user, public_template):
    resp = client.post(
        "/v1/days/2024-01-01/checklists/masterChecklist/missing/toggle", headers=auth_headers(public_user)
    )
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "NOT_FOUND"


def test_toggle_unknown_list_is_422(client, public_user, public_template):
    resp = client.post("/v1/days/2024-01-01/checklists/shopping/x/toggle", headers=auth_headers(public_user))
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR_LIST_NAME"


def test_time_block_toggle_and_notes(client, public_user, public_template):
    headers = auth_headers(public_user)

    toggled = client.post("/v1/days/2024-01-01/blocks/block-2/toggle", headers=headers)
    noted = client.post("/v1/days/2024-01-01/blocks/block-2/notes", json={"text": "walked"}, headers=headers)

    assert toggled.status_code == 200
    assert toggled.json()["block"]["complete"] is True
    assert noted.status_code == 201
    assert noted.json()["block"]["notes"] == ["walked"]


def test_todo_lifecycle(client, public_user, public_template):
    headers = auth_headers(public_user)

    created = client.post(
        "/v1/days/2024-01-01/todos", json={"text": "Buy milk", "due_date": "2024-01-02"}, headers=headers
    )
    assert created.status_code == 201
    item_id = created.json()["item"]["id"]

    day = client.get("/v1/days/2024-01-01", headers=headers).json()
    assert [t["id"] for t in day["entry"]["todo_list"]] == [item_id]

    deleted = client.delete(f"/v1/days/2024-01-01/todos/{item_id}", headers=headers)
    assert deleted.status_code == 204
    assert client.delete(f"/v1/days/2024-01-01/todos/{item_id}", headers=headers).status_code == 404


def test_empty_todo_text_rejected(client, public_user, public_template):
    resp = client.post("/v1/days/2024-01-01/todos", json={"text": ""}, headers=auth_headers(public_user))
    assert resp.status_code == 422


def test_update_notes(client, public_user, public_template):
    resp = client.put("/v1/days/2024-01-01/notes", json={"notes": "Rested"}, headers=auth_headers(public_user))

    assert resp.status_code == 200
    assert resp.json()["entry"]["notes"] == "Rested"


def test_wake_time_is_per_day(client, public_user, public_template):
    headers = auth_headers(public_user)

    assert client.get("/v1/days/2024-01-01", headers=headers).json()["wake_time"] == "04:00"

    resp = client.put("/v1/days/2024-01-01/wake-time", json={"wake_time": "05:30"}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["wake_time"] == "05:30"
    assert resp.json()["entry"]["wake_time"] == "05:30"
    assert client.get("/v1/days/2024-01-01", headers=headers).json()["wake_time"] == "05:30"
    assert client.get("/v1/days/2024-01-02", headers=headers).json()["wake_time"] == "04:00"


def test_invalid_wake_time(client, public_user, public_template):
    resp = client.put("/v1/days/2024-01-01/wake-time", json={"wake_time": "25:00"}, headers=auth_headers(public_user))

    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR_WAKE_TIME"


def test_admin_in_public_view_gets_public_content(client, db_session, public_template, admin_template):
    admin = make_user(db_session, "admin")
    headers = auth_headers(admin)

    own = client.get("/v1/days/2024-01-01", headers=headers).json()
    assert own["effective_role"] == "admin"
    assert own["entry"]["template_version"] == admin_template.version

    assert client.post("/v1/admin/view-mode", json={"view_mode": "public"}, headers=headers).status_code == 200

    # Existing day keeps its admin seed; a new day seeds from public.
    again = client.get("/v1/days/2024-01-01", headers=headers).json()
    fresh = client.get("/v1/days/2024-01-02", headers=headers).json()
    assert again["entry"]["id"] == own["entry"]["id"]
    assert fresh["effective_role"] == "public"
    assert len(fresh["entry"]["master_checklist"]) == len(public_template.content["masterChecklist"])
