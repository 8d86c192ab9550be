import pytest
from counts.models import CountSession
from inventory.tests.factories import InventoryRecordFactory, LocationFactory, StaffUserFactory, UserFactory
from rest_framework.test import APIClient

HIDDEN_LINE_KEYS = {"system_qty", "diff_qty", "is_discrepancy"}


def _client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def _create(staff_client, scope=None):
    resp = staff_client.post("/api/v1/counts/sessions/", {"session_type": "cycle", "scope": scope or {}}, format="json")
    assert resp.status_code == 201, resp.content
    return resp.json()


@pytest.mark.django_db
def test_only_staff_can_create_sessions(stocked_record):
    resp = _client(UserFactory()).post("/api/v1/counts/sessions/", {"session_type": "cycle"}, format="json")
    assert resp.status_code == 403

    body = _create(_client(StaffUserFactory()), {"zones": ["A"]})
    assert body["status"] == "active"
    assert body["total_lines"] == 1
    assert body["code"].startswith("CNT-")


@pytest.mark.django_db
def test_bad_scope_returns_400(stocked_record):
    resp = _client(StaffUserFactory()).post(
        "/api/v1/counts/sessions/", {"session_type": "cycle", "scope": {"abc_classes": ["X"]}}, format="json"
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["type"] == "ValidationError"


@pytest.mark.django_db
def test_blind_lines_for_counters(stocked_record):
    staff = _client(StaffUserFactory())
    session = _create(staff)
    counter = _client(UserFactory())

    blind = counter.get(f"/api/v1/counts/sessions/{session['id']}/lines/").json()["results"]
    assert len(blind) == 1
    assert HIDDEN_LINE_KEYS.isdisjoint(blind[0])
    assert blind[0]["location_code"] == "A1"

    entered = counter.post(
        f"/api/v1/counts/sessions/{session['id']}/lines/",
        {"lines": [{"line_id": blind[0]["id"], "counted_qty": 7}]},
        format="json",
    )
    assert entered.status_code == 200
    assert HIDDEN_LINE_KEYS.isdisjoint(entered.json()[0])
    assert entered.json()[0]["counted_qty"] == 7

    full = staff.get(f"/api/v1/counts/sessions/{session['id']}/lines/").json()["results"]
    assert full[0]["system_qty"] == 10
    assert full[0]["diff_qty"] == -3
    assert full[0]["is_discrepancy"] is True

    detail = counter.get(f"/api/v1/counts/sessions/{session['id']}/").json()
    assert "discrepancy_lines" not in detail and "total_value_gap" not in detail
    assert detail["counted_lines"] == 1


@pytest.mark.django_db
def test_line_filters(stocked_record):
    InventoryRecordFactory(location=LocationFactory(code="A2", zone="A"), quantity=3)
    staff = _client(StaffUserFactory())
    session = _create(staff)
    url = f"/api/v1/counts/sessions/{session['id']}/lines/"
    lines = staff.get(url).json()["results"]
    a1 = next(line for line in lines if line["location_code"] == "A1")
    staff.post(url, {"lines": [{"line_id": a1["id"], "counted_qty": 9}]}, format="json")

    assert [line["location_code"] for line in staff.get(url, {"status": "counted"}).json()["results"]] == ["A1"]
    assert [line["location_code"] for line in staff.get(url, {"status": "uncounted"}).json()["results"]] == ["A2"]
    assert [line["location_code"] for line in staff.get(url, {"status": "discrepancy"}).json()["results"]] == ["A1"]
    # Counters cannot narrow to discrepant lines
    counter_lines = _client(UserFactory()).get(url, {"status": "discrepancy"}).json()["results"]
    assert len(counter_lines) == 2
    assert staff.get(url, {"status": "bogus"}).status_code == 400


@pytest.mark.django_db
def test_submit_and_approve_flow(stocked_record):
    staff = _client(StaffUserFactory())
    counter = _client(UserFactory())
    session = _create(staff, {"location_codes": ["A1"]})
    base = f"/api/v1/counts/sessions/{session['id']}"

    early = counter.post(f"{base}/submit/")
    assert early.status_code == 409
    assert early.json()["error"]["uncounted"] == 1

    line_id = counter.get(f"{base}/lines/").json()["results"][0]["id"]
    counter.post(f"{base}/lines/", {"lines": [{"line_id": line_id, "counted_qty": 14}]}, format="json")
    submitted = counter.post(f"{base}/submit/")
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "review"

    assert counter.post(f"{base}/approve/").status_code == 403
    approved = staff.post(f"{base}/approve/")
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["discrepancy_lines"] == 1

    stocked_record.refresh_from_db()
    assert stocked_record.quantity == 14
    assert staff.post(f"{base}/approve/").status_code == 409


@pytest.mark.django_db
def test_recount_and_cancel_endpoints(stocked_record):
    staff = _client(StaffUserFactory())
    session = _create(staff)
    base = f"/api/v1/counts/sessions/{session['id']}"
    line_id = staff.get(f"{base}/lines/").json()["results"][0]["id"]

    assert _client(UserFactory()).post(f"{base}/lines/{line_id}/recount/").status_code == 403
    flagged = staff.post(f"{base}/lines/{line_id}/recount/", {"notes": "Again"}, format="json")
    assert flagged.status_code == 200
    assert flagged.json()["recount_required"] is True

    cancelled = staff.post(f"{base}/cancel/")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert staff.post(f"{base}/cancel/").status_code == 409
    assert CountSession.objects.get(id=session["id"]).status == CountSession.STATUS_CANCELLED


@pytest.mark.django_db
def test_session_list_and_missing_session(stocked_record):
    staff = _client(StaffUserFactory())
    _create(staff)
    listed = staff.get("/api/v1/counts/sessions/", {"status": "active"}).json()["results"]
    assert len(listed) == 1
    assert staff.get("/api/v1/counts/sessions/", {"status": "approved"}).json()["results"] == []
    assert staff.get("/api/v1/counts/sessions/999999/").status_code == 404
    assert staff.get("/api/v1/counts/sessions/999999/lines/").status_code == 404

@pytest.mark.django_db
def test_counters_cannot_read_system_quantities_elsewhere(stocked_record):
    session = _create(_client(StaffUserFactory()), {"location_codes": ["A1"]})
    counter = _client(UserFactory())
    assert counter.get(f"/api/v1/counts/sessions/{session['id']}/lines/").status_code == 200

    assert counter.get("/api/v1/inventory/records/", {"location": "A1"}).status_code == 403
    assert counter.get("/api/v1/inventory/stock-items/", {"location": "A1"}).status_code == 403
    assert counter.get("/api/v1/inventory/movements/").status_code == 403


# EOF
