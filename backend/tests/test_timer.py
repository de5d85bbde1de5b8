"""Tests for the timer and work-entry endpoints.

Covers:
- start / stop / status and the single-active-timer invariant
- manual entries: ordering validation, overlap conflicts, edit with self-exclusion
- range queries: validation and the 31-day cap
- per-user isolation and the CSRF requirement on mutations
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from tests.conftest import create_entry, new_client
from worklog.errors import ConflictError
from worklog.models.user import User
from worklog.models.work_entry import WorkEntry
from worklog.services import timer_service

RANGE = {"from": "2024-03-04T00:00:00Z", "to": "2024-03-09T00:00:00Z"}


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


class TestTimer:
    """POST /start, POST /stop, GET /status."""

    def test_status_initially_idle(self, auth_client):
        resp = auth_client.get("/api/timer/status")
        assert resp.status_code == 200
        assert resp.json() == {"activeEntry": None}

    def test_start_then_stop(self, auth_client):
        start = auth_client.post("/api/timer/start")
        assert start.status_code == 201
        entry = start.json()["entry"]
        assert entry["endAt"] is None
        assert entry["durationMinutes"] is None
        assert entry["startAt"].endswith("Z")

        status = auth_client.get("/api/timer/status").json()
        assert status["activeEntry"]["id"] == entry["id"]

        stop = auth_client.post("/api/timer/stop")
        assert stop.status_code == 200
        stopped = stop.json()["entry"]
        assert stopped["id"] == entry["id"]
        assert stopped["endAt"] is not None
        assert stopped["durationMinutes"] == 0

        assert auth_client.get("/api/timer/status").json() == {"activeEntry": None}

    def test_second_start_conflicts(self, auth_client):
        assert auth_client.post("/api/timer/start").status_code == 201
        resp = auth_client.post("/api/timer/start")
        assert resp.status_code == 409
        assert resp.json() == {"error": "A timer is already running."}

    def test_stop_without_active_conflicts(self, auth_client):
        resp = auth_client.post("/api/timer/stop")
        assert resp.status_code == 409

    def test_start_blocked_by_future_manual_entry(self, auth_client):
        soon = datetime.now(timezone.utc) + timedelta(hours=1)
        assert create_entry(auth_client, _iso(soon), _iso(soon + timedelta(hours=1))).status_code == 201
        assert auth_client.post("/api/timer/start").status_code == 409

    def test_stopped_entry_listed_for_today(self, auth_client):
        auth_client.post("/api/timer/start")
        auth_client.post("/api/timer/stop")
        now = datetime.now(timezone.utc)
        resp = auth_client.get("/api/timer/entries", params={
            "from": _iso(now - timedelta(days=7)),
            "to": _iso(now + timedelta(days=7)),
        })
        assert resp.status_code == 200
        entries = resp.json()["entries"]
        assert len(entries) == 1
        assert entries[0]["durationMinutes"] is not None

    def test_timer_requires_session(self, client):
        assert client.get("/api/timer/status").status_code == 401


class TestManualEntries:
    """POST /entries and PUT /entries/{id}."""

    def test_create_entry(self, auth_client):
        resp = create_entry(auth_client, "2024-03-04T08:00:00Z", "2024-03-04T12:30:00Z")
        assert resp.status_code == 201
        entry = resp.json()["entry"]
        assert entry["startAt"] == "2024-03-04T08:00:00Z"
        assert entry["endAt"] == "2024-03-04T12:30:00Z"
        assert entry["durationMinutes"] == 270
        assert set(entry) == {"id", "startAt", "endAt", "durationMinutes", "createdAt", "updatedAt"}

    def test_offset_timestamps_normalised_to_utc(self, auth_client):
        resp = create_entry(auth_client, "2024-03-04T09:00:00+01:00", "2024-03-04T10:00:00+01:00")
        assert resp.status_code == 201
        assert resp.json()["entry"]["startAt"] == "2024-03-04T08:00:00Z"

    def test_missing_or_garbage_times(self, auth_client):
        assert create_entry(auth_client, "", "2024-03-04T12:00:00Z").status_code == 400
        assert create_entry(auth_client, "yesterday", "2024-03-04T12:00:00Z").status_code == 400

    def test_end_must_follow_start(self, auth_client):
        resp = create_entry(auth_client, "2024-03-04T12:00:00Z", "2024-03-04T12:00:00Z")
        assert resp.status_code == 400
        assert resp.json() == {"error": "endAt must be after startAt."}

    def test_overlapping_entry_conflicts(self, auth_client):
        create_entry(auth_client, "2024-03-04T08:00:00Z", "2024-03-04T12:00:00Z")
        resp = create_entry(auth_client, "2024-03-04T11:00:00Z", "2024-03-04T13:00:00Z")
        assert resp.status_code == 409
        assert resp.json() == {"error": "Interval overlaps another entry."}

    def test_adjacent_entry_allowed(self, auth_client):
        create_entry(auth_client, "2024-03-04T08:00:00Z", "2024-03-04T12:00:00Z")
        resp = create_entry(auth_client, "2024-03-04T12:00:00Z", "2024-03-04T13:00:00Z")
        assert resp.status_code == 201

    def test_running_timer_blocks_later_intervals(self, auth_client):
        auth_client.post("/api/timer/start")
        future = datetime.now(timezone.utc) + timedelta(days=2)
        resp = create_entry(auth_client, _iso(future), _iso(future + timedelta(hours=1)))
        assert resp.status_code == 409

    def test_update_entry(self, auth_client):
        entry = create_entry(auth_client, "2024-03-04T08:00:00Z", "2024-03-04T12:00:00Z").json()["entry"]
        resp = auth_client.put(f"/api/timer/entries/{entry['id']}", json={
            "startAt": "2024-03-04T07:00:00Z", "endAt": "2024-03-04T12:00:00Z",
        })
        assert resp.status_code == 200
        assert resp.json()["entry"]["durationMinutes"] == 300

    def test_update_into_other_entry_conflicts(self, auth_client):
        first = create_entry(auth_client, "2024-03-04T08:00:00Z", "2024-03-04T10:00:00Z").json()["entry"]
        create_entry(auth_client, "2024-03-04T11:00:00Z", "2024-03-04T12:00:00Z")
        resp = auth_client.put(f"/api/timer/entries/{first['id']}", json={
            "startAt": "2024-03-04T08:00:00Z", "endAt": "2024-03-04T11:30:00Z",
        })
        assert resp.status_code == 409

    def test_update_unknown_entry(self, auth_client):
        resp = auth_client.put("/api/timer/entries/does-not-exist", json={
            "startAt": "2024-03-04T08:00:00Z", "endAt": "2024-03-04T09:00:00Z",
        })
        assert resp.status_code == 404

    def test_update_invalid_order(self, auth_client):
        entry = create_entry(auth_client, "2024-03-04T08:00:00Z", "2024-03-04T12:00:00Z").json()["entry"]
        resp = auth_client.put(f"/api/timer/entries/{entry['id']}", json={
            "startAt": "2024-03-04T12:00:00Z", "endAt": "2024-03-04T08:00:00Z",
        })
        assert resp.status_code == 400

    def test_other_users_entries_are_invisible(self, auth_client):
        entry = create_entry(auth_client, "2024-03-04T08:00:00Z", "2024-03-04T12:00:00Z").json()["entry"]
        other = new_client("other@example.com")

        assert other.get("/api/timer/entries", params=RANGE).json() == {"entries": []}
        resp = other.put(f"/api/timer/entries/{entry['id']}", json={
            "startAt": "2024-03-05T08:00:00Z", "endAt": "2024-03-05T09:00:00Z",
        })
        assert resp.status_code == 404
        # same interval is free for a different user
        assert create_entry(other, "2024-03-04T08:00:00Z", "2024-03-04T12:00:00Z").status_code == 201

    def test_mutation_without_csrf_header_forbidden(self, auth_client):
        del auth_client.headers["X-CSRF-Token"]
        resp = create_entry(auth_client, "2024-03-04T08:00:00Z", "2024-03-04T12:00:00Z")
        assert resp.status_code == 403
        assert auth_client.post("/api/timer/start").status_code == 403

    def test_mutation_with_wrong_csrf_header_forbidden(self, auth_client):
        resp = auth_client.post("/api/timer/start", headers={"X-CSRF-Token": "forged"})
        assert resp.status_code == 403
        assert resp.json() == {"error": "Invalid CSRF token."}


class TestEntryRange:
    """GET /entries?from&to."""

    def test_list_sorted_and_filtered(self, auth_client):
        create_entry(auth_client, "2024-03-05T13:00:00Z", "2024-03-05T17:00:00Z")
        create_entry(auth_client, "2024-03-05T08:00:00Z", "2024-03-05T12:00:00Z")
        create_entry(auth_client, "2024-03-20T08:00:00Z", "2024-03-20T12:00:00Z")
        resp = auth_client.get("/api/timer/entries", params=RANGE)
        starts = [e["startAt"] for e in resp.json()["entries"]]
        assert starts == ["2024-03-05T08:00:00Z", "2024-03-05T13:00:00Z"]

    def test_entry_spanning_range_start_included(self, auth_client):
        create_entry(auth_client, "2024-03-03T22:00:00Z", "2024-03-04T02:00:00Z")
        resp = auth_client.get("/api/timer/entries", params=RANGE)
        assert len(resp.json()["entries"]) == 1

    def test_invalid_range(self, auth_client):
        assert auth_client.get("/api/timer/entries").status_code == 400
        resp = auth_client.get("/api/timer/entries", params={"from": RANGE["to"], "to": RANGE["from"]})
        assert resp.status_code == 400

    def test_range_longer_than_31_days(self, auth_client):
        resp = auth_client.get("/api/timer/entries", params={
            "from": "2024-01-01T00:00:00Z", "to": "2024-02-15T00:00:00Z",
        })
        assert resp.status_code == 400
        assert resp.json() == {"error": "Range too wide (max 31 days)."}


class TestSingleActiveTimer:
    """The unique open-entry index backs up the service-level check."""

    def _user(self, db, email="solo@example.com"):
        user = User(name="Solo", email=email, password_hash="x")
        db.add(user)
        db.commit()
        return user

    def test_schema_rejects_second_open_entry(self, db):
        user = self._user(db)
        now = datetime.now(timezone.utc)
        db.add(WorkEntry(user_id=user.id, start_at=now - timedelta(hours=2)))
        db.commit()

        db.add(WorkEntry(user_id=user.id, start_at=now - timedelta(hours=1)))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_schema_allows_closed_entries_and_other_users(self, db):
        user = self._user(db)
        other = self._user(db, email="duo@example.com")
        now = datetime.now(timezone.utc)
        db.add(WorkEntry(user_id=user.id, start_at=now - timedelta(hours=5), end_at=now - timedelta(hours=4)))
        db.add(WorkEntry(user_id=user.id, start_at=now - timedelta(hours=3), end_at=now - timedelta(hours=2)))
        db.add(WorkEntry(user_id=user.id, start_at=now - timedelta(hours=1)))
        db.add(WorkEntry(user_id=other.id, start_at=now - timedelta(hours=1)))
        db.commit()
        assert db.query(WorkEntry).filter(WorkEntry.end_at.is_(None)).count() == 2

    def test_start_losing_a_race_is_a_conflict(self, db, monkeypatch):
        user = self._user(db)
        db.add(WorkEntry(user_id=user.id, start_at=datetime.now(timezone.utc) - timedelta(minutes=5)))
        db.commit()

        # both pre-insert checks pass, as for a request interleaved with another start
        monkeypatch.setattr(timer_service, "get_active_entry", lambda db, user_id: None)
        monkeypatch.setattr(timer_service, "_check_overlap", lambda *args, **kwargs: None)

        with pytest.raises(ConflictError) as excinfo:
            timer_service.start_timer(db, user.id)
        assert excinfo.value.message == "A timer is already running."
        assert db.query(WorkEntry).filter(WorkEntry.user_id == user.id, WorkEntry.end_at.is_(None)).count() == 1
