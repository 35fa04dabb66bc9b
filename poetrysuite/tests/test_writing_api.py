"""HTTP surface: statistics, streak, milestones, health and error contract."""

import logging
from datetime import date, datetime, timedelta, timezone

from fastapi.testclient import TestClient

from poetrysuite.core.errors import FetchError
from poetrysuite.features.records.store import set_record_store
from poetrysuite.main import app
from poetrysuite.models.streak import Achievement, StreakState
from poetrysuite.models.writing import DailyActivityLog, WritingRecord

NOW = "2024-01-03T15:30:00Z"


def seed(store):
    base = datetime(2024, 1, 3, 15, 30, tzinfo=timezone.utc)
    for offset, form in enumerate(["haiku", "haiku", "sonnet"]):
        store.add_record("u1", WritingRecord(id=f"p{offset}", created_at=base - timedelta(days=offset), word_count=50, category_tag=form))
    store.upsert_log("u1", DailyActivityLog(log_date=date(2024, 1, 3), minutes_spent=25, poems_written=1))
    store.set_streak("u1", StreakState(current_streak=7, longest_streak=5, last_active_date=date(2024, 1, 3)))
    store.add_achievement("u1", Achievement(id="a1", name="First Week", earned_at=base))


def test_statistics_endpoint(memory_store):
    seed(memory_store)
    client = TestClient(app)

    resp = client.get("/v1/writing/statistics", params={"user_id": "u1", "range": "week", "now": NOW})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["time_range"] == "week"
    assert data["total_poems"] == 3
    assert data["favorite_category"] == "haiku"
    assert data["total_minutes_writing"] == 25
    assert len(data["daily_activity"]) == 7
    assert data["streak"]["current_streak"] == 3


def test_statistics_for_unknown_user_is_zeroed():
    client = TestClient(app)
    resp = client.get("/v1/writing/statistics", params={"user_id": "ghost", "now": NOW})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total_poems"] == 0
    assert data["most_productive_day"] == "N/A"


def test_statistics_store_failure_is_zeroed():
    class Broken:
        async def fetch_writing_snapshot(self, user_id):
            raise FetchError("db unavailable")

    set_record_store(Broken())
    client = TestClient(app)
    resp = client.get("/v1/writing/statistics", params={"user_id": "u1", "now": NOW})

    assert resp.status_code == 200
    assert resp.json()["data"]["total_poems"] == 0


def test_streak_store_failure_is_zeroed():
    class Broken:
        async def fetch_streak_snapshot(self, user_id, today):
            raise FetchError("db unavailable")

    set_record_store(Broken())
    client = TestClient(app)
    resp = client.get("/v1/writing/streak", params={"user_id": "u1", "now": NOW})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["streak"]["current_streak"] == 0
    assert data["achievements"] == []
    assert data["next_milestone"]["threshold_days"] == 3


def test_invalid_range_has_standard_error_shape():
    client = TestClient(app)
    resp = client.get("/v1/writing/statistics", params={"user_id": "u1", "range": "decade"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["request_id"] == resp.headers.get("x-request-id")


def test_invalid_now_is_rejected():
    client = TestClient(app)
    resp = client.get("/v1/writing/statistics", params={"user_id": "u1", "now": "yesterday"})
    assert resp.status_code == 400


def test_streak_endpoint_applies_invariant(memory_store):
    seed(memory_store)
    client = TestClient(app)

    resp = client.get("/v1/writing/streak", params={"user_id": "u1", "now": NOW})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["streak"]["current_streak"] == 7
    assert data["streak"]["longest_streak"] == 7
    assert [a["name"] for a in data["achievements"]] == ["First Week"]
    assert data["today_log"]["minutes_spent"] == 25
    assert data["is_stale"] is False
    assert data["next_milestone"]["threshold_days"] == 14


def test_milestones_endpoint():
    client = TestClient(app)
    resp = client.get("/v1/writing/milestones", params={"current_streak": 10})

    body = resp.json()
    assert resp.status_code == 200
    assert len(body["milestones"]) == 8
    assert body["reached"] == [3, 7]
    assert body["next"]["label"] == "Fortnight of Verse"
    assert body["days_to_next"] == 4


def test_healthz_and_readyz():
    client = TestClient(app)
    assert client.get("/healthz").json() == {"status": "ok"}
    ready = client.get("/readyz").json()
    assert ready["ok"] is True
    assert ready["store"] == "memory"


def test_unknown_route_uses_error_contract():
    client = TestClient(app)
    resp = client.get("/v1/writing/nope")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_request_id_is_echoed_and_logged(caplog):
    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="poetrysuite"):
        resp = client.get("/healthz", headers={"x-request-id": "req-123"})

    assert resp.headers["x-request-id"] == "req-123"
    assert any(getattr(r, "request_id", None) == "req-123" for r in caplog.records)


def test_missing_user_id_is_a_validation_error():
    client = TestClient(app)
    resp = client.get("/v1/writing/streak")

    assert resp.status_code == 422
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert "user_id" in body["error"]["message"]
