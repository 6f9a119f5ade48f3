# pyright: reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false

from __future__ import annotations

from datetime import datetime, timedelta
from typing import cast

from fastapi.testclient import TestClient

from chittybeacon.db import storage
from chittybeacon.db.session import SessionLocal
from chittybeacon.main import app


def _track(client: TestClient, app_id: str, **overrides: object) -> None:
    body: dict[str, object] = {
        "id": app_id,
        "name": f"{app_id}-name",
        "version": "1.0.0",
        "platform": "replit",
        "event": "heartbeat",
        "timestamp": "2024-01-01T00:00:00Z",
    }
    body.update(overrides)
    resp = client.post("/track", json=body)
    assert resp.status_code == 200, resp.text


def test_apps_list_is_ordered_by_last_seen_desc() -> None:
    with TestClient(app) as client:
        _track(client, "old", timestamp="2024-01-01T00:00:00Z")
        _track(client, "newest", timestamp="2024-03-01T00:00:00Z")
        _track(client, "middle", timestamp="2024-02-01T00:00:00Z")

        resp = client.get("/api/apps")
        assert resp.status_code == 200
        ids = [a["id"] for a in cast(list[dict[str, object]], resp.json())]
        assert ids == ["newest", "middle", "old"]


def test_apps_list_empty() -> None:
    with TestClient(app) as client:
        resp = client.get("/api/apps")
        assert resp.status_code == 200
        assert resp.json() == []


def test_app_get_returns_camel_case_record() -> None:
    with TestClient(app) as client:
        _track(client, "app-x", node_version="v20.0.0", has_git=True)

        resp = client.get("/api/apps/app-x")
        assert resp.status_code == 200
        body = cast(dict[str, object], resp.json())
        assert body["id"] == "app-x"
        assert body["name"] == "app-x-name"
        assert body["nodeVersion"] == "v20.0.0"
        assert body["hasGit"] is True
        assert "node_version" not in body
        assert {"createdAt", "updatedAt", "lastSeen", "startedAt"} <= set(body)


def test_app_get_unknown_is_404() -> None:
    with TestClient(app) as client:
        resp = client.get("/api/apps/missing")
        assert resp.status_code == 404
        assert resp.json() == {"error": "App not found"}

        resp = client.get("/api/apps/missing/events")
        assert resp.status_code == 404


def test_recent_events_are_capped_and_newest_first() -> None:
    base = datetime(2024, 1, 1)
    with TestClient(app) as client:
        _track(client, "busy")
        with SessionLocal() as db:
            for i in range(60):
                _ = storage.create_app_event(
                    db,
                    app_id="busy",
                    event="heartbeat",
                    timestamp=base + timedelta(minutes=i + 1),
                    data={"i": i},
                )

        resp = client.get("/api/events")
        assert resp.status_code == 200
        events = cast(list[dict[str, object]], resp.json())
        assert len(events) == 50
        assert events[0]["data"] == {"i": 59}
        stamps = [str(e["timestamp"]) for e in events]
        assert stamps == sorted(stamps, reverse=True)

        resp = client.get("/api/apps/busy/events", params={"limit": 5})
        assert resp.status_code == 200
        per_app = cast(list[dict[str, object]], resp.json())
        assert [e["data"] for e in per_app] == [{"i": i} for i in (59, 58, 57, 56, 55)]

        resp = client.get("/api/apps/busy/events", params={"limit": 0})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid request data"}


def test_events_for_app_only_include_that_app() -> None:
    with TestClient(app) as client:
        _track(client, "a")
        _track(client, "b")
        _track(client, "b", event="shutdown")

        events = cast(list[dict[str, object]], client.get("/api/apps/a/events").json())
        assert len(events) == 1
        assert events[0]["appId"] == "a"


def test_stats_on_empty_database() -> None:
    with TestClient(app) as client:
        resp = client.get("/api/stats")
        assert resp.status_code == 200
        assert resp.json() == {
            "totalApps": 0,
            "activeApps": 0,
            "claudeApps": 0,
            "avgUptime": 0.0,
            "platformDistribution": [],
        }


def test_stats_counts_and_platform_distribution() -> None:
    with TestClient(app) as client:
        _track(client, "r1", platform="replit", has_claude_code=True)
        _track(client, "r2", platform="replit")
        _track(client, "v1", platform="vercel", has_claude_code=True)
        _track(client, "v2", platform="vercel", event="shutdown")
        _track(client, "g1", platform="github", event="shutdown")

        resp = client.get("/api/stats")
        assert resp.status_code == 200
        body = cast(dict[str, object], resp.json())
        assert body["totalApps"] == 5
        assert body["activeApps"] == 3
        assert body["claudeApps"] == 2
        assert body["avgUptime"] == 60.0

        dist = cast(list[dict[str, object]], body["platformDistribution"])
        assert dist == [
            {"platform": "replit", "count": 2, "percentage": 40.0},
            {"platform": "vercel", "count": 2, "percentage": 40.0},
            {"platform": "github", "count": 1, "percentage": 20.0},
        ]
        assert sum(cast(int, d["count"]) for d in dist) == body["totalApps"]
