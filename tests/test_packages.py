# pyright: reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false

from __future__ import annotations

from typing import cast

from _pytest.monkeypatch import MonkeyPatch
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from chittybeacon.main import app


def _track(client: TestClient, app_id: str = "host") -> None:
    resp = client.post(
        "/track",
        json={
            "id": app_id,
            "name": "host",
            "version": "1.0.0",
            "platform": "replit",
            "event": "startup",
            "timestamp": "2024-01-01T00:00:00Z",
        },
    )
    assert resp.status_code == 200, resp.text


def _install(client: TestClient, **overrides: object) -> dict[str, object]:
    body: dict[str, object] = {
        "appId": "host",
        "name": "left-pad",
        "version": "1.3.0",
        "manager": "npm",
    }
    body.update(overrides)
    resp = client.post("/api/packages", json=body)
    assert resp.status_code == 201, resp.text
    return cast(dict[str, object], resp.json())


def _events(client: TestClient, app_id: str = "host") -> list[dict[str, object]]:
    resp = client.get(f"/api/apps/{app_id}/events")
    assert resp.status_code == 200
    return cast(list[dict[str, object]], resp.json())


def test_install_package_records_event() -> None:
    with TestClient(app) as client:
        _track(client)
        pkg = _install(client, description="pads strings", size=1024)

        assert pkg["appId"] == "host"
        assert pkg["manager"] == "npm"
        assert pkg["downloadCount"] == 0
        assert pkg["size"] == 1024
        assert pkg["id"]

        installs = [e for e in _events(client) if e["event"] == "package_install"]
        assert len(installs) == 1
        assert installs[0]["data"] == {
            "packageId": pkg["id"],
            "name": "left-pad",
            "version": "1.3.0",
            "manager": "npm",
        }

        listed = cast(list[dict[str, object]], client.get("/api/packages").json())
        assert [p["id"] for p in listed] == [pkg["id"]]
        per_app = cast(list[dict[str, object]], client.get("/api/apps/host/packages").json())
        assert [p["id"] for p in per_app] == [pkg["id"]]


def test_install_package_for_unknown_app_is_404() -> None:
    with TestClient(app) as client:
        resp = client.post(
            "/api/packages",
            json={"appId": "nope", "name": "x", "version": "1", "manager": "npm"},
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "App not found"}

        assert client.get("/api/apps/nope/packages").status_code == 404


def test_install_package_validation_error() -> None:
    with TestClient(app) as client:
        _track(client)
        resp = client.post("/api/packages", json={"appId": "host", "name": "x"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid request data"}

        resp = client.post(
            "/api/packages",
            json={"appId": "host", "name": "x", "version": "1", "manager": "npm", "size": -1},
        )
        assert resp.status_code == 400


def test_install_package_rejects_values_longer_than_columns() -> None:
    with TestClient(app) as client:
        _track(client)
        resp = client.post(
            "/api/packages",
            json={"appId": "host", "name": "x", "version": "1", "manager": "m" * 101},
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid request data"}

        resp = client.post(
            "/api/chittypm/sync",
            json={"appId": "host", "packages": [{"name": "n" * 256, "version": "1"}]},
        )
        assert resp.status_code == 400
        assert client.get("/api/packages").json() == []

        pkg = _install(client, manager="m" * 100)
        assert pkg["manager"] == "m" * 100


def test_update_package() -> None:
    with TestClient(app) as client:
        _track(client)
        pkg = _install(client, description="old")

        resp = client.patch(
            f"/api/packages/{pkg['id']}",
            json={"version": "2.0.0", "downloadCount": 10, "description": None, "name": None},
        )
        assert resp.status_code == 200, resp.text
        body = cast(dict[str, object], resp.json())
        assert body["version"] == "2.0.0"
        assert body["downloadCount"] == 10
        assert body["description"] is None
        assert body["name"] == "left-pad"
        assert body["installedAt"] == pkg["installedAt"]

        resp = client.patch("/api/packages/missing", json={"version": "2.0.0"})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Package not found"}


def test_uninstall_package() -> None:
    with TestClient(app) as client:
        _track(client)
        pkg = _install(client)

        resp = client.delete(f"/api/packages/{pkg['id']}")
        assert resp.status_code == 204
        assert client.get("/api/packages").json() == []

        removals = [e for e in _events(client) if e["event"] == "package_uninstall"]
        assert len(removals) == 1
        assert cast(dict[str, object], removals[0]["data"])["packageId"] == pkg["id"]

        assert client.delete(f"/api/packages/{pkg['id']}").status_code == 404


def test_package_stats() -> None:
    with TestClient(app) as client:
        _track(client)
        empty = client.get("/api/packages/stats").json()
        assert empty == {"totalPackages": 0, "packagesByManager": [], "recentInstalls": []}

        _install(client, name="a", manager="npm")
        _install(client, name="b", manager="npm")
        _install(client, name="c", manager="pip")
        _install(client, name="d", manager="chittypm")

        resp = client.get("/api/packages/stats")
        assert resp.status_code == 200
        body = cast(dict[str, object], resp.json())
        assert body["totalPackages"] == 4
        assert body["packagesByManager"] == [
            {"manager": "npm", "count": 2, "percentage": 50.0},
            {"manager": "chittypm", "count": 1, "percentage": 25.0},
            {"manager": "pip", "count": 1, "percentage": 25.0},
        ]
        assert len(cast(list[object], body["recentInstalls"])) == 4


def test_chittypm_sync_creates_packages_and_one_summary_event() -> None:
    with TestClient(app) as client:
        _track(client)
        resp = client.post(
            "/api/chittypm/sync",
            json={
                "appId": "host",
                "packages": [
                    {"name": "@chitty/core", "version": "1.0.0", "downloadCount": 5},
                    {"name": "@chitty/ui", "version": "0.4.2", "description": "widgets"},
                    {"name": "@chitty/cli", "version": "2.1.0", "size": 2048},
                ],
            },
        )
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"status": "ok", "synced": 3}

        pkgs = cast(list[dict[str, object]], client.get("/api/apps/host/packages").json())
        assert len(pkgs) == 3
        assert {p["manager"] for p in pkgs} == {"chittypm"}

        syncs = [e for e in _events(client) if e["event"] == "package_sync"]
        assert len(syncs) == 1
        assert syncs[0]["data"] == {"count": 3, "manager": "chittypm"}


def test_chittypm_sync_empty_batch_still_records_event() -> None:
    with TestClient(app) as client:
        _track(client)
        resp = client.post("/api/chittypm/sync", json={"appId": "host", "packages": []})
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "synced": 0}

        syncs = [e for e in _events(client) if e["event"] == "package_sync"]
        assert [s["data"] for s in syncs] == [{"count": 0, "manager": "chittypm"}]


def test_chittypm_sync_unknown_app_is_404() -> None:
    with TestClient(app) as client:
        resp = client.post(
            "/api/chittypm/sync",
            json={"appId": "ghost", "packages": [{"name": "x", "version": "1"}]},
        )
        assert resp.status_code == 404


def test_chittypm_sync_partial_failure_reports_synced_count(monkeypatch: MonkeyPatch) -> None:
    import chittybeacon.db.storage as storage

    real_install = storage.install_package
    calls = {"n": 0}

    def _flaky_install(*args: object, **kwargs: object) -> object:
        calls["n"] += 1
        if calls["n"] == 3:
            raise OperationalError("INSERT", {}, Exception("disk full"))
        return real_install(*args, **kwargs)  # pyright: ignore[reportArgumentType]

    with TestClient(app) as client:
        _track(client)
        monkeypatch.setattr(storage, "install_package", _flaky_install)

        resp = client.post(
            "/api/chittypm/sync",
            json={
                "appId": "host",
                "packages": [{"name": f"p{i}", "version": "1.0.0"} for i in range(5)],
            },
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to sync packages", "synced": 2}

        pkgs = cast(list[dict[str, object]], client.get("/api/apps/host/packages").json())
        assert sorted(cast(str, p["name"]) for p in pkgs) == ["p0", "p1"]

        syncs = [e for e in _events(client) if e["event"] == "package_sync"]
        assert [s["data"] for s in syncs] == [{"count": 2, "manager": "chittypm"}]
