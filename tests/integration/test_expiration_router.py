"""Integration tests for the expiration monitor API endpoints."""

from datetime import datetime, timedelta, timezone

import pytest


def _in_days(days):
    return (datetime.now(timezone.utc).date() + timedelta(days=days)).isoformat()


def _snapshot(request_id, days_ago, entries, account_id="ACC-1"):
    return {
        "account_id": account_id,
        "account_name": f"Name {account_id}",
        "request_id": request_id,
        "request_name": f"Req {request_id}",
        "requested_at": (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat(),
        "payload": {"productEntitlements": [
            {"productCode": code, "name": f"Product {code}", "endDate": end}
            for code, end in entries
        ]},
    }


@pytest.fixture
async def seeded(client, admin_headers):
    bodies = [
        _snapshot("PS-1", 100, [("M-1", _in_days(10)), ("M-2", _in_days(5))]),
        _snapshot("PS-2", 3, [("M-1", _in_days(400)), ("M-2", _in_days(5))]),
        _snapshot("PS-3", 50, [("D-1", _in_days(45))], account_id="ACC-2"),
    ]
    for body in bodies:
        resp = await client.post("/snapshots", json=body, headers=admin_headers)
        assert resp.status_code == 201


class TestRefresh:
    async def test_refresh(self, client, admin_headers, seeded):
        resp = await client.post("/expiration/refresh", json={"window": 30}, headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "completed"
        assert data["records_analyzed"] == 3
        assert data["expirations_found"] == 3
        assert data["extensions_found"] == 1
        assert data["expiration_window"] == 30

    async def test_refresh_without_body_uses_defaults(self, client, admin_headers, seeded):
        resp = await client.post("/expiration/refresh", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["expiration_window"] == 30
        assert resp.json()["lookback_years"] == 5

    async def test_refresh_rejects_unknown_window(self, client, admin_headers):
        resp = await client.post("/expiration/refresh", json={"window": 45}, headers=admin_headers)
        assert resp.status_code == 400

    async def test_failed_refresh_returns_500_and_is_logged(
        self, client, admin_headers, seeded, monkeypatch,
    ):
        def broken(*args, **kwargs):
            raise RuntimeError("classifier exploded")

        monkeypatch.setattr("deployment_assistant.expiration.service.classify", broken)
        resp = await client.post("/expiration/refresh", json={"window": 30}, headers=admin_headers)
        assert resp.status_code == 500
        assert resp.json()["detail"] == "classifier exploded"

        resp = await client.get("/expiration/status", headers=admin_headers)
        data = resp.json()
        assert data["has_analysis"] is True
        assert data["last_run"]["status"] == "failed"
        assert data["last_run"]["error_message"] == "classifier exploded"

    async def test_refresh_requires_auth(self, client):
        resp = await client.post("/expiration/refresh", json={"window": 30})
        assert resp.status_code in (401, 403, 422)


class TestMonitor:
    async def test_monitor_groups(self, client, admin_headers, seeded):
        await client.post("/expiration/refresh", json={"window": 90}, headers=admin_headers)
        resp = await client.get("/expiration/monitor?window=30", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["window"] == 30
        assert data["summary"]["at_risk"] == 2
        assert data["summary"]["extended"] == 1
        assert data["last_analyzed"] is not None
        groups = {g["request_id"]: g for g in data["expirations"]}
        assert set(groups) == {"PS-1", "PS-2"}
        ps1 = groups["PS-1"]
        assert ps1["status"] == "AtRisk"
        assert ps1["urgency"] == "imminent"
        assert [p["product_code"] for p in ps1["products"]["Model"]] == ["M-2"]

    async def test_monitor_show_extended(self, client, admin_headers, seeded):
        await client.post("/expiration/refresh", json={"window": 90}, headers=admin_headers)
        resp = await client.get(
            "/expiration/monitor?window=60&show_extended=true", headers=admin_headers,
        )
        data = resp.json()
        groups = {g["request_id"]: g for g in data["expirations"]}
        extended = [p for p in groups["PS-1"]["products"]["Model"] if p["status"] == "Extended"]
        assert [p["product_code"] for p in extended] == ["M-1"]
        assert extended[0]["extending_request_id"] == "PS-2"
        assert groups["PS-3"]["urgency"] == "current"

    async def test_monitor_rejects_unknown_window(self, client, admin_headers):
        resp = await client.get("/expiration/monitor?window=14", headers=admin_headers)
        assert resp.status_code == 400


class TestStatus:
    async def test_status_before_any_run(self, client, admin_headers):
        resp = await client.get("/expiration/status", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["has_analysis"] is False
        assert "No analysis has been run yet" in data["message"]

    async def test_status_after_run(self, client, admin_headers, seeded):
        await client.post("/expiration/refresh", json={"window": 30}, headers=admin_headers)
        resp = await client.get("/expiration/status", headers=admin_headers)
        data = resp.json()
        assert data["has_analysis"] is True
        assert data["last_run"]["status"] == "completed"
        assert data["last_run_ago"].endswith("ago")


class TestExpired:
    async def test_nothing_expired_yet(self, client, admin_headers, seeded):
        await client.post("/expiration/refresh", json={"window": 90}, headers=admin_headers)
        resp = await client.get("/expiration/expired", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_products"] == 0
        assert data["accounts"] == []

    async def test_bad_category(self, client, admin_headers):
        resp = await client.get("/expiration/expired?category=Hardware", headers=admin_headers)
        assert resp.status_code == 422
