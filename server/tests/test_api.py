"""
Tests for the LaunchCheck HTTP API.

GitHub access is replaced by an in-memory fetch so every endpoint runs
end to end against the temporary SQLite database.
"""

import io
import json
import uuid
import zipfile
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

import config
import main
from launchcheck.content_fetcher import AppContent, attach_manifests
from launchcheck.errors import (
    ContentFetchError,
    FetchTimeoutError,
    RateLimitedError,
    RepositoryNotFoundError,
)


REPO_URL = "https://github.com/acme/shop"

CALM_APP = {
    "package.json": json.dumps({"dependencies": {"express": "^4.18.0"}}),
    "index.js": "const express = require('express');\nconst app = express();\napp.listen(3000);\n",
}

STATEFUL_APP = {
    **CALM_APP,
    "counter.js": "global.visits = 0;\nmodule.exports = () => global.visits++;\n",
}


def app_content(files: dict[str, str]) -> AppContent:
    return attach_manifests(AppContent(files=dict(files), source=REPO_URL))


class FakeFetch:
    """Stands in for main.fetch_github_content; returns or raises queued results in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls: list[str] = []

    async def __call__(self, repo_url: str) -> AppContent:
        self.calls.append(repo_url)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return app_content(result)


@pytest.fixture(scope="module")
def client():
    return TestClient(main.app)


@pytest.fixture
def user():
    """Fresh caller identity per test."""
    return {"X-User-Id": f"user-{uuid.uuid4().hex[:8]}"}


@pytest.fixture
def fetch(monkeypatch):
    def _install(*results):
        fake = FakeFetch(*results)
        monkeypatch.setattr(main, "fetch_github_content", fake)
        return fake
    return _install


def analyze(client, user, url=REPO_URL):
    return client.post("/analyze", json={"repo_url": url}, headers=user)


def make_zip(files: dict[str, str], root: str = "shop-main/") -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, text in files.items():
            archive.writestr(root + name, text)
    return buffer.getvalue()


class TestHealthAndIdentity:
    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_missing_user_header(self, client, fetch):
        fetch(CALM_APP)
        response = client.post("/analyze", json={"repo_url": REPO_URL})
        assert response.status_code == 401


class TestAnalyze:
    def test_analyze_repo(self, client, user, fetch):
        fake = fetch(CALM_APP)
        response = analyze(client, user)
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "completed"
        assert body["analysis_id"] == body["verdict"]["analysis_id"]
        assert body["verdict"]["status"] == "safe"
        assert body["verdict"]["confidence_score"] == 100
        assert body["verdict"]["risks"] == []
        assert fake.calls == [REPO_URL]

    def test_invalid_url_never_fetches(self, client, user, fetch):
        fake = fetch(CALM_APP)
        response = analyze(client, user, url="https://gitlab.com/acme/shop")
        assert response.status_code == 400
        assert fake.calls == []

    @pytest.mark.parametrize("error,status", [
        (RepositoryNotFoundError("missing"), 404),
        (RateLimitedError("slow down"), 429),
        (FetchTimeoutError("too slow"), 504),
        (ContentFetchError("broken"), 502),
    ])
    def test_fetch_errors(self, client, user, fetch, error, status):
        fetch(error)
        response = analyze(client, user)
        assert response.status_code == status
        assert "broken" not in response.json()["detail"]

    def test_rate_limit_retry_after(self, client, user, fetch):
        fetch(RateLimitedError("slow down", retry_after=60))
        response = analyze(client, user)
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"

    def test_internal_failure_is_generic_and_marks_failed(self, client, user, fetch, monkeypatch):
        fetch(CALM_APP)

        def broken(*args, **kwargs):
            raise KeyError("internal detail")

        monkeypatch.setattr(main, "detect_stack", broken)
        response = analyze(client, user)
        assert response.status_code == 500
        assert "internal detail" not in response.text

        with main.Session(main.engine) as session:
            record = session.query(main.AppAnalysis).order_by(main.AppAnalysis.id.desc()).first()
            assert record.status == "failed"


class TestUpload:
    def test_upload_zip(self, client, user):
        files = {"file": ("shop.zip", make_zip(STATEFUL_APP), "application/zip")}
        response = client.post("/analyze/upload", files=files, headers=user)
        assert response.status_code == 201
        verdict = response.json()["verdict"]
        assert verdict["status"] == "watch"
        assert verdict["risks"][0]["id"] == "concurrency_scaling"

    def test_rejects_non_zip_name(self, client, user):
        files = {"file": ("shop.tar", b"whatever", "application/x-tar")}
        assert client.post("/analyze/upload", files=files, headers=user).status_code == 400

    def test_rejects_corrupt_zip(self, client, user):
        files = {"file": ("shop.zip", b"not really a zip", "application/zip")}
        assert client.post("/analyze/upload", files=files, headers=user).status_code == 400

    def test_rejects_oversized_upload(self, client, user, monkeypatch):
        monkeypatch.setattr(config, "MAX_UPLOAD_SIZE", 10)
        files = {"file": ("shop.zip", make_zip(CALM_APP), "application/zip")}
        response = client.post("/analyze/upload", files=files, headers=user)
        assert response.status_code == 413
        assert "larger than" in response.json()["detail"]

    def test_uploads_cannot_be_rechecked(self, client, user):
        files = {"file": ("shop.zip", make_zip(CALM_APP), "application/zip")}
        analysis_id = client.post("/analyze/upload", files=files, headers=user).json()["analysis_id"]
        response = client.post(f"/analysis/{analysis_id}/recheck", headers=user)
        assert response.status_code == 400


class TestGetAnalysis:
    def test_owner_can_read(self, client, user, fetch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]
        response = client.get(f"/analysis/{analysis_id}", headers=user)
        assert response.status_code == 200
        body = response.json()
        assert body["analysis"]["github_url"] == REPO_URL
        assert body["analysis"]["stack_detection"]["framework"] == "Express"
        assert body["verdict"]["analysis_id"] == analysis_id

    def test_other_user_is_forbidden(self, client, user, fetch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]
        response = client.get(f"/analysis/{analysis_id}", headers={"X-User-Id": "someone-else"})
        assert response.status_code == 403

    def test_missing_analysis(self, client, user):
        assert client.get("/analysis/999999", headers=user).status_code == 404


class TestRecheckAndAlerts:
    def test_recheck_raises_alerts_once_per_cooldown(self, client, user, fetch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]

        fetch(STATEFUL_APP)
        response = client.post(f"/analysis/{analysis_id}/recheck", headers=user)
        assert response.status_code == 200
        body = response.json()
        assert body["updated"] is True
        assert body["previous_confidence_score"] == 100
        assert body["new_confidence_score"] == body["verdict"]["confidence_score"] < 100
        assert {a["category"] for a in body["new_alerts"]} == {"usage_growth", "architecture_drift"}
        assert body["alert_count"] == 2
        assert all(a["id"] is not None for a in body["new_alerts"])

        # Back to calm, then stateful again: same categories are in cooldown
        fetch(CALM_APP)
        assert client.post(f"/analysis/{analysis_id}/recheck", headers=user).json()["alert_count"] == 0
        fetch(STATEFUL_APP)
        assert client.post(f"/analysis/{analysis_id}/recheck", headers=user).json()["alert_count"] == 0

    def test_recheck_fetch_error(self, client, user, fetch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]
        fetch(FetchTimeoutError("slow"))
        assert client.post(f"/analysis/{analysis_id}/recheck", headers=user).status_code == 504

    def test_recheck_survives_alert_failure(self, client, user, fetch, monkeypatch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]

        import launchcheck.alerts as alerts_module

        def broken(*args, **kwargs):
            raise RuntimeError("alert store down")

        monkeypatch.setattr(alerts_module, "evaluate_alerts", broken)
        fetch(STATEFUL_APP)
        response = client.post(f"/analysis/{analysis_id}/recheck", headers=user)
        assert response.status_code == 200
        assert response.json()["new_alerts"] == []

    def test_recheck_skips_unreadable_alert_history(self, client, user, fetch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]

        with main.Session(main.engine) as session:
            record = session.get(main.AppAnalysis, int(analysis_id))
            session.add(main.AlertRecord(
                user_id=record.user_id,
                analysis_id=record.id,
                category="legacy_category",
                severity="heads_up",
                title="Old alert",
                body="From an older release",
                created_at=datetime.utcnow(),
            ))
            session.commit()

        fetch(STATEFUL_APP)
        response = client.post(f"/analysis/{analysis_id}/recheck", headers=user)
        assert response.status_code == 200
        body = response.json()
        assert body["new_confidence_score"] < 100
        assert {a["category"] for a in body["new_alerts"]} == {"usage_growth", "architecture_drift"}

    def test_recheck_keeps_verdict_when_alerts_cannot_be_saved(self, client, user, fetch, monkeypatch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]

        def broken(record):
            raise RuntimeError("alert store down")

        monkeypatch.setattr(main, "alert_from_record", broken)
        fetch(STATEFUL_APP)
        response = client.post(f"/analysis/{analysis_id}/recheck", headers=user)
        assert response.status_code == 200
        assert response.json()["new_alerts"] == []

        stored = client.get(f"/analysis/{analysis_id}", headers=user).json()
        assert stored["verdict"]["confidence_score"] == response.json()["new_confidence_score"] < 100

    def test_list_and_mark_read(self, client, user, fetch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]
        fetch(STATEFUL_APP)
        client.post(f"/analysis/{analysis_id}/recheck", headers=user)

        listing = client.get("/alerts", params={"analysis_id": analysis_id}, headers=user).json()
        assert listing["total"] == 2
        alert_id = listing["alerts"][0]["id"]
        assert listing["alerts"][0]["read_at"] is None

        first = client.patch(f"/alerts/{alert_id}/read", headers=user)
        assert first.status_code == 200
        read_at = first.json()["read_at"]
        assert read_at is not None

        second = client.patch(f"/alerts/{alert_id}/read", headers=user)
        assert second.json()["read_at"] == read_at

        assert client.patch(f"/alerts/{alert_id}/read", headers={"X-User-Id": "intruder"}).status_code == 403
        assert client.patch("/alerts/999999/read", headers=user).status_code == 404

    def test_list_pagination(self, client, user, fetch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]
        fetch(STATEFUL_APP)
        client.post(f"/analysis/{analysis_id}/recheck", headers=user)

        page = client.get("/alerts", params={"limit": 1, "offset": 1}, headers=user).json()
        assert page["total"] == 2
        assert len(page["alerts"]) == 1

    def test_new_user_has_no_alerts(self, client, user):
        assert client.get("/alerts", headers=user).json() == {"alerts": [], "total": 0}

    def test_other_users_analysis_alerts_forbidden(self, client, user, fetch):
        fetch(CALM_APP)
        analysis_id = analyze(client, user).json()["analysis_id"]
        response = client.get("/alerts", params={"analysis_id": analysis_id}, headers={"X-User-Id": "other-user"})
        assert response.status_code == 403
