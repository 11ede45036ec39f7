from __future__ import annotations

import logging

from fastapi.testclient import TestClient

from dubbing_studio.config import get_settings
from dubbing_studio.server import app
from tests._helpers.auth import add_user, login_session, login_user


def test_admin_is_bootstrapped_from_settings() -> None:
    with TestClient(app) as c:
        admin = c.app.state.auth_store.get_user_by_username("admin")
        assert admin is not None
        assert admin.is_admin


def test_api_login_and_me() -> None:
    with TestClient(app) as c:
        add_user(c, username="alice", password="alicepass")
        r = c.post("/api/auth/login", json={"username": "alice", "password": "alicepass"})
        assert r.status_code == 200
        data = r.json()
        assert data["token_type"] == "bearer"
        assert data["csrf_token"]
        assert c.cookies.get("csrf") == data["csrf_token"]
        assert c.cookies.get("session") is None

        me = c.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["username"] == "alice"
        assert me.json()["role"] == "user"


def test_bad_credentials_share_one_error() -> None:
    with TestClient(app) as c:
        add_user(c, username="alice", password="alicepass")
        r1 = c.post("/api/auth/login", json={"username": "alice", "password": "wrong"})
        r2 = c.post("/api/auth/login", json={"username": "nobody", "password": "wrong"})
        assert r1.status_code == r2.status_code == 401
        assert r1.json() == r2.json()


def test_login_rate_limited(monkeypatch) -> None:
    monkeypatch.setenv("LOGIN_RATE_LIMIT", "3")
    get_settings.cache_clear()
    with TestClient(app) as c:
        codes = [
            c.post("/api/auth/login", json={"username": "x", "password": "y"}).status_code
            for _ in range(4)
        ]
        assert codes == [401, 401, 401, 429]


def test_csrf_required_for_cookie_logout() -> None:
    with TestClient(app) as c:
        add_user(c, username="alice", password="alicepass")
        csrf = login_session(c, username="alice", password="alicepass")

        assert c.post("/api/auth/logout").status_code == 403
        r = c.post("/api/auth/logout", headers={"X-CSRF-Token": csrf})
        assert r.status_code == 200
        assert c.get("/api/auth/me").status_code == 401


def test_form_login_sets_session_and_redirects() -> None:
    with TestClient(app) as c:
        add_user(c, username="alice", password="alicepass")
        r = c.post(
            "/login", data={"username": "alice", "password": "alicepass"}, follow_redirects=False
        )
        assert r.status_code == 302
        assert r.headers["location"] == "/dashboard"
        assert c.cookies.get("session")
        assert c.get("/dashboard").status_code == 200
        # Logged-in users skip the login page.
        assert c.get("/login", follow_redirects=False).headers["location"] == "/dashboard"


def test_form_login_failure_rerenders() -> None:
    with TestClient(app) as c:
        r = c.post("/login", data={"username": "alice", "password": "nope"})
        assert r.status_code == 401
        assert "Invalid credentials." in r.text
        assert 'value="alice"' in r.text


def test_form_logout_clears_session() -> None:
    with TestClient(app) as c:
        add_user(c, username="alice", password="alicepass")
        login_session(c, username="alice", password="alicepass")
        page = c.get("/dashboard")
        assert page.status_code == 200
        r = c.post("/logout", data={"csrf_token": c.cookies.get("csrf")}, follow_redirects=False)
        assert r.status_code == 302
        assert r.headers["location"] == "/login"
        assert c.get("/dashboard", follow_redirects=False).status_code == 302


def test_tampered_session_is_anonymous() -> None:
    with TestClient(app) as c:
        forged = {"Cookie": "session=not-a-signed-value"}
        assert c.get("/dashboard", headers=forged, follow_redirects=False).status_code == 302
        assert c.get("/api/auth/me", headers=forged).status_code == 401


def test_request_id_header() -> None:
    with TestClient(app) as c:
        r = c.get("/healthz", headers={"X-Request-ID": "req-123"})
        assert r.json() == {"ok": True}
        assert r.headers["x-request-id"] == "req-123"
        assert c.get("/healthz").headers.get("x-request-id")


def test_metrics_endpoint() -> None:
    with TestClient(app) as c:
        c.post("/dubbing", data={}, headers={"Accept": "application/json"})
        r = c.get("/metrics")
        assert r.status_code == 200
        assert "dubbing_jobs_rejected_total" in r.text


def test_access_log_records_authenticated_user(caplog) -> None:
    caplog.set_level(logging.INFO)
    with TestClient(app) as c:
        alice = add_user(c, username="alice", password="alicepass")
        headers = login_user(c, username="alice", password="alicepass")
        caplog.clear()
        assert c.get("/api/auth/me", headers=headers).status_code == 200

    done = [
        r.msg
        for r in caplog.records
        if isinstance(r.msg, dict) and r.msg.get("msg") == "http_done"
    ]
    assert len(done) == 1
    assert done[0]["path"] == "/api/auth/me"
    assert done[0]["status"] == 200
    assert done[0]["user_id"] == alice.id
