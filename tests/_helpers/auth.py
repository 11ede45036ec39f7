from __future__ import annotations

from fastapi.testclient import TestClient

from dubbing_studio.api.models import Role, User, now_ts
from dubbing_studio.utils.crypto import PasswordHasher, random_id


def add_user(
    client: TestClient, *, username: str, password: str = "userpass", role: Role = Role.user
) -> User:
    u = User(
        id=random_id("u_", 16),
        username=username,
        password_hash=PasswordHasher().hash(password),
        role=role,
        created_at=now_ts(),
    )
    client.app.state.auth_store.upsert_user(u)
    return client.app.state.auth_store.get_user_by_username(username)


def login_user(
    client: TestClient, *, username: str, password: str, session: bool = False
) -> dict[str, str]:
    r = client.post(
        "/api/auth/login", json={"username": username, "password": password, "session": session}
    )
    assert r.status_code == 200, r.text
    data = r.json()
    if not session:
        # Bearer-only clients carry no cookies.
        client.cookies.clear()
    return {"Authorization": f"Bearer {data['access_token']}", "X-CSRF-Token": data["csrf_token"]}


def login_session(client: TestClient, *, username: str, password: str) -> str:
    """Log in with a cookie session; returns the CSRF token to echo on posts."""
    r = client.post(
        "/api/auth/login", json={"username": username, "password": password, "session": True}
    )
    assert r.status_code == 200, r.text
    return str(r.json()["csrf_token"])


def login_admin(
    client: TestClient, *, username: str = "admin", password: str = "adminpass"
) -> dict[str, str]:
    return login_user(client, username=username, password=password)
