from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from dubbing_studio.api.models import AuthStore, User
from dubbing_studio.api.security import (
    SESSION_COOKIE,
    decode_token,
    extract_bearer,
    unsign_session,
    verify_csrf,
)
from dubbing_studio.jobs.store import JobStore
from dubbing_studio.utils.log import set_user_id
from dubbing_studio.utils.ratelimit import RateLimiter


@dataclass(frozen=True, slots=True)
class Identity:
    kind: str  # bearer|session
    user: User


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_store(request: Request) -> AuthStore:
    store = getattr(request.app.state, "auth_store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Auth store not initialized")
    return store


def get_job_store(request: Request) -> JobStore:
    store = getattr(request.app.state, "job_store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Job store not initialized")
    return store


def get_limiter(request: Request) -> RateLimiter:
    rl = getattr(request.app.state, "rate_limiter", None)
    if rl is None:
        rl = RateLimiter()
        request.app.state.rate_limiter = rl
    return rl


def _user_from_token(store: AuthStore, token: str) -> User:
    data = decode_token(token, expected_typ="access")
    user = store.get_user(str(data.get("sub") or ""))
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def _bind_user(request: Request, user: User) -> None:
    # The contextvar covers log lines from this task; request.state carries the
    # id back to the access log in the middleware.
    set_user_id(user.id)
    request.state.user_id = user.id


def current_identity(request: Request, store: AuthStore = Depends(get_store)) -> Identity:
    # 1) Bearer access token (API clients)
    token = extract_bearer(request)
    if token:
        user = _user_from_token(store, token)
        _bind_user(request, user)
        return Identity(kind="bearer", user=user)

    # 2) Signed session cookie (web UI)
    sess = request.cookies.get(SESSION_COOKIE)
    if sess:
        user = _user_from_token(store, unsign_session(sess))
        _bind_user(request, user)
        return Identity(kind="session", user=user)

    raise HTTPException(status_code=401, detail="Not authenticated")


def optional_identity(request: Request) -> Identity | None:
    """Identity for pages that work with or without a login; never raises."""
    store = getattr(request.app.state, "auth_store", None)
    if store is None:
        return None
    try:
        return current_identity(request, store)
    except HTTPException:
        return None


def require_user(request: Request, ident: Identity = Depends(current_identity)) -> Identity:
    # CSRF: enforced for cookie sessions on state-changing requests; bearer clients are exempt.
    if ident.kind == "session":
        verify_csrf(request)
    return ident
