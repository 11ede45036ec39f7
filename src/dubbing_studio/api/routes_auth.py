from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from dubbing_studio.api.deps import (
    Identity,
    client_ip,
    current_identity,
    get_limiter,
    get_store,
    require_user,
)
from dubbing_studio.api.models import AuthStore, User
from dubbing_studio.api.security import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    create_access_token,
    issue_csrf_token,
    sign_session,
)
from dubbing_studio.config import get_settings
from dubbing_studio.ops import audit
from dubbing_studio.utils.crypto import PasswordHasher
from dubbing_studio.utils.log import logger
from dubbing_studio.utils.ratelimit import RateLimiter

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _truthy(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "on"}
    return bool(v)


async def read_body(request: Request) -> dict[str, Any]:
    ctype = (request.headers.get("content-type") or "").lower()
    if "application/x-www-form-urlencoded" in ctype or "multipart/form-data" in ctype:
        form = await request.form()
        return {str(k): form.get(k) for k in form}
    try:
        raw = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON") from None
    if not isinstance(raw, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON")
    return raw


def authenticate(request: Request, store: AuthStore, rl: RateLimiter, username: str, password: str) -> User:
    """
    Check credentials with brute-force limits per IP and per username.
    Unknown user and wrong password share one error message.
    """
    limit = int(get_settings().login_rate_limit)
    if not rl.allow(f"auth:login:ip:{client_ip(request)}", limit=limit, per_seconds=60):
        raise HTTPException(status_code=429, detail="Rate limit exceeded")
    if username and not rl.allow(f"auth:login:user:{username.lower()}", limit=limit, per_seconds=60):
        raise HTTPException(status_code=429, detail="Rate limit exceeded")

    user = store.get_user_by_username(username) if username else None
    if user is None or not PasswordHasher().verify(user.password_hash, password):
        audit.emit("auth.login_failed", outcome="denied", meta={"username": username})
        logger.info("login_failed", username=username)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return user


def mint_tokens(user: User) -> tuple[str, str]:
    s = get_settings()
    access = create_access_token(sub=user.id, role=user.role.value, minutes=s.access_token_minutes)
    return access, issue_csrf_token()


def set_login_cookies(resp: Response, user: User, *, access: str, csrf: str, session: bool) -> None:
    s = get_settings()
    max_age = int(s.session_days) * 86400
    resp.set_cookie(
        CSRF_COOKIE,
        csrf,
        httponly=False,
        samesite="lax",
        secure=s.cookie_secure,
        max_age=max_age,
        path="/",
    )
    if session:
        resp.set_cookie(
            SESSION_COOKIE,
            sign_session(access),
            httponly=True,
            samesite="lax",
            secure=s.cookie_secure,
            max_age=max_age,
            path="/",
        )
    audit.emit("auth.login_ok", user_id=user.id, meta={"role": user.role.value, "session": session})
    logger.info("login_ok", user_id=user.id, session=session)


def clear_login(resp: Response) -> None:
    resp.delete_cookie(SESSION_COOKIE, path="/")
    resp.delete_cookie(CSRF_COOKIE, path="/")


@router.post("/login")
async def login(
    request: Request,
    store: AuthStore = Depends(get_store),
    rl: RateLimiter = Depends(get_limiter),
) -> Response:
    body = await read_body(request)
    username = str(body.get("username") or "").strip()
    password = str(body.get("password") or "")
    session = _truthy(body.get("session") or False)

    user = authenticate(request, store, rl, username, password)
    access, csrf = mint_tokens(user)
    resp = JSONResponse(
        {
            "access_token": access,
            "token_type": "bearer",
            "csrf_token": csrf,
            "role": user.role.value,
        }
    )
    set_login_cookies(resp, user, access=access, csrf=csrf, session=session)
    return resp


@router.post("/logout")
async def logout(ident: Identity = Depends(require_user)) -> Response:
    resp = JSONResponse({"ok": True})
    clear_login(resp)
    audit.emit("auth.logout", user_id=ident.user.id)
    return resp


@router.get("/me")
async def me(ident: Identity = Depends(current_identity)) -> dict[str, Any]:
    u = ident.user
    return {"id": u.id, "username": u.username, "role": u.role.value}
