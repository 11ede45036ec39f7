from __future__ import annotations

import time
from typing import Any

import jwt
from fastapi import HTTPException, Request, status
from itsdangerous import BadSignature, URLSafeTimedSerializer

from dubbing_studio.config import get_settings
from dubbing_studio.utils.crypto import random_id

CSRF_COOKIE = "csrf"
CSRF_HEADER = "x-csrf-token"
CSRF_FORM_FIELD = "csrf_token"
SESSION_COOKIE = "session"


def create_access_token(*, sub: str, role: str, minutes: int) -> str:
    s = get_settings()
    now = int(time.time())
    payload: dict[str, Any] = {
        "typ": "access",
        "sub": sub,
        "role": role,
        "iat": now,
        "exp": now + int(minutes) * 60,
    }
    return jwt.encode(payload, s.jwt_secret.get_secret_value(), algorithm=s.jwt_alg)


def decode_token(token: str, *, expected_typ: str) -> dict[str, Any]:
    s = get_settings()
    try:
        data = jwt.decode(token, s.jwt_secret.get_secret_value(), algorithms=[s.jwt_alg])
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None
    if not isinstance(data, dict) or data.get("typ") != expected_typ:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
    return data


def _session_serializer() -> URLSafeTimedSerializer:
    s = get_settings()
    return URLSafeTimedSerializer(s.session_secret.get_secret_value(), salt="session")


def sign_session(access_token: str) -> str:
    return _session_serializer().dumps(access_token)


def unsign_session(value: str) -> str:
    s = get_settings()
    try:
        return str(_session_serializer().loads(value, max_age=int(s.session_days) * 86400))
    except BadSignature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session") from None


def _csrf_serializer() -> URLSafeTimedSerializer:
    s = get_settings()
    return URLSafeTimedSerializer(s.csrf_secret.get_secret_value(), salt="csrf")


def issue_csrf_token() -> str:
    # Signed CSRF token stored in cookie and echoed in header/form (double-submit).
    return _csrf_serializer().dumps(random_id("c_", 16))


def verify_csrf(request: Request, *, submitted: str | None = None) -> None:
    """
    Double-submit check for cookie-authenticated state-changing requests:
    the header (or form field) must match the csrf cookie, and the token must validate.
    """
    if request.method in {"GET", "HEAD", "OPTIONS"}:
        return
    cookie = request.cookies.get(CSRF_COOKIE) or ""
    echoed = submitted or request.headers.get(CSRF_HEADER) or ""
    if not cookie or not echoed or cookie != echoed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CSRF required")
    s = get_settings()
    try:
        _csrf_serializer().loads(cookie, max_age=int(s.session_days) * 86400)
    except BadSignature:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CSRF invalid") from None


def extract_bearer(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None
