from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from itsdangerous import BadSignature, URLSafeTimedSerializer
from starlette.datastructures import UploadFile
from starlette.templating import Jinja2Templates

from dubbing_studio.api.deps import client_ip, get_job_store, get_limiter, get_store, optional_identity
from dubbing_studio.api.models import User
from dubbing_studio.api.routes_auth import authenticate, clear_login, mint_tokens, set_login_cookies
from dubbing_studio.api.security import CSRF_FORM_FIELD, issue_csrf_token, verify_csrf
from dubbing_studio.config import get_settings
from dubbing_studio.jobs.models import DubbingMode, OutputMode, VoiceStyle
from dubbing_studio.jobs.submit import submit
from dubbing_studio.jobs.validation import SubmissionPayload, SubmissionResult, UploadInfo
from dubbing_studio.ops import audit

router = APIRouter(tags=["ui"])

FLASH_COOKIE = "flash"
# Browsers silently drop cookies over 4 KB; keep the signed value well under it.
_FLASH_MAX_BYTES = 3800
_OLD_VALUE_MAX = 1024
_FORM_FIELDS = ("video_url", "dubbing_mode", "voice_style", "output_mode")


def _get_templates(request: Request) -> Jinja2Templates:
    t = getattr(request.app.state, "templates", None)
    if t is None:
        raise HTTPException(status_code=500, detail="Templates not initialized")
    return t


def _current_user_optional(request: Request) -> User | None:
    ident = optional_identity(request)
    return ident.user if ident is not None else None


def _with_csrf_cookie(resp: Response, csrf_token: str) -> None:
    s = get_settings()
    resp.set_cookie(
        "csrf",
        csrf_token,
        httponly=False,
        samesite="lax",
        secure=bool(s.cookie_secure),
        max_age=int(s.session_days) * 86400,
        path="/",
    )


def _render(
    request: Request, template: str, ctx: dict[str, Any], *, status_code: int = 200
) -> HTMLResponse:
    templates = _get_templates(request)
    csrf = issue_csrf_token()
    context = {
        "request": request,
        "user": _current_user_optional(request),
        "csrf_token": csrf,
        "csrf_field": CSRF_FORM_FIELD,
        **(ctx or {}),
    }
    resp = templates.TemplateResponse(request, template, context, status_code=status_code)
    _with_csrf_cookie(resp, csrf)
    return resp


# --- submission outcome cookie ---


def _flash_serializer() -> URLSafeTimedSerializer:
    s = get_settings()
    return URLSafeTimedSerializer(s.session_secret.get_secret_value(), salt="flash")


def _set_flash(resp: Response, result: SubmissionResult, old: dict[str, str]) -> None:
    s = get_settings()
    data = result.to_dict()
    token = _flash_serializer().dumps(data)
    if not result.ok:
        # Over-long values are not re-filled into the form; the errors always fit.
        data["old"] = {k: v for k, v in old.items() if len(v) <= _OLD_VALUE_MAX}
        with_old = _flash_serializer().dumps(data)
        if len(with_old) <= _FLASH_MAX_BYTES:
            token = with_old
    resp.set_cookie(
        FLASH_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        secure=bool(s.cookie_secure),
        max_age=int(s.flash_max_age_sec),
        path="/",
    )


def _pop_flash(request: Request) -> dict[str, Any] | None:
    raw = request.cookies.get(FLASH_COOKIE)
    if not raw:
        return None
    try:
        data = _flash_serializer().loads(raw, max_age=int(get_settings().flash_max_age_sec))
    except BadSignature:
        return None
    return data if isinstance(data, dict) else None


def _upload_info(upload: UploadFile) -> UploadInfo:
    f = upload.file
    f.seek(0, 2)
    size = f.tell()
    f.seek(0)
    return UploadInfo(
        filename=str(upload.filename or ""),
        content_type=str(upload.content_type or ""),
        size=int(size),
    )


def _form_str(v: Any) -> str:
    # File parts never count as text values.
    return v if isinstance(v, str) else ""


def _wants_json(request: Request) -> bool:
    return "application/json" in (request.headers.get("accept") or "").lower()


# --- pages ---


@router.get("/")
async def welcome(request: Request) -> HTMLResponse:
    flash = _pop_flash(request)
    old = (flash or {}).get("old") or {}
    resp = _render(
        request,
        "welcome.html",
        {
            "flash": flash,
            "errors": (flash or {}).get("errors") or {},
            "old": old if isinstance(old, dict) else {},
            "dubbing_modes": [m.value for m in DubbingMode],
            "voice_styles": [m.value for m in VoiceStyle],
            "output_modes": [m.value for m in OutputMode],
        },
    )
    if flash is not None:
        resp.delete_cookie(FLASH_COOKIE, path="/")
    return resp


@router.post("/dubbing")
async def submit_dubbing(request: Request) -> Response:
    s = get_settings()
    rl = get_limiter(request)
    if not rl.allow(f"dubbing:submit:ip:{client_ip(request)}", limit=int(s.submit_rate_limit), per_seconds=60):
        raise HTTPException(status_code=429, detail="Rate limit exceeded")

    form = await request.form()
    ident = optional_identity(request)
    if ident is not None and ident.kind == "session":
        verify_csrf(request, submitted=_form_str(form.get(CSRF_FORM_FIELD)) or None)

    upload = form.get("video_file")
    if not isinstance(upload, UploadFile) or not str(upload.filename or "").strip():
        upload = None
    old = {k: _form_str(form.get(k)) for k in _FORM_FIELDS}
    payload = SubmissionPayload(
        video_url=old.get("video_url") or None,
        video_file=_upload_info(upload) if upload is not None else None,
        dubbing_mode=old.get("dubbing_mode") or None,
        voice_style=old.get("voice_style") or None,
        output_mode=old.get("output_mode") or None,
    )
    try:
        result = await asyncio.to_thread(
            submit,
            get_job_store(request),
            payload,
            owner_id=ident.user.id if ident is not None else "",
            upload_stream=upload.file if upload is not None else None,
            uploads_dir=s.uploads_dir(),
            max_upload_bytes=int(s.max_upload_bytes),
        )
    finally:
        if upload is not None:
            await upload.close()

    if _wants_json(request):
        return JSONResponse(result.to_dict(), status_code=201 if result.ok else 422)
    resp = RedirectResponse(url="/", status_code=302)
    _set_flash(resp, result, old)
    return resp


@router.get("/dashboard")
async def dashboard(request: Request) -> Response:
    user = _current_user_optional(request)
    if user is None:
        return RedirectResponse(url="/login", status_code=302)
    jobs = get_job_store(request).list_for_owner(user.id)
    return _render(request, "dashboard.html", {"jobs": jobs, "job_count": len(jobs)})


@router.get("/login")
async def login_page(request: Request) -> Response:
    if _current_user_optional(request) is not None:
        return RedirectResponse(url="/dashboard", status_code=302)
    return _render(request, "login.html", {"error": None, "username": ""})


@router.post("/login")
async def login_submit(request: Request) -> Response:
    form = await request.form()
    username = str(form.get("username") or "").strip()
    password = str(form.get("password") or "")
    try:
        user = authenticate(request, get_store(request), get_limiter(request), username, password)
    except HTTPException as ex:
        msg = "Too many attempts, try again later." if ex.status_code == 429 else "Invalid credentials."
        return _render(
            request, "login.html", {"error": msg, "username": username}, status_code=ex.status_code
        )
    access, csrf = mint_tokens(user)
    resp = RedirectResponse(url="/dashboard", status_code=302)
    set_login_cookies(resp, user, access=access, csrf=csrf, session=True)
    return resp


@router.post("/logout")
async def logout_submit(request: Request) -> Response:
    ident = optional_identity(request)
    if ident is not None and ident.kind == "session":
        form = await request.form()
        verify_csrf(request, submitted=_form_str(form.get(CSRF_FORM_FIELD)) or None)
        audit.emit("auth.logout", user_id=ident.user.id)
    resp = RedirectResponse(url="/login", status_code=302)
    clear_login(resp)
    return resp
