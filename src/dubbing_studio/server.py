from __future__ import annotations

from contextlib import asynccontextmanager, suppress
from pathlib import Path

from fastapi import FastAPI, Response
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.templating import Jinja2Templates

from dubbing_studio.api.middleware import request_context_middleware
from dubbing_studio.api.models import AuthStore, Role, User, now_ts
from dubbing_studio.api.routes_auth import router as auth_router
from dubbing_studio.api.routes_jobs import router as jobs_router
from dubbing_studio.config import find_weak_settings, get_settings
from dubbing_studio.jobs.store import JobStore
from dubbing_studio.ops.metrics import render_latest
from dubbing_studio.utils.crypto import PasswordHasher, random_id
from dubbing_studio.utils.log import logger
from dubbing_studio.utils.ratelimit import RateLimiter
from dubbing_studio.web.routes_ui import router as ui_router

TEMPLATES_DIR = (Path(__file__).parent / "web" / "templates").resolve()
STATIC_DIR = (Path(__file__).parent / "web" / "static").resolve()
TEMPLATES = Jinja2Templates(directory=str(TEMPLATES_DIR))


def bootstrap_admin(auth_store: AuthStore) -> None:
    s = get_settings()
    if not (s.admin_username and s.admin_password):
        return
    existing = auth_store.get_user_by_username(str(s.admin_username))
    u = User(
        id=existing.id if existing is not None else random_id("u_", 16),
        username=str(s.admin_username),
        password_hash=PasswordHasher().hash(s.admin_password.get_secret_value()),
        role=Role.admin,
        created_at=existing.created_at if existing is not None else now_ts(),
    )
    auth_store.upsert_user(u)
    logger.info("admin_bootstrapped", username=u.username)


@asynccontextmanager
async def lifespan(app: FastAPI):
    s = get_settings()
    state_root = s.state_root()
    jobs_db = state_root / str(s.jobs_db_name or "jobs.db")
    auth_db = state_root / str(s.auth_db_name or "auth.db")

    app.state.job_store = JobStore(jobs_db)
    auth_store = AuthStore(auth_db)
    app.state.auth_store = auth_store
    app.state.rate_limiter = RateLimiter()

    bootstrap_admin(auth_store)
    weak = find_weak_settings(s)
    if weak:
        logger.warning("weak_secrets_detected", weak=weak)
    logger.info("server_started", state_root=str(state_root), uploads_dir=str(s.uploads_dir()))
    yield
    logger.info("server_stopped")


app = FastAPI(title="dubbing-studio", lifespan=lifespan)
app.state.templates = TEMPLATES
with suppress(OSError):
    STATIC_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

app.middleware("http")(request_context_middleware)

app.include_router(auth_router)
app.include_router(jobs_router)
app.include_router(ui_router)


@app.get("/healthz")
async def healthz():
    # Liveness: process is up.
    return {"ok": True}


@app.get("/metrics")
async def metrics():
    return Response(content=render_latest(), media_type=CONTENT_TYPE_LATEST)
