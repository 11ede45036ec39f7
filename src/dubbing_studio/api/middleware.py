from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response

from dubbing_studio.utils.log import logger, set_request_id, set_user_id

# Probes and static assets stay out of the access log.
_QUIET_PREFIXES = ("/healthz", "/metrics", "/static/")


async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """
    Tag each request with an id (client-supplied X-Request-ID or a fresh one),
    expose it to every log line via contextvars, echo it on the response and
    write one access-log record per request.
    """
    rid = (request.headers.get("x-request-id") or "").strip()[:128] or uuid.uuid4().hex
    request.state.request_id = rid
    set_request_id(rid)
    set_user_id(None)
    t0 = time.perf_counter()
    status = 500
    try:
        resp = await call_next(request)
        status = resp.status_code
        resp.headers.setdefault("x-request-id", rid)
        return resp
    finally:
        path = request.url.path
        if not path.startswith(_QUIET_PREFIXES):
            logger.info(
                "http_done",
                method=request.method,
                path=path,
                status=status,
                duration_ms=round((time.perf_counter() - t0) * 1000.0, 1),
                user_id=getattr(request.state, "user_id", None),
            )
        set_request_id(None)
        set_user_id(None)
