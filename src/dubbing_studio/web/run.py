from __future__ import annotations

import uvicorn

from dubbing_studio.config import get_settings


def main(*, host: str | None = None, port: int | None = None) -> None:
    s = get_settings()
    uvicorn.run(
        "dubbing_studio.server:app",
        host=str(host or s.host),
        port=int(port or s.port),
        reload=False,
    )
