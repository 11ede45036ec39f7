from __future__ import annotations

from collections.abc import Iterator

import pytest

from dubbing_studio.config import get_settings


@pytest.fixture(autouse=True)
def _test_env(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    root = tmp_path_factory.mktemp("ds_test")
    (root / "Input").mkdir(parents=True, exist_ok=True)
    (root / "Output").mkdir(parents=True, exist_ok=True)
    (root / "logs").mkdir(parents=True, exist_ok=True)
    (root / "_state").mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("APP_ROOT", str(root))
    monkeypatch.setenv("INPUT_DIR", str(root / "Input"))
    monkeypatch.setenv("DUBBING_OUTPUT_DIR", str(root / "Output"))
    monkeypatch.setenv("DUBBING_LOG_DIR", str(root / "logs"))
    monkeypatch.setenv("DUBBING_STATE_DIR", str(root / "_state"))
    monkeypatch.setenv("COOKIE_SECURE", "0")
    monkeypatch.setenv("ADMIN_USERNAME", "admin")
    monkeypatch.setenv("ADMIN_PASSWORD", "adminpass")
    monkeypatch.delenv("INPUT_UPLOADS_DIR", raising=False)
    monkeypatch.delenv("STRICT_SECRETS", raising=False)
    monkeypatch.delenv("ENV", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
