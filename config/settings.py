from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pydantic import SecretStr

from .public_config import PublicConfig
from .secret_config import DEV_CSRF_SECRET, DEV_JWT_SECRET, DEV_SESSION_SECRET, SecretConfig


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class Settings:
    """
    One object for both config halves; secret fields win on a name clash.
    """

    public: PublicConfig
    secret: SecretConfig

    def __getattr__(self, name: str) -> Any:
        if hasattr(self.secret, name):
            return getattr(self.secret, name)
        return getattr(self.public, name)


# env var -> (SecretConfig field, shipped dev default)
_SIGNING_KEYS = {
    "JWT_SECRET": ("jwt_secret", DEV_JWT_SECRET),
    "CSRF_SECRET": ("csrf_secret", DEV_CSRF_SECRET),
    "SESSION_SECRET": ("session_secret", DEV_SESSION_SECRET),
}
_GUESSABLE_PASSWORDS = frozenset({"admin", "password", "change-me", "123456", "adminadmin"})


def _flag(name: str) -> bool:
    return str(os.environ.get(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def _production() -> bool:
    env = str(os.environ.get("ENV") or os.environ.get("APP_ENV") or "").strip().lower()
    return env in {"prod", "production"}


def _plain(secret: SecretStr | None) -> str:
    return secret.get_secret_value() if secret is not None else ""


def _looks_strong(value: str) -> bool:
    kinds = sum(
        (
            any(c.islower() for c in value),
            any(c.isupper() for c in value),
            any(c.isdigit() for c in value),
            any(not c.isalnum() for c in value),
        )
    )
    if len(value) >= 32:
        return kinds >= 2
    return len(value) >= 24 and kinds >= 3


def find_weak_settings(s: Settings, *, production: bool | None = None) -> list[str]:
    """Env var names whose current values are unsafe outside local dev."""
    if production is None:
        production = _production()
    weak: set[str] = set()
    for env_name, (field, dev_default) in _SIGNING_KEYS.items():
        value = _plain(getattr(s.secret, field))
        if value == dev_default or (production and not _looks_strong(value)):
            weak.add(env_name)
    if _plain(s.secret.admin_password).strip().lower() in _GUESSABLE_PASSWORDS:
        weak.add("ADMIN_PASSWORD")
    if production and not s.public.cookie_secure:
        weak.add("COOKIE_SECURE")
    return sorted(weak)


def _check_secrets(s: Settings) -> None:
    # Outside strict mode the server logs the same list at startup.
    production = _production()
    weak = find_weak_settings(s, production=production)
    if weak and (production or _flag("STRICT_SECRETS")):
        raise ConfigError(
            f"refusing to start with unsafe settings: {', '.join(weak)} "
            "(set them in the environment or .env.secrets)"
        )


def get_safe_config_report() -> dict[str, Any]:
    """
    Config dump for `config show`: public values as-is (paths as strings),
    secrets reduced to SET/UNSET.
    """
    s = get_settings()
    public = {
        k: (str(v) if hasattr(v, "__fspath__") else v) for k, v in s.public.model_dump().items()
    }
    secrets: dict[str, str] = {}
    for name in sorted(SecretConfig.model_fields):
        value = getattr(s.secret, name)
        raw = _plain(value) if isinstance(value, SecretStr) else str(value or "")
        secrets[name] = "SET" if raw.strip() else "UNSET"
    return {"strict_secrets": _flag("STRICT_SECRETS"), "public": public, "secrets": secrets}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings(public=PublicConfig(), secret=SecretConfig())
    _check_secrets(s)
    return s
