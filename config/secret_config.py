from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-insecure-jwt-secret"
DEV_CSRF_SECRET = "dev-insecure-csrf-secret"
DEV_SESSION_SECRET = "dev-insecure-session-secret"


class SecretConfig(BaseSettings):
    """
    Signing keys and the optional bootstrap admin account.

    Values come from the environment or a local, uncommitted `.env.secrets`.
    The dev defaults let a fresh checkout start; strict mode rejects them.
    """

    model_config = SettingsConfigDict(
        env_file=".env.secrets",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: SecretStr = Field(default=SecretStr(DEV_JWT_SECRET), alias="JWT_SECRET")
    csrf_secret: SecretStr = Field(default=SecretStr(DEV_CSRF_SECRET), alias="CSRF_SECRET")
    session_secret: SecretStr = Field(default=SecretStr(DEV_SESSION_SECRET), alias="SESSION_SECRET")

    admin_username: str | None = Field(default=None, alias="ADMIN_USERNAME")
    admin_password: SecretStr | None = Field(default=None, alias="ADMIN_PASSWORD")
