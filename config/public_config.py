from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_app_root() -> Path:
    # APP_ROOT, else the container workdir, else wherever we were started.
    env = os.environ.get("APP_ROOT")
    if env:
        return Path(env).resolve()
    if Path("/app").exists():
        return Path("/app").resolve()
    return Path.cwd().resolve()


class PublicConfig(BaseSettings):
    """Non-secret settings, read from the environment and then `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_root: Path = Field(default_factory=_default_app_root, alias="APP_ROOT")
    output_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "Output").resolve(), alias="DUBBING_OUTPUT_DIR"
    )
    log_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "logs").resolve(), alias="DUBBING_LOG_DIR"
    )
    # Runtime-only state directory (DBs). If unset, defaults to "<DUBBING_OUTPUT_DIR>/_state".
    state_dir: Path | None = Field(default=None, alias="DUBBING_STATE_DIR")
    auth_db_name: str = Field(default="auth.db", alias="DUBBING_AUTH_DB_NAME")
    jobs_db_name: str = Field(default="jobs.db", alias="DUBBING_JOBS_DB_NAME")

    # Uploads land in <INPUT_DIR>/uploads unless INPUT_UPLOADS_DIR is set.
    input_dir: Path | None = Field(default=None, alias="INPUT_DIR")
    input_uploads_dir: Path | None = Field(default=None, alias="INPUT_UPLOADS_DIR")
    max_upload_bytes: int = Field(default=2 * 1024 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # --- web server ---
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # --- logging ---
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_max_bytes: int = Field(default=5 * 1024 * 1024, alias="LOG_MAX_BYTES")
    log_backup_count: int = Field(default=3, alias="LOG_BACKUP_COUNT")

    # --- tokens and cookies ---
    jwt_alg: str = Field(default="HS256", alias="JWT_ALG")
    access_token_minutes: int = Field(default=60, alias="ACCESS_TOKEN_MINUTES")
    session_days: int = Field(default=7, alias="SESSION_DAYS")
    cookie_secure: bool = Field(default=False, alias="COOKIE_SECURE")

    # Submission outcome cookie (read once by the landing page).
    flash_max_age_sec: int = Field(default=300, alias="FLASH_MAX_AGE_SEC")

    # --- rate limits (per minute) ---
    login_rate_limit: int = Field(default=10, alias="LOGIN_RATE_LIMIT")
    submit_rate_limit: int = Field(default=30, alias="SUBMIT_RATE_LIMIT")

    # --- worker ---
    worker_poll_interval_sec: float = Field(default=2.0, alias="WORKER_POLL_INTERVAL_SEC")
    worker_pipeline: str = Field(default="", alias="WORKER_PIPELINE")  # "pkg.module:callable"

    def uploads_dir(self) -> Path:
        if self.input_uploads_dir:
            return Path(self.input_uploads_dir).resolve()
        base = Path(self.input_dir) if self.input_dir else (Path(self.app_root) / "Input")
        return (base / "uploads").resolve()

    def state_root(self) -> Path:
        if self.state_dir:
            return Path(self.state_dir).resolve()
        return (Path(self.output_dir) / "_state").resolve()
