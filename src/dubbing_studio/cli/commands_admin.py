from __future__ import annotations

import signal
import threading

import click

from config.settings import get_safe_config_report
from dubbing_studio.api.models import AuthStore, Role, User, now_ts
from dubbing_studio.config import get_settings
from dubbing_studio.jobs.worker import DubbingWorker, load_pipeline
from dubbing_studio.utils.crypto import PasswordHasher, random_id

from .commands_jobs import open_job_store
from .output_format import echo_json, job_line


@click.command(help="Run the web server (uvicorn).")
@click.option("--host", default=None, help="Bind address (default: HOST).")
@click.option("--port", type=int, default=None, help="Bind port (default: PORT).")
def serve(host: str | None, port: int | None) -> None:
    from dubbing_studio.web.run import main

    main(host=host, port=port)


@click.command(help="Process pending jobs with an external dubbing pipeline.")
@click.option(
    "--pipeline",
    "pipeline_ref",
    default=None,
    help="Pipeline callable as package.module:callable (default: WORKER_PIPELINE).",
)
@click.option("--once", is_flag=True, default=False, help="Process at most one job and exit.")
@click.option(
    "--poll-interval",
    "poll_interval_s",
    type=float,
    default=None,
    help="Seconds between polls when idle (default: WORKER_POLL_INTERVAL_SEC).",
)
def worker(pipeline_ref: str | None, once: bool, poll_interval_s: float | None) -> None:
    s = get_settings()
    ref = pipeline_ref or str(s.worker_pipeline or "")
    try:
        pipeline = load_pipeline(ref)
    except (ImportError, AttributeError, TypeError, ValueError) as ex:
        raise click.ClickException(f"cannot load pipeline {ref!r}: {ex}") from None
    w = DubbingWorker(open_job_store(), pipeline)
    if once:
        job = w.run_once()
        click.echo(job_line(job) if job is not None else "no pending jobs")
        return

    stop = threading.Event()

    def _handle_term(signum, _frame=None):
        stop.set()

    for _sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(_sig, _handle_term)
    w.run_forever(poll_interval_s=float(poll_interval_s or s.worker_poll_interval_sec), stop=stop)


@click.group(help="Manage user accounts.")
def users() -> None:
    pass


def open_auth_store() -> AuthStore:
    s = get_settings()
    return AuthStore(s.state_root() / str(s.auth_db_name or "auth.db"))


@users.command("add", help="Create a user or reset an existing user's password/role.")
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option(
    "--role",
    type=click.Choice([r.value for r in Role]),
    default=Role.user.value,
    show_default=True,
)
def users_add(username: str, password: str, role: str) -> None:
    username = str(username).strip()
    if not username:
        raise click.BadParameter("username must not be empty", param_hint="USERNAME")
    if not password:
        raise click.BadParameter("password must not be empty", param_hint="--password")
    store = open_auth_store()
    existing = store.get_user_by_username(username)
    u = User(
        id=existing.id if existing is not None else random_id("u_", 16),
        username=username,
        password_hash=PasswordHasher().hash(password),
        role=Role(role),
        created_at=existing.created_at if existing is not None else now_ts(),
    )
    store.upsert_user(u)
    click.echo(f"{'updated' if existing is not None else 'created'} {u.username} ({u.role.value}) id={u.id}")


@users.command("list", help="List user accounts.")
def users_list() -> None:
    for u in open_auth_store().list_users():
        click.echo(f"{u.id}  {u.role.value:<6} {u.username}")


@click.group(name="config", help="Configuration helpers.")
def config_group() -> None:
    pass


@config_group.command("show", help="Print effective settings (secrets shown as SET/UNSET).")
def config_show() -> None:
    echo_json(get_safe_config_report())


def add_commands(cli_group) -> None:
    cli_group.add_command(serve)
    cli_group.add_command(worker)
    cli_group.add_command(users)
    cli_group.add_command(config_group)


__all__ = ["add_commands", "serve", "worker", "users", "config_group"]
