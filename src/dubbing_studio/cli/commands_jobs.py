from __future__ import annotations

from collections.abc import Callable

import click

from dubbing_studio.config import get_settings
from dubbing_studio.jobs.models import DubbingJob, InvalidTransition, JobStatus
from dubbing_studio.jobs.store import JobNotFound, JobStore

from .output_format import echo_json, job_line


def open_job_store() -> JobStore:
    s = get_settings()
    return JobStore(s.state_root() / str(s.jobs_db_name or "jobs.db"))


def _apply(fn: Callable[[], DubbingJob]) -> DubbingJob:
    try:
        return fn()
    except JobNotFound as ex:
        raise click.ClickException(f"job not found: {ex.args[0]}") from None
    except (InvalidTransition, ValueError) as ex:
        raise click.ClickException(str(ex)) from None


def _parse_outputs(values: tuple[str, ...]) -> dict[str, str]:
    out: dict[str, str] = {}
    for raw in values:
        name, sep, path = str(raw).partition("=")
        if not sep or not name.strip() or not path.strip():
            raise click.BadParameter(f"expected NAME=PATH, got {raw!r}", param_hint="--output")
        out[name.strip()] = path.strip()
    return out


@click.group(help="Inspect and drive dubbing jobs.")
def jobs() -> None:
    pass


@jobs.command("list", help="List jobs, newest first.")
@click.option("--owner", default=None, help="Only jobs owned by this user id.")
@click.option(
    "--status",
    type=click.Choice([s.value for s in JobStatus]),
    default=None,
    help="Only jobs in this status.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Machine-readable output.")
def list_cmd(owner: str | None, status: str | None, as_json: bool) -> None:
    store = open_job_store()
    items = store.list_for_owner(owner) if owner else store.list_all()
    if status:
        items = [j for j in items if j.status.value == status]
    if as_json:
        echo_json([j.to_dict() for j in items])
        return
    for j in items:
        click.echo(job_line(j))


@jobs.command("stats", help="Count jobs per status.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Machine-readable output.")
def stats(as_json: bool) -> None:
    counts = open_job_store().count_by_status()
    if as_json:
        echo_json(counts)
        return
    for status, n in counts.items():
        click.echo(f"{status:<11} {n}")


@jobs.command("show", help="Print one job as JSON.")
@click.argument("job_id")
def show(job_id: str) -> None:
    job = open_job_store().get(job_id)
    if job is None:
        raise click.ClickException(f"job not found: {job_id}")
    echo_json(job.to_dict())


@jobs.command("progress", help="Record progress (0-100) for a job.")
@click.argument("job_id")
@click.argument("value", type=int)
def progress(job_id: str, value: int) -> None:
    store = open_job_store()
    job = _apply(lambda: store.update_progress(job_id, value))
    click.echo(job_line(job))


@jobs.command("complete", help="Mark a processing job as completed.")
@click.argument("job_id")
@click.option(
    "--output",
    "outputs",
    multiple=True,
    required=True,
    help="Output file as NAME=PATH (repeatable).",
)
def complete(job_id: str, outputs: tuple[str, ...]) -> None:
    files = _parse_outputs(outputs)
    store = open_job_store()
    job = _apply(lambda: store.mark_completed(job_id, files))
    click.echo(job_line(job))


@jobs.command("fail", help="Mark a job as failed.")
@click.argument("job_id")
@click.option("--message", required=True, help="Error message shown to the owner.")
def fail(job_id: str, message: str) -> None:
    store = open_job_store()
    job = _apply(lambda: store.mark_failed(job_id, message))
    click.echo(job_line(job))


def add_commands(cli_group) -> None:
    cli_group.add_command(jobs)


__all__ = ["add_commands", "jobs", "open_job_store"]
