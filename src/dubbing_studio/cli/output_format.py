from __future__ import annotations

import json
from typing import Any

import click

from dubbing_studio.jobs.models import DubbingJob


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True, default=str))


def job_line(job: DubbingJob) -> str:
    src = job.source_url or job.source_filename or "-"
    owner = job.owner_id or "(anonymous)"
    return f"{job.id}  {job.status.value:<10} {job.progress:>3}%  {owner:<20} {src}"
