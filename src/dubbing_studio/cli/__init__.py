from __future__ import annotations

import click

from dubbing_studio.utils.log import set_log_level

from . import commands_admin, commands_jobs


@click.group(name="dubbing-studio", help="dubbing-studio CLI (server, worker, jobs, users)")
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this invocation.")
def cli(log_level: str | None) -> None:
    if log_level:
        set_log_level(log_level)


commands_admin.add_commands(cli)
commands_jobs.add_commands(cli)

__all__ = ["cli"]
