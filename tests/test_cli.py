from __future__ import annotations

import json

from click.testing import CliRunner

from dubbing_studio.cli import cli
from dubbing_studio.cli.commands_admin import open_auth_store
from dubbing_studio.cli.commands_jobs import open_job_store
from dubbing_studio.utils.crypto import PasswordHasher
from tests._helpers.jobs import make_job


def test_jobs_lifecycle_commands() -> None:
    store = open_job_store()
    job = make_job(owner_id="u_1")
    store.put(job)
    runner = CliRunner()

    r = runner.invoke(cli, ["jobs", "progress", job.id, "40"])
    assert r.exit_code == 0, r.output
    assert "processing" in r.output

    r = runner.invoke(
        cli,
        [
            "jobs",
            "complete",
            job.id,
            "--output",
            "dubbed_video=/out/a.mp4",
            "--output",
            "subtitles=/out/a.srt",
        ],
    )
    assert r.exit_code == 0, r.output
    got = store.get(job.id)
    assert got.is_completed()
    assert got.output_files == {"dubbed_video": "/out/a.mp4", "subtitles": "/out/a.srt"}

    r = runner.invoke(cli, ["jobs", "fail", job.id, "--message", "too late"])
    assert r.exit_code != 0
    assert "cannot move from completed to failed" in r.output


def test_jobs_list_and_show() -> None:
    store = open_job_store()
    a, b = make_job(owner_id="u_1"), make_job(owner_id="u_2")
    store.put(a)
    store.put(b)
    store.mark_failed(b.id, "boom")
    runner = CliRunner()

    r = runner.invoke(cli, ["jobs", "list", "--json"])
    assert r.exit_code == 0, r.output
    assert {it["id"] for it in json.loads(r.output)} == {a.id, b.id}

    r = runner.invoke(cli, ["jobs", "list", "--status", "failed"])
    assert b.id in r.output and a.id not in r.output


def test_jobs_stats_counts_each_status() -> None:
    store = open_job_store()
    a, b, c = make_job(), make_job(), make_job()
    for j in (a, b, c):
        store.put(j)
    store.mark_processing(a.id)
    store.mark_failed(b.id, "boom")
    runner = CliRunner()

    r = runner.invoke(cli, ["jobs", "stats", "--json"])
    assert r.exit_code == 0, r.output
    assert json.loads(r.output) == {"pending": 1, "processing": 1, "completed": 0, "failed": 1}

    r = runner.invoke(cli, ["jobs", "stats"])
    assert r.exit_code == 0, r.output
    assert "failed      1" in r.output

    r = runner.invoke(cli, ["jobs", "list", "--owner", "u_1"])
    assert a.id in r.output and b.id not in r.output

    r = runner.invoke(cli, ["jobs", "show", b.id])
    assert json.loads(r.output)["error_message"] == "boom"

    r = runner.invoke(cli, ["jobs", "show", "missing"])
    assert r.exit_code != 0
    assert "job not found" in r.output


def test_complete_rejects_malformed_output() -> None:
    store = open_job_store()
    job = make_job()
    store.put(job)
    r = CliRunner().invoke(cli, ["jobs", "complete", job.id, "--output", "no-equals-sign"])
    assert r.exit_code != 0
    assert store.get(job.id).is_pending()


def test_worker_once() -> None:
    store = open_job_store()
    job = make_job()
    store.put(job)
    r = CliRunner().invoke(
        cli, ["worker", "--once", "--pipeline", "tests._helpers.pipelines:ok_pipeline"]
    )
    assert r.exit_code == 0, r.output
    assert store.get(job.id).is_completed()


def test_worker_rejects_bad_pipeline() -> None:
    r = CliRunner().invoke(cli, ["worker", "--once", "--pipeline", "nope"])
    assert r.exit_code != 0
    assert "cannot load pipeline" in r.output


def test_users_add_creates_and_updates() -> None:
    runner = CliRunner()
    r = runner.invoke(cli, ["users", "add", "carol", "--password", "carolpass", "--role", "admin"])
    assert r.exit_code == 0, r.output
    assert "created carol (admin)" in r.output
    u = open_auth_store().get_user_by_username("carol")
    assert u is not None and u.is_admin
    assert PasswordHasher().verify(u.password_hash, "carolpass")

    r = runner.invoke(cli, ["users", "add", "carol", "--password", "newpass1"])
    assert "updated carol (user)" in r.output
    again = open_auth_store().get_user_by_username("carol")
    assert again.id == u.id
    assert PasswordHasher().verify(again.password_hash, "newpass1")

    r = runner.invoke(cli, ["users", "list"])
    assert "carol" in r.output


def test_config_show_hides_secrets(monkeypatch) -> None:
    from dubbing_studio.config import get_settings

    monkeypatch.setenv("JWT_SECRET", "a-very-private-jwt-secret-value")
    get_settings.cache_clear()
    r = CliRunner().invoke(cli, ["config", "show"])
    assert r.exit_code == 0, r.output
    report = json.loads(r.output)
    assert report["secrets"]["jwt_secret"] == "SET"
    assert "a-very-private-jwt-secret-value" not in r.output
    assert report["public"]["jobs_db_name"] == "jobs.db"
