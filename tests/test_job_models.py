from __future__ import annotations

import pytest

from dubbing_studio.jobs.models import (
    DubbingJob,
    InvalidTransition,
    JobRequest,
    JobStatus,
    SourceType,
)
from tests._helpers.jobs import make_job, url_request


def test_new_job_is_pending() -> None:
    job = make_job(owner_id="u_1")
    assert job.status == JobStatus.pending
    assert job.is_pending()
    assert not job.is_processing()
    assert not job.is_completed()
    assert not job.has_failed()
    assert job.progress == 0
    assert job.output_files == {}
    assert job.error_message is None
    assert job.owner_id == "u_1"
    assert job.created_at == job.updated_at


def test_create_requires_exactly_one_source() -> None:
    base = url_request()
    both = JobRequest(
        source_type=SourceType.url,
        source_url="https://example.com/a.mp4",
        source_file="/tmp/a.mp4",
        dubbing_mode=base.dubbing_mode,
        voice_style=base.voice_style,
        output_mode=base.output_mode,
    )
    with pytest.raises(ValueError):
        DubbingJob.create(both)
    neither = JobRequest(
        source_type=SourceType.url,
        dubbing_mode=base.dubbing_mode,
        voice_style=base.voice_style,
        output_mode=base.output_mode,
    )
    with pytest.raises(ValueError):
        DubbingJob.create(neither)


def test_create_requires_source_matching_type() -> None:
    base = url_request()
    file_labelled_url = JobRequest(
        source_type=SourceType.url,
        source_file="/tmp/a.mp4",
        dubbing_mode=base.dubbing_mode,
        voice_style=base.voice_style,
        output_mode=base.output_mode,
    )
    with pytest.raises(ValueError):
        DubbingJob.create(file_labelled_url)
    url_labelled_file = JobRequest(
        source_type=SourceType.file,
        source_url="https://example.com/a.mp4",
        dubbing_mode=base.dubbing_mode,
        voice_style=base.voice_style,
        output_mode=base.output_mode,
    )
    with pytest.raises(ValueError):
        DubbingJob.create(url_labelled_file)


def test_completion_records_outputs() -> None:
    job = make_job()
    job.mark_as_processing()
    assert job.is_processing()
    job.mark_as_completed({"dubbed_video": "/out/a.mp4"})
    assert job.status == JobStatus.completed
    assert job.is_completed()
    assert job.progress == 100
    assert job.output_files == {"dubbed_video": "/out/a.mp4"}
    assert job.completed_at is not None
    assert job.is_terminal()


def test_failure_records_message() -> None:
    job = make_job()
    job.mark_as_processing()
    job.mark_as_failed("Processing error")
    assert job.status == JobStatus.failed
    assert job.has_failed()
    assert job.error_message == "Processing error"
    assert job.is_terminal()


def test_pending_job_can_fail_directly() -> None:
    job = make_job()
    job.mark_as_failed("source unavailable")
    assert job.has_failed()


def test_terminal_states_are_final() -> None:
    done = make_job()
    done.mark_as_completed({"dubbed_video": "/out/a.mp4"})
    with pytest.raises(InvalidTransition):
        done.mark_as_failed("late failure")
    with pytest.raises(InvalidTransition):
        done.mark_as_completed({"dubbed_video": "/out/b.mp4"})
    with pytest.raises(InvalidTransition):
        done.mark_as_processing()
    assert done.output_files == {"dubbed_video": "/out/a.mp4"}

    failed = make_job()
    failed.mark_as_failed("boom")
    with pytest.raises(InvalidTransition) as ei:
        failed.mark_as_completed({"dubbed_video": "/out/a.mp4"})
    assert ei.value.current == JobStatus.failed
    assert ei.value.target == JobStatus.completed
    assert failed.error_message == "boom"


def test_processing_cannot_restart() -> None:
    job = make_job()
    job.mark_as_processing()
    with pytest.raises(InvalidTransition):
        job.mark_as_processing()


def test_completion_needs_outputs_and_failure_needs_message() -> None:
    job = make_job()
    with pytest.raises(ValueError):
        job.mark_as_completed({})
    with pytest.raises(ValueError):
        job.mark_as_failed("   ")
    assert job.is_pending()


def test_progress_is_monotonic_and_bounded() -> None:
    job = make_job()
    job.update_progress(0)
    assert job.is_pending()
    job.update_progress(25)
    assert job.is_processing()
    assert job.progress == 25
    job.update_progress(10)
    assert job.progress == 25
    with pytest.raises(ValueError):
        job.update_progress(101)
    with pytest.raises(ValueError):
        job.update_progress(-1)
    job.mark_as_completed({"dubbed_video": "/out/a.mp4"})
    with pytest.raises(InvalidTransition):
        job.update_progress(50)


def test_dict_roundtrip_keeps_state() -> None:
    job = make_job(owner_id="u_9")
    job.mark_as_processing()
    job.mark_as_failed("bad codec")
    d = job.to_dict()
    assert d["status"] == "failed"
    assert d["dubbing_mode"] == "auto"
    again = DubbingJob.from_dict(d)
    assert again == job


@pytest.mark.parametrize(
    "outputs",
    [
        {"dubbed_video": None},
        {"dubbed_video": ""},
        {"dubbed_video": "   "},
        {"": "/out/a.mp4"},
        {1: "/out/a.mp4"},
        [("dubbed_video", "/out/a.mp4")],
        None,
    ],
)
def test_completion_rejects_malformed_outputs(outputs) -> None:
    job = make_job()
    job.mark_as_processing()
    with pytest.raises(ValueError):
        job.mark_as_completed(outputs)
    assert job.is_processing()
    assert job.output_files == {}


@pytest.mark.parametrize("value", [50.9, True, "50", None])
def test_progress_rejects_non_integers(value) -> None:
    job = make_job()
    with pytest.raises(ValueError):
        job.update_progress(value)
    assert job.progress == 0
    assert job.is_pending()
