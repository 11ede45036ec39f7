from __future__ import annotations

from dubbing_studio.jobs.models import DubbingJob


def ok_pipeline(job: DubbingJob, report_progress) -> dict[str, str]:
    report_progress(30)
    report_progress(80)
    return {"dubbed_video": f"/out/{job.id}.mp4", "subtitles": f"/out/{job.id}.srt"}


def broken_pipeline(job: DubbingJob, report_progress) -> dict[str, str]:
    report_progress(10)
    raise RuntimeError("Video download failed")


NOT_CALLABLE = 42
