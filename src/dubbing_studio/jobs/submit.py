from __future__ import annotations

import dataclasses
import shutil
from pathlib import Path
from typing import BinaryIO

from dubbing_studio.jobs.models import DubbingJob, JobRequest, SourceType, new_id
from dubbing_studio.jobs.store import JobStore
from dubbing_studio.jobs.validation import (
    SubmissionPayload,
    SubmissionResult,
    validate_submission,
)
from dubbing_studio.ops import audit
from dubbing_studio.ops.metrics import jobs_rejected, jobs_submitted
from dubbing_studio.utils.log import logger


def save_upload(src: BinaryIO, *, filename: str, uploads_dir: Path) -> Path:
    """
    Copy an uploaded stream under a generated name; the client filename only
    contributes its extension.
    """
    uploads_dir.mkdir(parents=True, exist_ok=True)
    ext = Path(filename).suffix.lower()
    dest = (uploads_dir / f"{new_id()}{ext}").resolve()
    with dest.open("wb") as f:
        shutil.copyfileobj(src, f)
    return dest


def create_job(store: JobStore, request: JobRequest, *, owner_id: str = "") -> DubbingJob:
    job = DubbingJob.create(request, owner_id=owner_id)
    store.put(job)
    jobs_submitted.labels(source_type=job.source_type.value).inc()
    logger.info(
        "job_submitted",
        job_id=job.id,
        source_type=job.source_type.value,
        dubbing_mode=job.dubbing_mode.value,
        voice_style=job.voice_style.value,
        output_mode=job.output_mode.value,
        anonymous=not bool(job.owner_id),
    )
    audit.emit(
        "job.submitted",
        user_id=job.owner_id or None,
        job_id=job.id,
        meta={"source_type": job.source_type.value},
    )
    return job


def submit(
    store: JobStore,
    payload: SubmissionPayload,
    *,
    owner_id: str = "",
    upload_stream: BinaryIO | None = None,
    uploads_dir: Path,
    max_upload_bytes: int,
) -> SubmissionResult:
    """
    Validate a submission and, when valid, persist the upload and create a
    pending job. Invalid submissions create nothing.
    """
    result = validate_submission(payload, max_upload_bytes=max_upload_bytes)
    if not result.ok:
        jobs_rejected.inc()
        logger.info("job_submission_rejected", fields=result.errors.fields())
        return result

    request = result.request
    assert request is not None
    stored: Path | None = None
    if request.source_type == SourceType.file:
        if upload_stream is None or payload.video_file is None:
            raise ValueError("file submissions need an upload stream")
        stored = save_upload(
            upload_stream, filename=payload.video_file.filename, uploads_dir=uploads_dir
        )
        request = dataclasses.replace(request, source_file=str(stored))

    try:
        job = create_job(store, request, owner_id=owner_id)
    except Exception:
        if stored is not None:
            stored.unlink(missing_ok=True)
            logger.warning("upload_discarded", reason="job_create_failed")
        raise
    return SubmissionResult(ok=True, request=request, job_id=job.id)
