from __future__ import annotations

import importlib
import threading
import time
from collections.abc import Callable

from dubbing_studio.jobs.models import DubbingJob, InvalidTransition
from dubbing_studio.jobs.store import JobStore
from dubbing_studio.ops import audit
from dubbing_studio.ops.metrics import jobs_finished
from dubbing_studio.utils.log import logger

ProgressCallback = Callable[[int], None]
# pipeline(job, report_progress) -> {"dubbed_video": "/path", ...}
Pipeline = Callable[[DubbingJob, ProgressCallback], dict[str, str]]


def load_pipeline(ref: str) -> Pipeline:
    """
    Resolve "package.module:callable" to the external media pipeline.
    """
    mod_name, sep, attr = str(ref or "").partition(":")
    if not sep or not mod_name or not attr:
        raise ValueError(f"pipeline must look like 'package.module:callable', got {ref!r}")
    fn = getattr(importlib.import_module(mod_name), attr)
    if not callable(fn):
        raise TypeError(f"{ref} is not callable")
    return fn


class DubbingWorker:
    """
    Drives jobs through processing to completed/failed around an external
    pipeline. The pipeline's exceptions are recorded on the job, never re-raised.
    """

    def __init__(self, store: JobStore, pipeline: Pipeline) -> None:
        self.store = store
        self.pipeline = pipeline

    def _progress_cb(self, job_id: str) -> ProgressCallback:
        def report(pct: int) -> None:
            self.store.update_progress(job_id, pct)

        return report

    def process(self, job: DubbingJob) -> DubbingJob:
        t0 = time.perf_counter()
        try:
            outputs = self.pipeline(job, self._progress_cb(job.id))
            done = self.store.mark_completed(job.id, outputs)
        except InvalidTransition as ex:
            # Another writer already finished this job.
            logger.warning("job_transition_conflict", job_id=job.id, error=str(ex))
            current = self.store.get(job.id)
            return current if current is not None else job
        except Exception as ex:
            msg = str(ex).strip() or type(ex).__name__
            try:
                done = self.store.mark_failed(job.id, msg)
            except InvalidTransition as conflict:
                logger.warning("job_transition_conflict", job_id=job.id, error=str(conflict))
                current = self.store.get(job.id)
                return current if current is not None else job
            logger.warning("job_failed", job_id=job.id, error=msg)
        dt = time.perf_counter() - t0
        jobs_finished.labels(status=done.status.value).inc()
        logger.info("job_finished", job_id=done.id, status=done.status.value, seconds=round(dt, 3))
        audit.emit(
            f"job.{done.status.value}",
            user_id=done.owner_id or None,
            job_id=done.id,
            outcome=done.status.value,
        )
        return done

    def run_once(self) -> DubbingJob | None:
        job = self.store.claim_next_pending()
        if job is None:
            return None
        logger.info("job_started", job_id=job.id)
        return self.process(job)

    def run_forever(self, *, poll_interval_s: float, stop: threading.Event) -> None:
        logger.info("worker_started", poll_interval_s=float(poll_interval_s))
        while not stop.is_set():
            if self.run_once() is None:
                stop.wait(float(poll_interval_s))
        logger.info("worker_stopped")
