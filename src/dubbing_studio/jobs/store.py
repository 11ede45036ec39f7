from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from pathlib import Path

from sqlitedict import SqliteDict  # type: ignore

from dubbing_studio.jobs.models import DubbingJob, JobStatus
from dubbing_studio.utils.locks import file_lock


class JobNotFound(KeyError):
    pass


class JobStore:
    """
    Persistent job table.

    Each operation opens its own SqliteDict handle (avoids cross-thread SQLite
    handle issues). Writes hold a thread lock and a cross-process file lock, so
    every read-modify-write in `transition()` is a compare-and-set on the
    stored status.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._lock_path = self.db_path.with_suffix(self.db_path.suffix + ".lock")
        # Ensure the table exists before the first read.
        with self._write_lock(), self._jobs():
            pass

    def _jobs(self) -> SqliteDict:
        return SqliteDict(str(self.db_path), tablename="jobs", autocommit=True)

    def _write_lock(self):
        return file_lock(self._lock_path)

    def put(self, job: DubbingJob) -> None:
        with self._lock, self._write_lock(), self._jobs() as db:
            db[job.id] = job.to_dict()

    def get(self, id: str) -> DubbingJob | None:
        with self._lock, self._jobs() as db:
            raw = db.get(id)
        if raw is None:
            return None
        return DubbingJob.from_dict(raw)

    def transition(self, id: str, fn: Callable[[DubbingJob], None]) -> DubbingJob:
        """
        Load the job, apply `fn` (a model operation that may raise) and persist
        the result. Nothing is written when `fn` raises.
        """
        with self._lock, self._write_lock(), self._jobs() as db:
            raw = db.get(id)
            if raw is None:
                raise JobNotFound(id)
            job = DubbingJob.from_dict(raw)
            fn(job)
            db[id] = job.to_dict()
        return job

    def mark_processing(self, id: str) -> DubbingJob:
        return self.transition(id, lambda j: j.mark_as_processing())

    def update_progress(self, id: str, progress: int) -> DubbingJob:
        return self.transition(id, lambda j: j.update_progress(progress))

    def mark_completed(self, id: str, output_files: Mapping[str, str]) -> DubbingJob:
        return self.transition(id, lambda j: j.mark_as_completed(output_files))

    def mark_failed(self, id: str, error_message: str) -> DubbingJob:
        return self.transition(id, lambda j: j.mark_as_failed(error_message))

    def claim_next_pending(self) -> DubbingJob | None:
        """
        Atomically move the oldest pending job to processing and return it.
        """
        with self._lock, self._write_lock(), self._jobs() as db:
            pending = [
                DubbingJob.from_dict(v)
                for v in db.values()
                if str(v.get("status")) == JobStatus.pending.value
            ]
            if not pending:
                return None
            pending.sort(key=lambda j: (j.created_at, j.id))
            job = pending[0]
            job.mark_as_processing()
            db[job.id] = job.to_dict()
        return job

    def list_all(self) -> list[DubbingJob]:
        with self._lock, self._jobs() as db:
            items = list(db.values())
        jobs = [DubbingJob.from_dict(v) for v in items]
        jobs.sort(key=lambda j: (j.created_at, j.id), reverse=True)
        return jobs

    def list_for_owner(self, owner_id: str) -> list[DubbingJob]:
        # Anonymous jobs (empty owner) belong to nobody.
        if not str(owner_id or ""):
            return []
        return [j for j in self.list_all() if j.owner_id == str(owner_id)]

    def count_by_status(self) -> dict[str, int]:
        counts = {st.value: 0 for st in JobStatus}
        for j in self.list_all():
            counts[j.status.value] += 1
        return counts
