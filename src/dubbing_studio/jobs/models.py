from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class SourceType(str, Enum):
    url = "url"
    file = "file"


class DubbingMode(str, Enum):
    auto = "auto"
    manual = "manual"


class VoiceStyle(str, Enum):
    natural = "natural"
    expressive = "expressive"
    neutral = "neutral"
    dramatic = "dramatic"


class OutputMode(str, Enum):
    replace = "replace"  # dubbed audio replaces the original track
    separate = "separate"  # dubbed audio is produced as an additional track/file


TERMINAL_STATUSES = frozenset({JobStatus.completed, JobStatus.failed})

_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.pending: frozenset({JobStatus.processing, JobStatus.completed, JobStatus.failed}),
    JobStatus.processing: frozenset({JobStatus.completed, JobStatus.failed}),
    JobStatus.completed: frozenset(),
    JobStatus.failed: frozenset(),
}


class InvalidTransition(RuntimeError):
    def __init__(self, job_id: str, current: JobStatus, target: JobStatus) -> None:
        super().__init__(f"job {job_id}: cannot move from {current.value} to {target.value}")
        self.job_id = job_id
        self.current = current
        self.target = target


def now_utc() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def _checked_outputs(output_files: Any) -> dict[str, str]:
    # name -> location, both non-blank strings
    if not isinstance(output_files, Mapping) or not output_files:
        raise ValueError("a completed job needs a non-empty mapping of output files")
    for name, location in output_files.items():
        if not (isinstance(name, str) and name.strip()):
            raise ValueError(f"output file name must be a non-blank string, got {name!r}")
        if not (isinstance(location, str) and location.strip()):
            raise ValueError(f"output file {name!r} needs a non-blank location, got {location!r}")
    return dict(output_files)


@dataclass(frozen=True, slots=True)
class JobRequest:
    """Normalized, validated job-creation request."""

    source_type: SourceType
    dubbing_mode: DubbingMode
    voice_style: VoiceStyle
    output_mode: OutputMode
    source_url: str | None = None
    source_file: str | None = None
    source_filename: str = ""


@dataclass(slots=True)
class DubbingJob:
    id: str
    owner_id: str
    source_type: SourceType
    dubbing_mode: DubbingMode
    voice_style: VoiceStyle
    output_mode: OutputMode
    created_at: str
    updated_at: str
    source_url: str | None = None
    source_file: str | None = None
    source_filename: str = ""
    status: JobStatus = JobStatus.pending
    progress: int = 0
    output_files: dict[str, str] = field(default_factory=dict)
    error_message: str | None = None
    completed_at: str | None = None

    @classmethod
    def create(cls, request: JobRequest, *, owner_id: str = "") -> DubbingJob:
        if (request.source_url is None) == (request.source_file is None):
            raise ValueError("exactly one of source_url / source_file must be set")
        if (request.source_type == SourceType.url) != (request.source_url is not None):
            raise ValueError(
                f"source_type {request.source_type.value} does not match the source that is set"
            )
        ts = now_utc()
        return cls(
            id=new_id(),
            owner_id=str(owner_id or ""),
            source_type=request.source_type,
            source_url=request.source_url,
            source_file=request.source_file,
            source_filename=request.source_filename,
            dubbing_mode=request.dubbing_mode,
            voice_style=request.voice_style,
            output_mode=request.output_mode,
            created_at=ts,
            updated_at=ts,
        )

    # --- predicates ---

    def is_pending(self) -> bool:
        return self.status == JobStatus.pending

    def is_processing(self) -> bool:
        return self.status == JobStatus.processing

    def is_completed(self) -> bool:
        return self.status == JobStatus.completed

    def has_failed(self) -> bool:
        return self.status == JobStatus.failed

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    # --- transitions ---

    def _require(self, target: JobStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(self.id, self.status, target)

    def _touch(self) -> None:
        self.updated_at = now_utc()

    def mark_as_processing(self) -> None:
        self._require(JobStatus.processing)
        self.status = JobStatus.processing
        self._touch()

    def update_progress(self, value: int) -> None:
        """
        Record worker progress. Lower values than the current one are ignored;
        a positive value on a pending job implies it has started.
        """
        if self.is_terminal():
            raise InvalidTransition(self.id, self.status, JobStatus.processing)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"progress must be an integer, got {value!r}")
        pct = int(value)
        if pct < 0 or pct > 100:
            raise ValueError(f"progress must be within 0..100, got {value!r}")
        if pct > 0 and self.is_pending():
            self.status = JobStatus.processing
        self.progress = max(int(self.progress), pct)
        self._touch()

    def mark_as_completed(self, output_files: Mapping[str, str]) -> None:
        self._require(JobStatus.completed)
        outputs = _checked_outputs(output_files)
        ts = now_utc()
        self.status = JobStatus.completed
        self.progress = 100
        self.output_files = outputs
        self.completed_at = ts
        self.updated_at = ts

    def mark_as_failed(self, error_message: str) -> None:
        self._require(JobStatus.failed)
        msg = str(error_message or "").strip()
        if not msg:
            raise ValueError("a failed job needs an error message")
        self.status = JobStatus.failed
        self.error_message = msg
        self._touch()

    # --- serialization ---

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        d["source_type"] = self.source_type.value
        d["dubbing_mode"] = self.dubbing_mode.value
        d["voice_style"] = self.voice_style.value
        d["output_mode"] = self.output_mode.value
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DubbingJob:
        dd = dict(d)
        dd.setdefault("owner_id", "")
        dd.setdefault("source_filename", "")
        dd.setdefault("output_files", {})
        dd.setdefault("updated_at", dd.get("created_at", ""))
        dd["status"] = JobStatus(dd.get("status") or JobStatus.pending.value)
        dd["source_type"] = SourceType(dd["source_type"])
        dd["dubbing_mode"] = DubbingMode(dd["dubbing_mode"])
        dd["voice_style"] = VoiceStyle(dd["voice_style"])
        dd["output_mode"] = OutputMode(dd["output_mode"])
        dd["progress"] = int(dd.get("progress") or 0)
        dd["output_files"] = dict(dd.get("output_files") or {})
        return cls(**dd)
