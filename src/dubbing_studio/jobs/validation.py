"""
Submission validation.

`validate_submission()` checks every field of a dubbing request in one pass and
returns a `SubmissionResult`: either a normalized `JobRequest` or a
`FieldErrors` struct naming every invalid or missing field.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from urllib.parse import urlsplit

from dubbing_studio.jobs.models import (
    DubbingMode,
    JobRequest,
    OutputMode,
    SourceType,
    VoiceStyle,
)

MAX_URL_LENGTH = 2048

ALLOWED_VIDEO_EXTS = {".mp4", ".mkv", ".mov", ".webm", ".m4v", ".avi"}
ALLOWED_VIDEO_MIME = {
    "video/mp4",
    "video/quicktime",
    "video/x-matroska",
    "video/webm",
    "video/x-m4v",
    "video/x-msvideo",
    "video/avi",
}
# Some browsers send this for any binary file; accepted only with a video extension.
_GENERIC_MIME = "application/octet-stream"

_MISSING_SOURCE = "Provide a video URL or upload a video file."
_BOTH_SOURCES = "Provide either a video URL or a video file, not both."


@dataclass(frozen=True, slots=True)
class UploadInfo:
    """What the validator needs to know about an uploaded file."""

    filename: str
    content_type: str
    size: int


@dataclass(frozen=True, slots=True)
class SubmissionPayload:
    video_url: str | None = None
    video_file: UploadInfo | None = None
    dubbing_mode: str | None = None
    voice_style: str | None = None
    output_mode: str | None = None


@dataclass(slots=True)
class FieldErrors:
    video_url: str | None = None
    video_file: str | None = None
    dubbing_mode: str | None = None
    voice_style: str | None = None
    output_mode: str | None = None

    def any(self) -> bool:
        return any(v is not None for v in asdict(self).values())

    def fields(self) -> list[str]:
        return [k for k, v in asdict(self).items() if v is not None]

    def to_dict(self) -> dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(slots=True)
class SubmissionResult:
    ok: bool
    request: JobRequest | None = None
    errors: FieldErrors = field(default_factory=FieldErrors)
    job_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        if self.ok:
            return {"ok": True, "job_id": self.job_id}
        return {"ok": False, "errors": self.errors.to_dict()}


def _blank(v: str | None) -> bool:
    return v is None or not str(v).strip()


def check_video_url(url: str) -> str | None:
    """Return an error message for a malformed URL, or None."""
    u = str(url).strip()
    if len(u) > MAX_URL_LENGTH:
        return f"The video URL must be at most {MAX_URL_LENGTH} characters."
    if any(c.isspace() for c in u):
        return "The video URL must be a valid URL."
    try:
        parts = urlsplit(u)
    except ValueError:
        return "The video URL must be a valid URL."
    if parts.scheme.lower() not in {"http", "https"} or not parts.hostname:
        return "The video URL must be a valid URL."
    return None


def check_video_file(upload: UploadInfo, *, max_bytes: int) -> str | None:
    """Return an error message for an unacceptable upload, or None."""
    ext = Path(str(upload.filename or "")).suffix.lower()
    mime = str(upload.content_type or "").split(";", 1)[0].strip().lower()
    if ext not in ALLOWED_VIDEO_EXTS:
        return "The video file must be a video (mp4, mkv, mov, webm, m4v, avi)."
    if mime not in ALLOWED_VIDEO_MIME and mime != _GENERIC_MIME:
        return "The video file must be a video (mp4, mkv, mov, webm, m4v, avi)."
    if int(upload.size) <= 0:
        return "The video file is empty."
    if int(upload.size) > int(max_bytes):
        return f"The video file may not be larger than {int(max_bytes)} bytes."
    return None


def _choice(value: str | None, enum_cls: type[Enum], label: str) -> tuple[Enum | None, str | None]:
    if _blank(value):
        return None, f"The {label} field is required."
    raw = str(value).strip().lower()
    try:
        return enum_cls(raw), None
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        return None, f"The selected {label} is invalid (allowed: {allowed})."


def validate_submission(payload: SubmissionPayload, *, max_upload_bytes: int) -> SubmissionResult:
    errors = FieldErrors()

    has_url = not _blank(payload.video_url)
    has_file = payload.video_file is not None and bool(str(payload.video_file.filename or "").strip())
    if not has_url and not has_file:
        errors.video_url = _MISSING_SOURCE
        errors.video_file = _MISSING_SOURCE
    elif has_url and has_file:
        errors.video_url = _BOTH_SOURCES
        errors.video_file = _BOTH_SOURCES
    elif has_url:
        errors.video_url = check_video_url(str(payload.video_url))
    else:
        assert payload.video_file is not None
        errors.video_file = check_video_file(payload.video_file, max_bytes=max_upload_bytes)

    dubbing_mode, errors.dubbing_mode = _choice(payload.dubbing_mode, DubbingMode, "dubbing mode")
    voice_style, errors.voice_style = _choice(payload.voice_style, VoiceStyle, "voice style")
    output_mode, errors.output_mode = _choice(payload.output_mode, OutputMode, "output mode")

    if errors.any():
        return SubmissionResult(ok=False, errors=errors)

    if has_url:
        request = JobRequest(
            source_type=SourceType.url,
            source_url=str(payload.video_url).strip(),
            dubbing_mode=dubbing_mode,  # type: ignore[arg-type]
            voice_style=voice_style,  # type: ignore[arg-type]
            output_mode=output_mode,  # type: ignore[arg-type]
        )
    else:
        assert payload.video_file is not None
        # source_file is filled in once the upload has been stored.
        request = JobRequest(
            source_type=SourceType.file,
            source_file="",
            source_filename=Path(payload.video_file.filename).name,
            dubbing_mode=dubbing_mode,  # type: ignore[arg-type]
            voice_style=voice_style,  # type: ignore[arg-type]
            output_mode=output_mode,  # type: ignore[arg-type]
        )
    return SubmissionResult(ok=True, request=request)
