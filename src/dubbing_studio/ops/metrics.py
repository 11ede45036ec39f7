from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, generate_latest

REGISTRY = CollectorRegistry()

jobs_submitted = Counter(
    "dubbing_jobs_submitted_total",
    "Jobs accepted by the submission form",
    labelnames=("source_type",),
    registry=REGISTRY,
)
jobs_rejected = Counter(
    "dubbing_jobs_rejected_total", "Submissions rejected by validation", registry=REGISTRY
)
jobs_finished = Counter(
    "dubbing_jobs_finished_total",
    "Jobs finished by final status",
    labelnames=("status",),
    registry=REGISTRY,
)


def render_latest() -> bytes:
    return generate_latest(REGISTRY)
