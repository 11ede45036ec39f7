from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from dubbing_studio.api.deps import Identity, current_identity, get_job_store
from dubbing_studio.jobs.models import DubbingJob
from dubbing_studio.jobs.store import JobStore

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def job_view(job: DubbingJob) -> dict[str, Any]:
    """Public job representation; stored upload paths are not exposed."""
    d = job.to_dict()
    d.pop("source_file", None)
    d["is_terminal"] = job.is_terminal()
    return d


@router.get("")
async def list_jobs(
    ident: Identity = Depends(current_identity),
    store: JobStore = Depends(get_job_store),
) -> dict[str, Any]:
    jobs = store.list_for_owner(ident.user.id)
    return {"items": [job_view(j) for j in jobs], "total": len(jobs)}


@router.get("/{id}")
async def get_job(
    id: str,
    ident: Identity = Depends(current_identity),
    store: JobStore = Depends(get_job_store),
) -> dict[str, Any]:
    job = store.get(id)
    # Someone else's job looks exactly like a missing one.
    if job is None or (job.owner_id != ident.user.id and not ident.user.is_admin):
        raise HTTPException(status_code=404, detail="Not found")
    return job_view(job)
