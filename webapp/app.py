"""Admin API: FastAPI surface over the job queue and feed validation."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from core import FeedValidationResult, Job, JobStatus
from orchestrator.service import get_default_queue
from sources.feeds import validate_feed
from sources.opml import import_opml
from utils.exceptions import JobNotFoundError


logger = logging.getLogger(__name__)


class EnqueueRequest(BaseModel):
    type: str = Field(..., description="Job type, e.g. feed.ingest")
    payload: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[int] = Field(default=None, ge=0)
    max_retries: Optional[int] = Field(default=None, ge=1)
    run_at: Optional[datetime] = None

    @field_validator("type")
    @classmethod
    def _strip_type(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("type is required")
        return value


class ValidateRequest(BaseModel):
    url: str = Field(..., min_length=1)


class OpmlImportRequest(BaseModel):
    opml: str = Field(..., min_length=1, description="Raw OPML document")


app = FastAPI(title="Feed Pipeline Admin", version="1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/api/jobs")
async def create_job(req: EnqueueRequest) -> Dict[str, Any]:
    job_id = get_default_queue().enqueue(
        req.type,
        req.payload,
        priority=req.priority,
        max_retries=req.max_retries,
        run_at=req.run_at,
    )
    return {"id": job_id, "status": JobStatus.PENDING.value}


@app.get("/api/jobs/{job_id}")
async def job_status(job_id: str) -> Job:
    try:
        return get_default_queue().require(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="job not found") from exc


@app.get("/api/jobs")
async def jobs(
    status: Optional[JobStatus] = None,
    limit: int = Query(default=100, ge=1, le=1000),
) -> List[Job]:
    return get_default_queue().list_jobs(status=status, limit=limit)


@app.post("/api/feeds/validate")
async def validate(req: ValidateRequest) -> FeedValidationResult:
    return await validate_feed(req.url.strip())


@app.post("/api/feeds/import-opml")
async def opml_import(req: OpmlImportRequest) -> Dict[str, Any]:
    job_ids = await import_opml(req.opml, get_default_queue().enqueue)
    if not job_ids:
        raise HTTPException(status_code=400, detail="No feed outlines found in OPML")
    return {"queued": len(job_ids), "job_ids": job_ids}
