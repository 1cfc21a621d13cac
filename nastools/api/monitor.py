from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from nastools.services.monitor.scheduler import JobScheduler

router = APIRouter(prefix="/api/monitor", tags=["monitor"])


class JobStatusResponse(BaseModel):
    name: str
    description: str
    schedule: str
    running: bool
    last_run_at: Optional[datetime] = None
    last_run_duration_ms: Optional[int] = None
    last_run_error: Optional[str] = None
    next_run_at: Optional[datetime] = None


class JobListResponse(BaseModel):
    jobs: List[JobStatusResponse]


class JobRunResponse(BaseModel):
    success: bool
    message: str


def get_scheduler(request: Request) -> JobScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Monitor not initialized")
    return scheduler


@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(request: Request):
    """Status of all monitor jobs"""
    scheduler = get_scheduler(request)
    return {"jobs": [job.to_dict() for job in scheduler.status()]}


@router.post("/jobs/{name}/run", response_model=JobRunResponse)
async def run_job(name: str, request: Request):
    """Start a job now, outside its schedule"""
    scheduler = get_scheduler(request)
    if not scheduler.trigger(name):
        raise HTTPException(status_code=404, detail="Job not found")
    return {"success": True, "message": f"Job {name} triggered"}
