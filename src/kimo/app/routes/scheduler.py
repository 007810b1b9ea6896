"""Internal scheduler endpoints — run or inspect notification jobs on demand."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException

from kimo.app.config import get_settings
from kimo.domain.schemas import JobInfo, JobRunResponse
from kimo.services.scheduler import PeriodicRunner, get_runner

logger = logging.getLogger(__name__)


async def verify_internal_token(x_internal_token: str = Header(...)):
    """Verify that the request includes a valid internal auth token."""
    settings = get_settings()
    if x_internal_token != settings.internal_token:
        raise HTTPException(status_code=401, detail="Invalid internal token")


router = APIRouter(
    prefix="/api/internal/scheduler",
    tags=["scheduler"],
    dependencies=[Depends(verify_internal_token)],
)


@router.get("/jobs", response_model=list[JobInfo])
async def list_jobs(runner: PeriodicRunner = Depends(get_runner)):
    return [JobInfo(**info) for info in runner.describe()]


@router.post("/jobs/{name}", response_model=JobRunResponse)
async def run_job(name: str, runner: PeriodicRunner = Depends(get_runner)):
    """Run one notification job now, outside its cadence."""
    if name not in runner.jobs:
        raise HTTPException(status_code=404, detail=f"Unknown job: {name}")

    sent = await runner.run(name)
    logger.info("Manual run of %s: %d sent", name, sent)
    return JobRunResponse(job=name, sent=sent)
