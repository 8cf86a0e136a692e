"""HTTP controller layer for the bottling schedule."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from backend.controllers.dependencies import get_bottling_scheduler
from backend.services.bottling_service import CONFLICT_OVERLAP, BottlingScheduler
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["bottling"])


class BottlingJobRequest(BaseModel):
    """Bottle count and date are checked by the scheduler, which reports failures as conflicts."""

    batch_id: str = Field(min_length=1)
    date: str
    line_id: str = Field(min_length=1)
    bottles: int


class BottlingRequirementsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bottles: int = Field(gt=0)
    corks: int = Field(gt=0)
    capsules: int = Field(gt=0)
    labels: int = Field(gt=0)
    boxes: int = Field(gt=0)


class BottlingJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    batch_id: str
    scheduled_date: datetime
    line_id: str
    estimated_bottles: int = Field(gt=0)
    estimated_duration: float = Field(gt=0.0)
    resources: BottlingRequirementsResponse
    status: str
    actual_bottles: int = Field(ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    quality_checks: list[str]


class ScheduleConflictResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    message: str
    job: Optional[BottlingJobResponse] = None


class BottlingResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    job: Optional[BottlingJobResponse] = None
    conflicts: list[ScheduleConflictResponse]


@router.post(
    "/bottling_jobs",
    response_model=BottlingResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def schedule_bottling(
    payload: BottlingJobRequest,
    response: Response,
    scheduler: BottlingScheduler = Depends(get_bottling_scheduler),
) -> BottlingResultResponse:
    """Book a line; rejected requests still return the structured result body."""
    result = scheduler.schedule_bottling(
        batch_id=payload.batch_id,
        date=payload.date,
        line_id=payload.line_id,
        bottles=payload.bottles,
    )
    if not result.success:
        if any(conflict.type == CONFLICT_OVERLAP for conflict in result.conflicts):
            response.status_code = status.HTTP_409_CONFLICT
        else:
            response.status_code = status.HTTP_400_BAD_REQUEST
    return BottlingResultResponse.model_validate(result)


@router.get("/bottling_jobs", response_model=list[BottlingJobResponse])
async def list_bottling_jobs(
    line_id: Optional[str] = Query(default=None, min_length=1),
    on_date: Optional[date] = Query(default=None, alias="date"),
    scheduler: BottlingScheduler = Depends(get_bottling_scheduler),
) -> list[BottlingJobResponse]:
    return [
        BottlingJobResponse.model_validate(job)
        for job in scheduler.list_jobs(line_id=line_id, on_date=on_date)
    ]


@router.get("/bottling_jobs/{job_id}", response_model=BottlingJobResponse)
async def get_bottling_job(
    job_id: str,
    scheduler: BottlingScheduler = Depends(get_bottling_scheduler),
) -> BottlingJobResponse:
    job = scheduler.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Bottling job {job_id} not found",
        )
    return BottlingJobResponse.model_validate(job)
