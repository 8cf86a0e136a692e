"""Bottling job scheduling with same-line, same-day interval conflict checks."""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone
from threading import RLock
from typing import Optional, Union
from uuid import uuid4

from backend.domain.models import (
    BottlingJob,
    BottlingRequirements,
    BottlingResult,
    ScheduleConflict,
)
from backend.services.resource_pool import ResourcePool
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

CONFLICT_OVERLAP = "overlap"
CONFLICT_INVALID_DATE = "invalid-date"
CONFLICT_INVALID_BOTTLES = "invalid-bottles"

DateInput = Union[str, datetime, date]


def parse_schedule_date(value: DateInput) -> Optional[datetime]:
    """Normalize to an aware UTC datetime, or None when the value is not a valid instant."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        return None


def calculate_requirements(bottles: int, bottles_per_box: int) -> BottlingRequirements:
    return BottlingRequirements(
        bottles=bottles,
        corks=bottles,
        capsules=bottles,
        labels=bottles * 2,
        boxes=math.ceil(bottles / bottles_per_box),
    )


def job_end(job: BottlingJob) -> datetime:
    return job.scheduled_date + timedelta(minutes=job.estimated_duration)


def jobs_overlap(first: BottlingJob, second: BottlingJob) -> bool:
    """Half-open [start, end) overlap; a job ending as the other starts does not overlap."""
    return first.scheduled_date < job_end(second) and second.scheduled_date < job_end(first)


def _end_is_representable(start: datetime, minutes: float) -> bool:
    try:
        start + timedelta(minutes=minutes)
    except OverflowError:
        return False
    return True


def _is_positive_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class BottlingScheduler:
    """Append-only in-memory bottling schedule.

    Failed requests come back as a BottlingResult with success=False and a
    list of conflicts; nothing is raised and nothing is appended.
    """

    def __init__(
        self,
        resource_pool: ResourcePool,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._resource_pool = resource_pool
        self._schedule: list[BottlingJob] = []
        self._lock = RLock()

    def line_throughput(self, line_id: str) -> float:
        line = self._resource_pool.find_bottling_line(line_id)
        if line is None:
            return self._settings.bottling_default_line_throughput
        return float(line.capacity)

    def calculate_bottling_time(self, bottles: int, line_id: str) -> float:
        return bottles / self.line_throughput(line_id) * 60

    def check_schedule_conflicts(self, job: BottlingJob) -> list[ScheduleConflict]:
        job_day = job.scheduled_date.date()
        with self._lock:
            existing_jobs = list(self._schedule)
        return [
            ScheduleConflict(
                type=CONFLICT_OVERLAP,
                message=f"Line {job.line_id} is already booked by {existing.id}",
                job=existing,
            )
            for existing in existing_jobs
            if existing.line_id == job.line_id
            and existing.scheduled_date.date() == job_day
            and jobs_overlap(existing, job)
        ]

    def schedule_bottling(
        self,
        batch_id: str,
        date: DateInput,
        line_id: str,
        bottles: int,
    ) -> BottlingResult:
        if not _is_positive_count(bottles):
            logger.info(
                "Bottling rejected | reason=%s | batch_id=%s | bottles=%s",
                CONFLICT_INVALID_BOTTLES,
                batch_id,
                bottles,
            )
            return BottlingResult(
                success=False,
                conflicts=[
                    ScheduleConflict(
                        type=CONFLICT_INVALID_BOTTLES,
                        message="Bottle count must be a positive integer",
                    )
                ],
            )

        scheduled_date = parse_schedule_date(date)
        estimated_duration = self.calculate_bottling_time(bottles, line_id)
        if scheduled_date is not None and not _end_is_representable(scheduled_date, estimated_duration):
            scheduled_date = None
        if scheduled_date is None:
            logger.info(
                "Bottling rejected | reason=%s | batch_id=%s | date=%r",
                CONFLICT_INVALID_DATE,
                batch_id,
                date,
            )
            return BottlingResult(
                success=False,
                conflicts=[
                    ScheduleConflict(
                        type=CONFLICT_INVALID_DATE,
                        message="Scheduled date is invalid",
                    )
                ],
            )

        job = BottlingJob(
            id=f"BOTTLE-{uuid4().hex[:12]}",
            batch_id=batch_id,
            scheduled_date=scheduled_date,
            line_id=line_id,
            estimated_bottles=bottles,
            estimated_duration=estimated_duration,
            resources=calculate_requirements(bottles, self._settings.bottling_bottles_per_box),
        )

        with self._lock:
            conflicts = self.check_schedule_conflicts(job)
            if conflicts:
                logger.info(
                    "Bottling rejected | reason=%s | line_id=%s | conflicts=%s",
                    CONFLICT_OVERLAP,
                    line_id,
                    [conflict.job.id for conflict in conflicts if conflict.job],
                )
                return BottlingResult(success=False, conflicts=conflicts)
            self._schedule.append(job)

        logger.info(
            "Bottling scheduled | job_id=%s | batch_id=%s | line_id=%s | start=%s | minutes=%.1f",
            job.id,
            batch_id,
            line_id,
            scheduled_date.isoformat(),
            job.estimated_duration,
        )
        return BottlingResult(success=True, job=job)

    def list_jobs(
        self,
        line_id: Optional[str] = None,
        on_date: Optional[date] = None,
    ) -> list[BottlingJob]:
        with self._lock:
            jobs = list(self._schedule)
        return [
            job
            for job in jobs
            if (line_id is None or job.line_id == line_id)
            and (on_date is None or job.scheduled_date.date() == on_date)
        ]

    def get_job(self, job_id: str) -> Optional[BottlingJob]:
        with self._lock:
            for job in self._schedule:
                if job.id == job_id:
                    return job
        return None
