"""HTTP controller layer for batch-to-tank allocation optimization."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from backend.controllers.dependencies import get_tank_optimizer
from backend.domain.models import BatchSnapshot, Tank
from backend.services.tank_allocation_service import (
    AllocationValidationError,
    TankAllocationOptimizer,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["allocation"])


class BatchSnapshotRequest(BaseModel):
    batch_id: str = Field(min_length=1)
    current_volume: float | None = Field(default=None, ge=0.0)
    initial_volume: float | None = Field(default=None, ge=0.0)


class AllocationTankRequest(BaseModel):
    id: str = Field(min_length=1)
    capacity: float = Field(ge=0.0)


class OptimizeTankAllocationRequest(BaseModel):
    batches: list[BatchSnapshotRequest]
    tanks: list[AllocationTankRequest] | None = None
    seed: int | None = Field(default=None, ge=0)
    generations: int | None = Field(default=None, gt=0)
    deadline_seconds: float | None = Field(default=None, gt=0.0)


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: str
    tank_id: str | None


class OptimizeTankAllocationResponse(BaseModel):
    assignments: list[AssignmentResponse]
    fitness: float
    generation: int = Field(ge=0)
    generations_completed: int = Field(ge=1)
    stopped_by_deadline: bool
    unassigned_batch_ids: list[str]


@router.post(
    "/optimize_tank_allocation",
    response_model=OptimizeTankAllocationResponse,
    status_code=status.HTTP_200_OK,
)
async def optimize_tank_allocation(
    payload: OptimizeTankAllocationRequest,
    optimizer: TankAllocationOptimizer = Depends(get_tank_optimizer),
) -> OptimizeTankAllocationResponse:
    """Search batch->tank assignments; tanks default to the registered cellar tanks."""
    batches = [
        BatchSnapshot(
            batch_id=item.batch_id,
            current_volume=item.current_volume,
            initial_volume=item.initial_volume,
        )
        for item in payload.batches
    ]
    try:
        if payload.tanks is None:
            run = optimizer.optimize_for_pool(
                batches,
                generations=payload.generations,
                deadline_seconds=payload.deadline_seconds,
                seed=payload.seed,
            )
        else:
            run = optimizer.run(
                batches,
                [Tank(id=item.id, capacity=item.capacity) for item in payload.tanks],
                generations=payload.generations,
                deadline_seconds=payload.deadline_seconds,
                seed=payload.seed,
            )
    except AllocationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected tank allocation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to optimize tank allocation",
        ) from exc

    return OptimizeTankAllocationResponse(
        assignments=[AssignmentResponse.model_validate(item) for item in run.best.assignments],
        fitness=run.best.fitness,
        generation=run.best.generation,
        generations_completed=run.generations_completed,
        stopped_by_deadline=run.stopped_by_deadline,
        unassigned_batch_ids=run.best.unassigned_batch_ids,
    )
