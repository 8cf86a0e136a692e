"""HTTP controller layer for production plans and the cellar resource pool."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from backend.controllers.dependencies import get_plan_builder, get_resource_pool
from backend.domain.models import Barrel, BottlingLine, Crew, Tank
from backend.services.plan_service import PlanBuilder, PlanValidationError
from backend.services.resource_pool import ResourcePool, ResourceValidationError
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["planning"])


class ProductionPlanRequest(BaseModel):
    vintage: int


class ResourceAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    resource_id: str
    usage: str
    capacity: Optional[float] = None


class PhaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    start_date: datetime
    end_date: datetime
    resources: list[ResourceAllocationResponse]
    status: str


class PlanOptimizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    resource_utilization: dict[str, float]
    suggestions: list[str]


class ProductionPlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    vintage: int
    phases: list[PhaseResponse]
    optimization: PlanOptimizationResponse


class CrewPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    capacity: int = Field(gt=0)


class TankPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(min_length=1)
    capacity: float = Field(gt=0.0)
    location: str = ""
    temperature: Optional[float] = None
    current_volume: float = Field(default=0.0, ge=0.0)
    current_batch: Optional[str] = None


class BarrelPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(min_length=1)
    volume: float = Field(gt=0.0)
    location: str = ""
    age: int = Field(default=0, ge=0)
    last_topped: Optional[str] = None
    current_wine: Optional[str] = None


class BottlingLinePayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(min_length=1)
    capacity: float = Field(gt=0.0)


class ResourcePoolResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    crews: list[CrewPayload]
    tanks: list[TankPayload]
    barrels: list[BarrelPayload]
    bottling_lines: list[BottlingLinePayload]


class TankFillResponse(TankPayload):
    fill_level: float = Field(ge=0.0)


class CellarMapResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tanks: list[TankFillResponse]
    barrels: list[BarrelPayload]


@router.post(
    "/production_plans",
    response_model=ProductionPlanResponse,
    status_code=status.HTTP_200_OK,
)
async def create_production_plan(
    payload: ProductionPlanRequest,
    builder: PlanBuilder = Depends(get_plan_builder),
) -> ProductionPlanResponse:
    """Build the Harvest -> Bottling timeline for a vintage."""
    try:
        plan = builder.create_production_plan(payload.vintage)
        return ProductionPlanResponse.model_validate(plan)
    except PlanValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected production plan failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create production plan",
        ) from exc


@router.get("/resources", response_model=ResourcePoolResponse)
async def get_resources(
    pool: ResourcePool = Depends(get_resource_pool),
) -> ResourcePoolResponse:
    return ResourcePoolResponse.model_validate(pool.snapshot())


@router.get("/cellar_map", response_model=CellarMapResponse)
async def get_cellar_map(
    pool: ResourcePool = Depends(get_resource_pool),
) -> CellarMapResponse:
    return CellarMapResponse.model_validate(pool.generate_cellar_map())


def _registration_error(exc: ResourceValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=str(exc),
    )


@router.post(
    "/resources/crews",
    response_model=CrewPayload,
    status_code=status.HTTP_201_CREATED,
)
async def register_crew(
    payload: CrewPayload,
    pool: ResourcePool = Depends(get_resource_pool),
) -> CrewPayload:
    try:
        crew = pool.register_crew(Crew(**payload.model_dump()))
    except ResourceValidationError as exc:
        raise _registration_error(exc) from exc
    return CrewPayload.model_validate(crew)


@router.post(
    "/resources/tanks",
    response_model=TankPayload,
    status_code=status.HTTP_201_CREATED,
)
async def register_tank(
    payload: TankPayload,
    pool: ResourcePool = Depends(get_resource_pool),
) -> TankPayload:
    try:
        tank = pool.register_tank(Tank(**payload.model_dump()))
    except ResourceValidationError as exc:
        raise _registration_error(exc) from exc
    return TankPayload.model_validate(tank)


@router.post(
    "/resources/barrels",
    response_model=BarrelPayload,
    status_code=status.HTTP_201_CREATED,
)
async def register_barrel(
    payload: BarrelPayload,
    pool: ResourcePool = Depends(get_resource_pool),
) -> BarrelPayload:
    try:
        barrel = pool.register_barrel(Barrel(**payload.model_dump()))
    except ResourceValidationError as exc:
        raise _registration_error(exc) from exc
    return BarrelPayload.model_validate(barrel)


@router.post(
    "/resources/bottling_lines",
    response_model=BottlingLinePayload,
    status_code=status.HTTP_201_CREATED,
)
async def register_bottling_line(
    payload: BottlingLinePayload,
    pool: ResourcePool = Depends(get_resource_pool),
) -> BottlingLinePayload:
    """Append a line; a repeated id is accepted and shadowed by the first match."""
    try:
        line = pool.register_bottling_line(BottlingLine(**payload.model_dump()))
    except ResourceValidationError as exc:
        raise _registration_error(exc) from exc
    return BottlingLinePayload.model_validate(line)
