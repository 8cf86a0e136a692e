"""Phased production plan construction and utilization advisories."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from backend.domain.models import (
    CATEGORY_BARRELS,
    CATEGORY_BOTTLING_LINES,
    CATEGORY_CREWS,
    CATEGORY_TANKS,
    DEFAULT_PHASE_DURATION_DAYS,
    PHASE_AGING,
    PHASE_BOTTLING,
    PHASE_DURATION_DAYS,
    PHASE_FERMENTATION,
    PHASE_HARVEST,
    PHASE_ORDER,
    RESOURCE_CATEGORIES,
    Phase,
    PlanOptimization,
    ProductionPlan,
    ResourceAllocation,
    ResourceState,
)
from backend.services.resource_pool import ResourcePool
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

SUGGEST_STAGGER_FERMENTATION = (
    "Tank capacity nearing limits. Consider staggered fermentation starts."
)
SUGGEST_EXCESS_BARRELS = (
    "Excess barrel capacity. Evaluate topping and rotation schedules."
)
SUGGEST_TEMPORARY_LABOR = (
    "Crew utilization high. Consider temporary labor or automation."
)
SUGGEST_BALANCED = "Resources balanced across plan phases."

MIN_VINTAGE = 1
MAX_VINTAGE = 9999


class PlanValidationError(Exception):
    """Raised when a plan cannot be built for the requested vintage."""


def phase_duration(name: str) -> timedelta:
    return timedelta(days=PHASE_DURATION_DAYS.get(name, DEFAULT_PHASE_DURATION_DAYS))


def plan_start(vintage: int) -> datetime:
    if not MIN_VINTAGE <= vintage <= MAX_VINTAGE:
        raise PlanValidationError(
            f"vintage must be between {MIN_VINTAGE} and {MAX_VINTAGE}"
        )
    return datetime(vintage, 3, 1, tzinfo=timezone.utc)


def allocate_resources_for_phase(
    phase_name: str,
    state: ResourceState,
) -> list[ResourceAllocation]:
    if phase_name == PHASE_HARVEST:
        return [
            ResourceAllocation(category=CATEGORY_CREWS, resource_id=crew.id, usage="Harvest support")
            for crew in state.crews
        ]
    if phase_name == PHASE_FERMENTATION:
        return [
            ResourceAllocation(category=CATEGORY_TANKS, resource_id=tank.id, usage="Fermentation")
            for tank in state.tanks
        ]
    if phase_name == PHASE_AGING:
        return [
            ResourceAllocation(category=CATEGORY_BARRELS, resource_id=barrel.id, usage="Aging")
            for barrel in state.barrels
        ]
    if phase_name == PHASE_BOTTLING:
        return [
            ResourceAllocation(
                category=CATEGORY_BOTTLING_LINES,
                resource_id=line.id,
                usage="Bottling",
                capacity=line.capacity,
            )
            for line in state.bottling_lines
        ]
    return []


def build_phases(vintage: int, state: ResourceState) -> list[Phase]:
    cursor = plan_start(vintage)
    phases: list[Phase] = []
    for name in PHASE_ORDER:
        end = cursor + phase_duration(name)
        phases.append(
            Phase(
                name=name,
                start_date=cursor,
                end_date=end,
                resources=allocate_resources_for_phase(name, state),
            )
        )
        cursor = end
    return phases


def calculate_resource_utilization(
    phases: list[Phase],
    state: ResourceState,
) -> dict[str, float]:
    """Percentage of each category referenced by the plan, capped at 100."""
    referenced = {category: 0 for category in RESOURCE_CATEGORIES}
    for phase in phases:
        for allocation in phase.resources:
            if allocation.category in referenced:
                referenced[allocation.category] += 1

    utilization: dict[str, float] = {}
    for category in RESOURCE_CATEGORIES:
        total = state.count(category)
        if total == 0:
            utilization[category] = 0.0
            continue
        utilization[category] = min(100.0, referenced[category] / total * 100.0)
    return utilization


def generate_optimization_suggestions(
    utilization: dict[str, float],
    settings: Settings,
) -> list[str]:
    suggestions: list[str] = []
    if utilization.get(CATEGORY_TANKS, 0.0) > settings.planner_tank_high_utilization:
        suggestions.append(SUGGEST_STAGGER_FERMENTATION)
    if utilization.get(CATEGORY_BARRELS, 0.0) < settings.planner_barrel_low_utilization:
        suggestions.append(SUGGEST_EXCESS_BARRELS)
    if utilization.get(CATEGORY_CREWS, 0.0) > settings.planner_crew_high_utilization:
        suggestions.append(SUGGEST_TEMPORARY_LABOR)
    if not suggestions:
        suggestions.append(SUGGEST_BALANCED)
    return suggestions


class PlanBuilder:
    """Builds Harvest -> Fermentation -> Aging -> Bottling timelines from the pool."""

    def __init__(
        self,
        resource_pool: ResourcePool,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._resource_pool = resource_pool

    def create_production_plan(self, vintage: int) -> ProductionPlan:
        state = self._resource_pool.snapshot()
        phases = build_phases(vintage, state)
        utilization = calculate_resource_utilization(phases, state)
        suggestions = generate_optimization_suggestions(utilization, self._settings)

        plan = ProductionPlan(
            id=f"PLAN-{vintage}-{int(time.time() * 1000)}",
            vintage=vintage,
            phases=phases,
            optimization=PlanOptimization(
                resource_utilization=utilization,
                suggestions=suggestions,
            ),
        )
        logger.info(
            "Production plan created | plan_id=%s | start=%s | end=%s | suggestions=%s",
            plan.id,
            phases[0].start_date.isoformat(),
            phases[-1].end_date.isoformat(),
            len(suggestions),
        )
        return plan
