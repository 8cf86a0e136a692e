from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from backend.domain.models import BottlingLine
from backend.repository.resource_repository import InMemoryResourceRepository
from backend.services.plan_service import (
    SUGGEST_BALANCED,
    SUGGEST_EXCESS_BARRELS,
    SUGGEST_STAGGER_FERMENTATION,
    SUGGEST_TEMPORARY_LABOR,
    PlanBuilder,
    PlanValidationError,
    calculate_resource_utilization,
    generate_optimization_suggestions,
    phase_duration,
)
from backend.services.resource_pool import ResourcePool
from backend.utils.config import get_settings


def _build_plan_builder(initial=None) -> tuple[PlanBuilder, ResourcePool]:
    pool = ResourcePool(repository=InMemoryResourceRepository(initial))
    return PlanBuilder(resource_pool=pool, settings=get_settings()), pool


@pytest.mark.parametrize("vintage", [1999, 2024, 2025])
def test_phases_are_contiguous_with_fixed_durations(vintage):
    builder, _ = _build_plan_builder()

    plan = builder.create_production_plan(vintage)

    d0 = datetime(vintage, 3, 1, tzinfo=timezone.utc)
    assert [phase.name for phase in plan.phases] == ["Harvest", "Fermentation", "Aging", "Bottling"]
    assert plan.phases[0].start_date == d0
    assert [phase.end_date for phase in plan.phases] == [
        d0 + timedelta(days=21),
        d0 + timedelta(days=51),
        d0 + timedelta(days=231),
        d0 + timedelta(days=245),
    ]
    for previous, following in zip(plan.phases, plan.phases[1:]):
        assert following.start_date == previous.end_date
    assert [phase.duration_days for phase in plan.phases] == [21, 30, 180, 14]
    assert all(phase.status == "planned" for phase in plan.phases)


def test_unknown_phase_name_defaults_to_fourteen_days():
    assert phase_duration("Racking") == timedelta(days=14)


def test_phase_allocations_follow_pool_inventory():
    builder, pool = _build_plan_builder()
    pool.register_bottling_line(BottlingLine(id="L1", capacity=1200))

    plan = builder.create_production_plan(2024)
    resources = {phase.name: phase.resources for phase in plan.phases}

    assert [(item.resource_id, item.usage) for item in resources["Harvest"]] == [
        ("crew-1", "Harvest support"),
        ("crew-2", "Harvest support"),
    ]
    assert [item.resource_id for item in resources["Fermentation"]] == ["T1", "T2"]
    assert [item.usage for item in resources["Aging"]] == ["Aging", "Aging"]
    assert [(item.resource_id, item.capacity) for item in resources["Bottling"]] == [("L1", 1200)]


def test_default_pool_utilization_and_suggestions():
    builder, _ = _build_plan_builder()

    plan = builder.create_production_plan(2024)

    assert plan.optimization.resource_utilization == {
        "crews": 100.0,
        "tanks": 100.0,
        "barrels": 100.0,
        "bottling_lines": 0.0,
    }
    assert plan.optimization.suggestions == [
        SUGGEST_STAGGER_FERMENTATION,
        SUGGEST_TEMPORARY_LABOR,
    ]


def test_empty_categories_report_zero_utilization():
    builder, _ = _build_plan_builder({"crews": [], "tanks": [], "barrels": []})

    plan = builder.create_production_plan(2024)

    utilization = plan.optimization.resource_utilization
    assert all(value == 0.0 for value in utilization.values())
    assert plan.optimization.suggestions == [SUGGEST_EXCESS_BARRELS]
    assert all(phase.resources == [] for phase in plan.phases)


def test_utilization_is_capped_at_one_hundred():
    builder, pool = _build_plan_builder()
    phases = builder.create_production_plan(2024).phases

    utilization = calculate_resource_utilization(phases + phases, pool.snapshot())

    assert utilization["crews"] == 100.0
    assert utilization["tanks"] == 100.0
    for value in utilization.values():
        assert 0.0 <= value <= 100.0


def test_balanced_message_when_no_threshold_triggers():
    suggestions = generate_optimization_suggestions(
        {"crews": 50.0, "tanks": 60.0, "barrels": 75.0},
        get_settings(),
    )
    assert suggestions == [SUGGEST_BALANCED]


def test_thresholds_are_configurable():
    settings = replace(get_settings(), planner_tank_high_utilization=100.0, planner_crew_high_utilization=100.0)
    suggestions = generate_optimization_suggestions(
        {"crews": 100.0, "tanks": 100.0, "barrels": 100.0},
        settings,
    )
    assert suggestions == [SUGGEST_BALANCED]


def test_plan_shape_is_idempotent_for_unchanged_pool():
    builder, _ = _build_plan_builder()

    first = builder.create_production_plan(2024)
    second = builder.create_production_plan(2024)

    assert [(p.name, p.start_date, p.end_date) for p in first.phases] == [
        (p.name, p.start_date, p.end_date) for p in second.phases
    ]
    assert [p.resources for p in first.phases] == [p.resources for p in second.phases]
    assert first.id.startswith("PLAN-2024-")


@pytest.mark.parametrize("vintage", [0, -5, 10000])
def test_unrepresentable_vintage_raises(vintage):
    builder, _ = _build_plan_builder()
    with pytest.raises(PlanValidationError):
        builder.create_production_plan(vintage)
