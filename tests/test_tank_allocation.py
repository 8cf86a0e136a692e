from __future__ import annotations

import random
from dataclasses import replace

import pytest

from backend.domain.constraints import FitnessWeights, GeneticAlgorithmConfig
from backend.domain.models import AllocationSolution, Assignment, BatchSnapshot, Tank
from backend.services.resource_pool import ResourcePool
from backend.services.tank_allocation_service import (
    AllocationValidationError,
    TankAllocationOptimizer,
    evaluate_fitness,
    evolve_population,
    generate_initial_population,
)
from backend.utils.config import get_settings


T1 = Tank(id="T1", capacity=10000)
T2 = Tank(id="T2", capacity=8000)


def _build_optimizer(**settings_overrides) -> TankAllocationOptimizer:
    settings = replace(get_settings(), optimizer_random_seed=None, optimizer_deadline_seconds=None, **settings_overrides)
    return TankAllocationOptimizer(settings=settings)


def _fitness(assignments, batches, tanks) -> float:
    return evaluate_fitness(
        assignments,
        {batch.batch_id: batch for batch in batches},
        {tank.id: tank for tank in tanks},
        FitnessWeights(),
    )


# --- fitness ---

def test_fitness_peaks_at_target_utilization():
    batches = [BatchSnapshot(batch_id="B1", current_volume=8000)]

    on_t1 = _fitness([Assignment("B1", "T1")], batches, [T1, T2])
    on_t2 = _fitness([Assignment("B1", "T2")], batches, [T1, T2])

    assert on_t1 == pytest.approx(1.1)
    assert on_t2 == pytest.approx(0.9)


def test_missing_tank_or_batch_is_penalized():
    batches = [BatchSnapshot(batch_id="B1", current_volume=100)]

    unassigned = _fitness([Assignment("B1", None)], batches, [T1])
    unknown_batch = _fitness([Assignment("B9", "T1")], batches, [T1])

    assert unassigned == pytest.approx(-5.0)
    assert unknown_batch == pytest.approx(-5.0 + 0.1)


def test_overfill_is_penalized_and_not_counted_as_usage():
    batches = [
        BatchSnapshot(batch_id="B1", current_volume=8000),
        BatchSnapshot(batch_id="B2", current_volume=5000),
        BatchSnapshot(batch_id="B3", current_volume=2000),
    ]

    fitness = _fitness(
        [Assignment("B1", "T1"), Assignment("B2", "T1"), Assignment("B3", "T1")],
        batches,
        [T1],
    )

    # B1 -> 0.8 (+1.0), B2 -> 1.3 rejected (-10), B3 -> 1.0 (+0.8), one tank used (+0.1)
    assert fitness == pytest.approx(1.0 - 10.0 + 0.8 + 0.1)


def test_five_percent_overfill_is_tolerated():
    batches = [BatchSnapshot(batch_id="B1", current_volume=10500)]

    fitness = _fitness([Assignment("B1", "T1")], batches, [T1])

    assert fitness == pytest.approx(1.0 - 0.25 + 0.1)


def test_batch_volume_falls_back_to_initial_volume():
    assert BatchSnapshot(batch_id="B1", initial_volume=700).volume == 700
    assert BatchSnapshot(batch_id="B1", current_volume=0, initial_volume=700).volume == 0
    assert BatchSnapshot(batch_id="B1").volume == 0


# --- operators ---

def test_initial_population_uses_only_tanks_with_capacity():
    batches = [BatchSnapshot(batch_id=f"B{index}", current_volume=100) for index in range(5)]
    tanks = [Tank(id="EMPTY", capacity=0), T1]

    population = generate_initial_population(batches, tanks, 20, random.Random(3))

    assert len(population) == 20
    for chromosome in population:
        assert [item.batch_id for item in chromosome] == [batch.batch_id for batch in batches]
        assert {item.tank_id for item in chromosome} == {"T1"}


def test_initial_population_without_tanks_is_unassigned():
    batches = [BatchSnapshot(batch_id="B1", current_volume=100)]

    population = generate_initial_population(batches, [], 4, random.Random(3))

    assert all(chromosome == (Assignment("B1", None),) for chromosome in population)


def test_evolve_keeps_elites_unchanged_and_population_size():
    ranked = [
        AllocationSolution(assignments=(Assignment("B1", f"T{index}"),), fitness=float(-index), generation=0)
        for index in range(20)
    ]

    next_population = evolve_population(ranked, [T1, T2], GeneticAlgorithmConfig(), random.Random(11))

    assert len(next_population) == 20
    assert next_population[0] == ranked[0].assignments
    assert next_population[1] == ranked[1].assignments


# --- full runs ---

def test_single_batch_converges_to_tank_at_eighty_percent():
    batches = [BatchSnapshot(batch_id="BATCH-1", current_volume=8000)]
    optimizer = _build_optimizer()

    for seed in range(10):
        solution = optimizer.optimize_tank_allocation(batches, [T1, T2], seed=seed)
        assert solution.assignments == (Assignment("BATCH-1", "T1"),)
        assert solution.fitness == pytest.approx(1.1)


def test_best_is_at_least_every_initial_fitness():
    batches = [BatchSnapshot(batch_id=f"B{index}", current_volume=1500 * (index + 1)) for index in range(6)]
    tanks = [T1, T2, Tank(id="T3", capacity=5000), Tank(id="T4", capacity=3000)]
    optimizer = _build_optimizer()

    run = optimizer.run(batches, tanks, seed=42)

    assert run.generations_completed == 50
    assert len(run.initial_fitnesses) == 20
    assert run.best.fitness >= max(run.initial_fitnesses)
    assert run.best.fitness == max(run.best_fitness_by_generation)
    assert len(run.best.assignments) == len(batches)


def test_seeded_runs_are_deterministic():
    batches = [BatchSnapshot(batch_id=f"B{index}", current_volume=2000) for index in range(5)]
    optimizer = _build_optimizer()

    first = optimizer.run(batches, [T1, T2], seed=7)
    second = optimizer.run(batches, [T1, T2], seed=7)

    assert first == second


def test_injected_random_source_is_used():
    batches = [BatchSnapshot(batch_id="B1", current_volume=2000)]
    settings = replace(get_settings(), optimizer_random_seed=None)

    first = TankAllocationOptimizer(settings=settings, rng=random.Random(5)).run(batches, [T1, T2])
    second = TankAllocationOptimizer(settings=settings, rng=random.Random(5)).run(batches, [T1, T2])

    assert first == second


def test_generation_budget_is_configurable():
    optimizer = _build_optimizer(optimizer_generations=5)

    run = optimizer.run([BatchSnapshot(batch_id="B1", current_volume=100)], [T1], seed=1)

    assert run.generations_completed == 5
    assert len(run.best_fitness_by_generation) == 5


def test_deadline_stops_after_current_generation():
    ticks = iter(range(1000))
    settings = replace(get_settings(), optimizer_random_seed=None)
    optimizer = TankAllocationOptimizer(settings=settings, clock=lambda: float(next(ticks)))

    run = optimizer.run(
        [BatchSnapshot(batch_id="B1", current_volume=100)],
        [T1],
        deadline_seconds=2.0,
        seed=1,
    )

    assert run.stopped_by_deadline is True
    assert run.generations_completed == 2


def test_empty_inputs_still_return_a_solution():
    optimizer = _build_optimizer()

    solution = optimizer.optimize_tank_allocation([], [], seed=0)

    assert solution.assignments == ()
    assert solution.fitness == 0.0


def test_inputs_are_not_mutated():
    batches = [BatchSnapshot(batch_id="B1", current_volume=8000)]
    tanks = [T1, T2]
    optimizer = _build_optimizer()

    optimizer.run(batches, tanks, seed=3)

    assert batches == [BatchSnapshot(batch_id="B1", current_volume=8000)]
    assert tanks == [T1, T2]


def test_invalid_generation_count_raises():
    optimizer = _build_optimizer()
    with pytest.raises(AllocationValidationError):
        optimizer.run([], [], generations=0)


def test_optimize_for_pool_uses_registered_tanks():
    optimizer = TankAllocationOptimizer(
        settings=replace(get_settings(), optimizer_random_seed=None),
        resource_pool=ResourcePool(),
    )

    run = optimizer.optimize_for_pool([BatchSnapshot(batch_id="B1", current_volume=8000)], seed=0)

    assert run.best.assignments == (Assignment("B1", "T1"),)


def test_optimize_for_pool_without_pool_raises():
    with pytest.raises(AllocationValidationError):
        _build_optimizer().optimize_for_pool([], seed=0)
