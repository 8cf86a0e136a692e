"""Batch-to-tank allocation search using a generational genetic algorithm."""

from __future__ import annotations

import random
import time
from dataclasses import replace
from typing import Callable, Iterable, Optional, Sequence

from backend.domain.constraints import (
    FitnessWeights,
    GeneticAlgorithmConfig,
    validate_fitness_weights,
    validate_genetic_config,
)
from backend.domain.models import (
    AllocationSolution,
    Assignment,
    BatchSnapshot,
    OptimizationRun,
    Tank,
)
from backend.services.resource_pool import ResourcePool
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

Chromosome = tuple[Assignment, ...]


class AllocationValidationError(Exception):
    """Raised when optimizer parameters are invalid."""


def eligible_tanks(tanks: Sequence[Tank]) -> list[Tank]:
    return [tank for tank in tanks if tank.capacity > 0]


def generate_initial_population(
    batches: Sequence[BatchSnapshot],
    tanks: Sequence[Tank],
    population_size: int,
    rng: random.Random,
) -> list[Chromosome]:
    """Assign every batch a uniformly random eligible tank, or None when none exist."""
    candidates = eligible_tanks(tanks)
    population: list[Chromosome] = []
    for _ in range(population_size):
        population.append(
            tuple(
                Assignment(
                    batch_id=batch.batch_id,
                    tank_id=rng.choice(candidates).id if candidates else None,
                )
                for batch in batches
            )
        )
    return population


def evaluate_fitness(
    assignments: Iterable[Assignment],
    batches_by_id: dict[str, BatchSnapshot],
    tanks_by_id: dict[str, Tank],
    weights: FitnessWeights,
) -> float:
    """Score a chromosome; fill near the target utilization scores best.

    Overfilled assignments are penalized and excluded from the running tank
    volume, so later batches on the same tank are scored against the
    accepted load only.
    """
    usage: dict[str, float] = {}
    used_tank_ids: set[str] = set()
    fitness = 0.0

    for assignment in assignments:
        if assignment.tank_id is not None:
            used_tank_ids.add(assignment.tank_id)
        batch = batches_by_id.get(assignment.batch_id)
        tank = tanks_by_id.get(assignment.tank_id) if assignment.tank_id is not None else None
        if batch is None or tank is None or tank.capacity <= 0:
            fitness -= weights.missing_reference_penalty
            continue

        projected = usage.get(tank.id, 0.0) + batch.volume
        utilization = projected / tank.capacity
        if utilization > weights.overfill_tolerance:
            fitness -= weights.overfill_penalty
        else:
            fitness += 1.0 - abs(weights.target_utilization - utilization)
            usage[tank.id] = projected

    fitness += weights.diversity_bonus * len(used_tank_ids)
    return fitness


def rank_population(evaluated: list[AllocationSolution]) -> list[AllocationSolution]:
    # sorted() is stable, so equal fitness keeps evaluation order.
    return sorted(evaluated, key=lambda solution: solution.fitness, reverse=True)


def crossover(parent_a: Chromosome, parent_b: Chromosome, rng: random.Random) -> list[Assignment]:
    point = rng.randrange(len(parent_a) or 1)
    return list(parent_a[:point]) + list(parent_b[point:])


def mutate(
    child: list[Assignment],
    tanks: Sequence[Tank],
    rng: random.Random,
) -> None:
    if not child or not tanks:
        return
    index = rng.randrange(len(child))
    child[index] = replace(child[index], tank_id=rng.choice(tanks).id)


def evolve_population(
    ranked: list[AllocationSolution],
    tanks: Sequence[Tank],
    config: GeneticAlgorithmConfig,
    rng: random.Random,
) -> list[Chromosome]:
    """Carry elites unchanged and fill the rest with mutated crossover children."""
    next_population: list[Chromosome] = [
        solution.assignments for solution in ranked[: config.elite_count]
    ]
    parent_pool = ranked[: min(len(ranked), config.parent_pool_size)]

    while len(next_population) < config.population_size:
        parent_a = rng.choice(parent_pool).assignments
        parent_b = rng.choice(parent_pool).assignments
        child = crossover(parent_a, parent_b, rng)
        if rng.random() < config.mutation_rate:
            mutate(child, tanks, rng)
        next_population.append(tuple(child))

    return next_population[: config.population_size]


class TankAllocationOptimizer:
    """Runs the generational search over an immutable batch/tank snapshot.

    The random source and clock are injectable so runs can be reproduced;
    without them each run draws from a fresh entropy-seeded generator.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        resource_pool: Optional[ResourcePool] = None,
        weights: Optional[FitnessWeights] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        self._resource_pool = resource_pool
        self._weights = weights or FitnessWeights()
        self._rng = rng
        self._clock = clock

    def _build_config(
        self,
        generations: Optional[int],
        deadline_seconds: Optional[float],
    ) -> GeneticAlgorithmConfig:
        config = GeneticAlgorithmConfig(
            population_size=self._settings.optimizer_population_size,
            generations=(
                generations
                if generations is not None
                else self._settings.optimizer_generations
            ),
            elite_count=self._settings.optimizer_elite_count,
            parent_pool_size=self._settings.optimizer_parent_pool_size,
            mutation_rate=self._settings.optimizer_mutation_rate,
            deadline_seconds=(
                deadline_seconds
                if deadline_seconds is not None
                else self._settings.optimizer_deadline_seconds
            ),
        )
        try:
            validate_genetic_config(config)
            validate_fitness_weights(self._weights)
        except ValueError as exc:
            raise AllocationValidationError(str(exc)) from exc
        return config

    def _resolve_rng(self, seed: Optional[int]) -> random.Random:
        if seed is not None:
            return random.Random(seed)
        if self._rng is not None:
            return self._rng
        if self._settings.optimizer_random_seed is not None:
            return random.Random(self._settings.optimizer_random_seed)
        return random.Random()

    def run(
        self,
        batches: Sequence[BatchSnapshot],
        tanks: Sequence[Tank],
        *,
        generations: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
        seed: Optional[int] = None,
    ) -> OptimizationRun:
        config = self._build_config(generations, deadline_seconds)
        rng = self._resolve_rng(seed)

        batch_snapshot = tuple(batches)
        tank_snapshot = tuple(tanks)
        batches_by_id = {batch.batch_id: batch for batch in batch_snapshot}
        tanks_by_id = {tank.id: tank for tank in tank_snapshot}

        started_at = self._clock()
        population = generate_initial_population(
            batch_snapshot, tank_snapshot, config.population_size, rng
        )
        best: AllocationSolution | None = None
        initial_fitnesses: list[float] = []
        best_by_generation: list[float] = []
        completed = 0
        stopped_by_deadline = False

        for generation in range(config.generations):
            evaluated = [
                AllocationSolution(
                    assignments=chromosome,
                    fitness=evaluate_fitness(chromosome, batches_by_id, tanks_by_id, self._weights),
                    generation=generation,
                )
                for chromosome in population
            ]
            for solution in evaluated:
                if best is None or solution.fitness > best.fitness:
                    best = solution
            if generation == 0:
                initial_fitnesses = [solution.fitness for solution in evaluated]
            best_by_generation.append(max(solution.fitness for solution in evaluated))
            completed = generation + 1

            if completed == config.generations:
                break
            if (
                config.deadline_seconds is not None
                and self._clock() - started_at >= config.deadline_seconds
            ):
                stopped_by_deadline = True
                logger.warning(
                    "Tank allocation stopped at deadline | generations_completed=%s | deadline_seconds=%.3f",
                    completed,
                    config.deadline_seconds,
                )
                break

            population = evolve_population(rank_population(evaluated), tank_snapshot, config, rng)

        assert best is not None
        logger.info(
            "Tank allocation completed | batches=%s | tanks=%s | generations=%s | best_fitness=%.6f | unassigned=%s",
            len(batch_snapshot),
            len(tank_snapshot),
            completed,
            best.fitness,
            len(best.unassigned_batch_ids),
        )
        return OptimizationRun(
            best=best,
            generations_completed=completed,
            initial_fitnesses=initial_fitnesses,
            best_fitness_by_generation=best_by_generation,
            stopped_by_deadline=stopped_by_deadline,
        )

    def optimize_tank_allocation(
        self,
        batches: Sequence[BatchSnapshot],
        tanks: Sequence[Tank],
        *,
        generations: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
        seed: Optional[int] = None,
    ) -> AllocationSolution:
        return self.run(
            batches,
            tanks,
            generations=generations,
            deadline_seconds=deadline_seconds,
            seed=seed,
        ).best

    def optimize_for_pool(
        self,
        batches: Sequence[BatchSnapshot],
        *,
        generations: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
        seed: Optional[int] = None,
    ) -> OptimizationRun:
        """Run against the tanks currently registered in the resource pool."""
        if self._resource_pool is None:
            raise AllocationValidationError("No resource pool configured for tank lookup")
        tanks = self._resource_pool.snapshot().tanks
        return self.run(
            batches,
            tanks,
            generations=generations,
            deadline_seconds=deadline_seconds,
            seed=seed,
        )
