"""Tunable genetic-search parameters and their validation rules."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FitnessWeights:
    missing_reference_penalty: float = 5.0
    overfill_penalty: float = 10.0
    overfill_tolerance: float = 1.05
    target_utilization: float = 0.8
    diversity_bonus: float = 0.1


@dataclass(frozen=True)
class GeneticAlgorithmConfig:
    population_size: int = 20
    generations: int = 50
    elite_count: int = 2
    parent_pool_size: int = 10
    mutation_rate: float = 0.2
    deadline_seconds: float | None = None


def validate_fitness_weights(weights: FitnessWeights) -> None:
    if weights.missing_reference_penalty < 0.0:
        raise ValueError("missing_reference_penalty must be >= 0")
    if weights.overfill_penalty < 0.0:
        raise ValueError("overfill_penalty must be >= 0")
    if weights.overfill_tolerance < 1.0:
        raise ValueError("overfill_tolerance must be >= 1")
    if not 0.0 < weights.target_utilization <= 1.0:
        raise ValueError("target_utilization must be in (0, 1]")
    if weights.diversity_bonus < 0.0:
        raise ValueError("diversity_bonus must be >= 0")


def validate_genetic_config(config: GeneticAlgorithmConfig) -> None:
    if config.population_size <= 0:
        raise ValueError("population_size must be > 0")
    if config.generations <= 0:
        raise ValueError("generations must be > 0")
    if not 0 <= config.elite_count <= config.population_size:
        raise ValueError("elite_count must be between 0 and population_size")
    if config.parent_pool_size <= 0:
        raise ValueError("parent_pool_size must be > 0")
    if not 0.0 <= config.mutation_rate <= 1.0:
        raise ValueError("mutation_rate must be between 0 and 1")
    if config.deadline_seconds is not None and config.deadline_seconds <= 0.0:
        raise ValueError("deadline_seconds must be > 0 when provided")
