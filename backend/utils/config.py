"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return float(value)


def _env_optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value in (None, ""):
        return None
    return float(value)


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value in (None, ""):
        return None
    return int(value)


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    resource_store_key: str

    bottling_default_line_throughput: float
    bottling_bottles_per_box: int

    planner_tank_high_utilization: float
    planner_barrel_low_utilization: float
    planner_crew_high_utilization: float

    optimizer_population_size: int
    optimizer_generations: int
    optimizer_elite_count: int
    optimizer_parent_pool_size: int
    optimizer_mutation_rate: float
    optimizer_deadline_seconds: Optional[float]
    optimizer_random_seed: Optional[int]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; call `cache_clear()` to reload."""
    return Settings(
        app_name=_env_str("CELLAR_APP_NAME", "Cellar Production Planner"),
        app_version=_env_str("CELLAR_APP_VERSION", "1.0.0"),
        log_level=_env_str("CELLAR_LOG_LEVEL", "INFO"),
        database_path=Path(_env_str("CELLAR_DATABASE_PATH", "data/cellar.db")),
        resource_store_key=_env_str("CELLAR_RESOURCE_STORE_KEY", "planner_resources"),
        bottling_default_line_throughput=_env_float(
            "CELLAR_BOTTLING_DEFAULT_LINE_THROUGHPUT", 500.0
        ),
        bottling_bottles_per_box=_env_int("CELLAR_BOTTLING_BOTTLES_PER_BOX", 12),
        planner_tank_high_utilization=_env_float("CELLAR_PLANNER_TANK_HIGH", 90.0),
        planner_barrel_low_utilization=_env_float("CELLAR_PLANNER_BARREL_LOW", 50.0),
        planner_crew_high_utilization=_env_float("CELLAR_PLANNER_CREW_HIGH", 80.0),
        optimizer_population_size=_env_int("CELLAR_OPTIMIZER_POPULATION_SIZE", 20),
        optimizer_generations=_env_int("CELLAR_OPTIMIZER_GENERATIONS", 50),
        optimizer_elite_count=_env_int("CELLAR_OPTIMIZER_ELITE_COUNT", 2),
        optimizer_parent_pool_size=_env_int("CELLAR_OPTIMIZER_PARENT_POOL_SIZE", 10),
        optimizer_mutation_rate=_env_float("CELLAR_OPTIMIZER_MUTATION_RATE", 0.2),
        optimizer_deadline_seconds=_env_optional_float("CELLAR_OPTIMIZER_DEADLINE_SECONDS"),
        optimizer_random_seed=_env_optional_int("CELLAR_OPTIMIZER_RANDOM_SEED"),
    )
