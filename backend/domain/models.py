"""Domain models for cellar resources, production plans, bottling and tank allocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


PHASE_HARVEST = "Harvest"
PHASE_FERMENTATION = "Fermentation"
PHASE_AGING = "Aging"
PHASE_BOTTLING = "Bottling"

PHASE_ORDER: tuple[str, ...] = (
    PHASE_HARVEST,
    PHASE_FERMENTATION,
    PHASE_AGING,
    PHASE_BOTTLING,
)

PHASE_DURATION_DAYS: dict[str, int] = {
    PHASE_HARVEST: 21,
    PHASE_FERMENTATION: 30,
    PHASE_AGING: 180,
    PHASE_BOTTLING: 14,
}
DEFAULT_PHASE_DURATION_DAYS = 14

CATEGORY_CREWS = "crews"
CATEGORY_TANKS = "tanks"
CATEGORY_BARRELS = "barrels"
CATEGORY_BOTTLING_LINES = "bottling_lines"

RESOURCE_CATEGORIES: tuple[str, ...] = (
    CATEGORY_CREWS,
    CATEGORY_TANKS,
    CATEGORY_BARRELS,
    CATEGORY_BOTTLING_LINES,
)


@dataclass(frozen=True)
class Crew:
    id: str
    name: str
    capacity: int


@dataclass(frozen=True)
class Tank:
    id: str
    capacity: float
    location: str = ""
    temperature: Optional[float] = None
    current_volume: float = 0.0
    current_batch: Optional[str] = None


@dataclass(frozen=True)
class Barrel:
    id: str
    volume: float
    location: str = ""
    age: int = 0
    last_topped: Optional[str] = None
    current_wine: Optional[str] = None


@dataclass(frozen=True)
class BottlingLine:
    id: str
    capacity: float


@dataclass
class ResourceState:
    """Mutable inventory held by the resource pool."""

    crews: list[Crew] = field(default_factory=list)
    tanks: list[Tank] = field(default_factory=list)
    barrels: list[Barrel] = field(default_factory=list)
    bottling_lines: list[BottlingLine] = field(default_factory=list)

    def count(self, category: str) -> int:
        return len(getattr(self, category))


@dataclass(frozen=True)
class ResourceAllocation:
    category: str
    resource_id: str
    usage: str
    capacity: Optional[float] = None


@dataclass(frozen=True)
class Phase:
    name: str
    start_date: datetime
    end_date: datetime
    resources: list[ResourceAllocation]
    status: str = "planned"

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days


@dataclass(frozen=True)
class PlanOptimization:
    resource_utilization: dict[str, float]
    suggestions: list[str]


@dataclass(frozen=True)
class ProductionPlan:
    id: str
    vintage: int
    phases: list[Phase]
    optimization: PlanOptimization


@dataclass(frozen=True)
class BottlingRequirements:
    bottles: int
    corks: int
    capsules: int
    labels: int
    boxes: int


@dataclass(frozen=True)
class BottlingJob:
    id: str
    batch_id: str
    scheduled_date: datetime
    line_id: str
    estimated_bottles: int
    estimated_duration: float
    resources: BottlingRequirements
    status: str = "scheduled"
    actual_bottles: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    quality_checks: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScheduleConflict:
    type: str
    message: str
    job: Optional[BottlingJob] = None


@dataclass(frozen=True)
class BottlingResult:
    success: bool
    job: Optional[BottlingJob] = None
    conflicts: list[ScheduleConflict] = field(default_factory=list)


@dataclass(frozen=True)
class BatchSnapshot:
    batch_id: str
    current_volume: Optional[float] = None
    initial_volume: Optional[float] = None

    @property
    def volume(self) -> float:
        if self.current_volume is not None:
            return float(self.current_volume)
        if self.initial_volume is not None:
            return float(self.initial_volume)
        return 0.0


@dataclass(frozen=True)
class Assignment:
    batch_id: str
    tank_id: Optional[str]


@dataclass(frozen=True)
class AllocationSolution:
    assignments: tuple[Assignment, ...]
    fitness: float
    generation: int

    @property
    def unassigned_batch_ids(self) -> list[str]:
        return [item.batch_id for item in self.assignments if item.tank_id is None]


@dataclass(frozen=True)
class OptimizationRun:
    best: AllocationSolution
    generations_completed: int
    initial_fitnesses: list[float]
    best_fitness_by_generation: list[float]
    stopped_by_deadline: bool = False


@dataclass(frozen=True)
class TankFill:
    id: str
    capacity: float
    location: str
    temperature: Optional[float]
    current_volume: float
    current_batch: Optional[str]
    fill_level: float


@dataclass(frozen=True)
class CellarMap:
    tanks: list[TankFill]
    barrels: list[Barrel]
