"""Cellar resource inventory with persistence through an injected repository."""

from __future__ import annotations

from dataclasses import asdict
from threading import RLock
from typing import Any, Callable, Optional, TypeVar

from backend.domain.models import (
    CATEGORY_BARRELS,
    CATEGORY_BOTTLING_LINES,
    CATEGORY_CREWS,
    CATEGORY_TANKS,
    RESOURCE_CATEGORIES,
    Barrel,
    BottlingLine,
    CellarMap,
    Crew,
    ResourceState,
    Tank,
    TankFill,
)
from backend.repository.resource_repository import (
    InMemoryResourceRepository,
    RepositoryError,
    ResourceRepository,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


class ResourceValidationError(Exception):
    """Raised when a resource registration violates pool invariants."""


def default_resources() -> ResourceState:
    return ResourceState(
        crews=[
            Crew(id="crew-1", name="Cellar Team A", capacity=3),
            Crew(id="crew-2", name="Cellar Team B", capacity=2),
        ],
        tanks=[
            Tank(id="T1", capacity=10000, location="Cellar North", temperature=16, current_volume=0),
            Tank(id="T2", capacity=8000, location="Cellar South", temperature=15, current_volume=0),
        ],
        barrels=[
            Barrel(id="B1", volume=225, location="Barrel Room A", age=2),
            Barrel(id="B2", volume=225, location="Barrel Room B", age=3),
        ],
        bottling_lines=[],
    )


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_crew(crew: Crew, existing: list[Crew]) -> None:
    if not crew.id:
        raise ResourceValidationError("crew id must be non-empty")
    if not _is_number(crew.capacity) or crew.capacity <= 0:
        raise ResourceValidationError(f"crew {crew.id} capacity must be > 0")
    if any(item.id == crew.id for item in existing):
        raise ResourceValidationError(f"crew {crew.id} is already registered")


def _validate_tank(tank: Tank, existing: list[Tank]) -> None:
    if not tank.id:
        raise ResourceValidationError("tank id must be non-empty")
    if not _is_number(tank.capacity) or tank.capacity <= 0:
        raise ResourceValidationError(f"tank {tank.id} capacity must be > 0")
    if not _is_number(tank.current_volume) or tank.current_volume < 0:
        raise ResourceValidationError(f"tank {tank.id} current_volume must be >= 0")
    if any(item.id == tank.id for item in existing):
        raise ResourceValidationError(f"tank {tank.id} is already registered")


def _validate_barrel(barrel: Barrel, existing: list[Barrel]) -> None:
    if not barrel.id:
        raise ResourceValidationError("barrel id must be non-empty")
    if not _is_number(barrel.volume) or barrel.volume <= 0:
        raise ResourceValidationError(f"barrel {barrel.id} volume must be > 0")
    if any(item.id == barrel.id for item in existing):
        raise ResourceValidationError(f"barrel {barrel.id} is already registered")


def _validate_bottling_line(line: BottlingLine, existing: list[BottlingLine]) -> None:
    # Duplicate line ids are accepted; lookups resolve to the first match.
    del existing
    if not line.id:
        raise ResourceValidationError("bottling line id must be non-empty")
    if not _is_number(line.capacity) or line.capacity <= 0:
        raise ResourceValidationError(f"bottling line {line.id} capacity must be > 0")


_CATEGORY_SPECS: dict[str, tuple[type, Callable[[Any, list], None]]] = {
    CATEGORY_CREWS: (Crew, _validate_crew),
    CATEGORY_TANKS: (Tank, _validate_tank),
    CATEGORY_BARRELS: (Barrel, _validate_barrel),
    CATEGORY_BOTTLING_LINES: (BottlingLine, _validate_bottling_line),
}


def _parse_category(category: str, raw_items: Any) -> list:
    record_type, validator = _CATEGORY_SPECS[category]
    if not isinstance(raw_items, list):
        raise ResourceValidationError(f"{category} must be a list")
    parsed: list = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ResourceValidationError(f"{category} entries must be objects")
        try:
            item = record_type(**raw)
        except TypeError as exc:
            raise ResourceValidationError(f"malformed {category} entry: {exc}") from exc
        try:
            validator(item, parsed)
        except (TypeError, ValueError) as exc:
            raise ResourceValidationError(f"malformed {category} entry: {exc}") from exc
        parsed.append(item)
    return parsed


def merge_with_defaults(payload: Optional[dict[str, Any]]) -> ResourceState:
    """Overlay persisted categories on the defaults, one whole category at a time."""
    defaults = default_resources()
    if not payload:
        return defaults

    merged = ResourceState()
    for category in RESOURCE_CATEGORIES:
        raw_items = payload.get(category)
        if raw_items is None:
            setattr(merged, category, getattr(defaults, category))
            continue
        try:
            setattr(merged, category, _parse_category(category, raw_items))
        except ResourceValidationError as exc:
            logger.warning(
                "Persisted resources rejected; using defaults | category=%s | reason=%s",
                category,
                exc,
            )
            setattr(merged, category, getattr(defaults, category))
    return merged


def _copy_state(state: ResourceState) -> ResourceState:
    return ResourceState(
        crews=list(state.crews),
        tanks=list(state.tanks),
        barrels=list(state.barrels),
        bottling_lines=list(state.bottling_lines),
    )


class ResourcePool:
    """Owns crews, tanks, barrels and bottling lines.

    State is loaded lazily from the repository on first use. Every mutation
    happens under a re-entrant lock and is followed by a best-effort save;
    storage failures are logged and the pool keeps working in memory.
    """

    def __init__(self, repository: Optional[ResourceRepository] = None) -> None:
        self._repository = repository or InMemoryResourceRepository()
        self._lock = RLock()
        self._state: ResourceState | None = None

    def load(self) -> ResourceState:
        try:
            payload = self._repository.load()
        except RepositoryError as exc:
            logger.warning("Unable to load stored planner resources | reason=%s", exc)
            payload = None
        except Exception:
            logger.exception("Unexpected failure loading planner resources")
            payload = None
        state = merge_with_defaults(payload)
        with self._lock:
            self._state = state
        logger.info(
            "Resource pool loaded | crews=%s | tanks=%s | barrels=%s | bottling_lines=%s",
            len(state.crews),
            len(state.tanks),
            len(state.barrels),
            len(state.bottling_lines),
        )
        return _copy_state(state)

    def _current(self) -> ResourceState:
        with self._lock:
            if self._state is None:
                self.load()
            assert self._state is not None
            return self._state

    def save(self) -> bool:
        with self._lock:
            payload = {
                category: [asdict(item) for item in getattr(self._current(), category)]
                for category in RESOURCE_CATEGORIES
            }
        try:
            self._repository.save(payload)
        except RepositoryError as exc:
            logger.warning("Unable to save planner resources | reason=%s", exc)
            return False
        except Exception:
            logger.exception("Unexpected failure saving planner resources")
            return False
        return True

    def snapshot(self) -> ResourceState:
        """Return a copy that callers may hold without seeing later registrations."""
        with self._lock:
            return _copy_state(self._current())

    def _register(self, category: str, item: T) -> T:
        _, validator = _CATEGORY_SPECS[category]
        with self._lock:
            items = getattr(self._current(), category)
            validator(item, items)
            items.append(item)
            self.save()
        logger.info("Resource registered | category=%s | id=%s", category, item.id)
        return item

    def register_crew(self, crew: Crew) -> Crew:
        return self._register(CATEGORY_CREWS, crew)

    def register_tank(self, tank: Tank) -> Tank:
        return self._register(CATEGORY_TANKS, tank)

    def register_barrel(self, barrel: Barrel) -> Barrel:
        return self._register(CATEGORY_BARRELS, barrel)

    def register_bottling_line(self, line: BottlingLine) -> BottlingLine:
        return self._register(CATEGORY_BOTTLING_LINES, line)

    def find_bottling_line(self, line_id: str) -> Optional[BottlingLine]:
        with self._lock:
            for line in self._current().bottling_lines:
                if line.id == line_id:
                    return line
        return None

    def generate_cellar_map(self) -> CellarMap:
        state = self.snapshot()
        tanks = [
            TankFill(
                id=tank.id,
                capacity=tank.capacity,
                location=tank.location,
                temperature=tank.temperature,
                current_volume=tank.current_volume,
                current_batch=tank.current_batch,
                fill_level=(tank.current_volume / tank.capacity) * 100 if tank.capacity else 0.0,
            )
            for tank in state.tanks
        ]
        return CellarMap(tanks=tanks, barrels=list(state.barrels))
