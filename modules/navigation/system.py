"""Per-tick orchestration of obstacle commits, replanning and route search."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from config.config_loader import NavigationSettings
from core.event_bus import EventBus
from core.events.topics import EventTopic
from core.pathfinding import find_path, resolve_heuristic
from modules.maps.components import GridCoord, TerrainGrid
from modules.maps.coords import CoordinateMapper, WorldPos
from modules.movement.components import MovementCommand, MovementState, Path, UnitId
from modules.movement.smoothing import has_line_of_sight, smooth_path
from modules.navigation.dispatcher import PlanRequest, PlanResult, ReplanningDispatcher
from modules.obstacles.tracker import GridChange, ObstacleRecord, ObstacleTracker
from utils.logger import get_logger

_LOGGER = get_logger(__name__)

Planner = Callable[[PlanRequest, TerrainGrid], PlanResult]


def plan_route(
    start: Sequence[float],
    goal: Sequence[float],
    grid: TerrainGrid,
    settings: NavigationSettings,
) -> Optional[List[WorldPos]]:
    """Search and smooth a route between two world positions.

    The first waypoint (centre of the start cell) is dropped when the unit
    can already walk straight to the second one from where it stands.

    Returns:
        World-space waypoints ending at the goal cell centre, or ``None``
        when the goal cannot be reached.
    """
    mapper = CoordinateMapper(settings.tile_size, settings.origin)
    cells = find_path(
        mapper.to_cell(start),
        mapper.to_cell(goal),
        grid,
        heuristic=resolve_heuristic(settings.heuristic),
        allow_corner_cutting=settings.allow_corner_cutting,
    )
    if cells is None:
        return None

    corner_cutting = settings.allow_corner_cutting
    waypoints = smooth_path(
        cells, grid, settings.tile_size, settings.origin, allow_corner_cutting=corner_cutting
    )
    if len(waypoints) > 1 and has_line_of_sight(
        start,
        waypoints[1],
        grid,
        settings.tile_size,
        settings.origin,
        allow_corner_cutting=corner_cutting,
    ):
        waypoints = waypoints[1:]
    return waypoints


@dataclass(frozen=True)
class TickReport:
    """What happened during one :meth:`NavigationSystem.tick`."""

    change: GridChange
    requested: Tuple[UnitId, ...] = ()
    applied: Tuple[UnitId, ...] = ()
    discarded: Tuple[UnitId, ...] = ()


class NavigationSystem:
    """Owns the grid service and runs the navigation phases once per tick.

    Phases, in order:

    1. write: queued obstacle and corruption changes are committed;
    2. observe: positions update stuck timers and grid changes are matched
       against remaining routes;
    3. plan: pending requests are searched against one read-only snapshot,
       on a thread pool when ``settings.max_workers > 1``;
    4. apply: results replace the unit's route unless superseded.
    """

    def __init__(
        self,
        grid: TerrainGrid,
        settings: Optional[NavigationSettings] = None,
        *,
        event_bus: Optional[EventBus] = None,
        planner: Optional[Planner] = None,
    ) -> None:
        self.grid = grid
        self.settings = settings or NavigationSettings()
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.tracker = ObstacleTracker(grid, event_bus=self.event_bus)
        self.dispatcher = ReplanningDispatcher(self.settings, event_bus=self.event_bus)
        self.mapper = CoordinateMapper(self.settings.tile_size, self.settings.origin)
        self._planner: Planner = planner or self.plan
        # Fail fast on a misconfigured heuristic name.
        resolve_heuristic(self.settings.heuristic)

        self.event_bus.subscribe(EventTopic.MOVEMENT_COMMAND, self._on_movement_command)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def command(self, command: MovementCommand) -> None:
        """Queue ``command``; the route is computed on the next tick."""

        self.dispatcher.submit(command)

    def move_to(self, unit_id: UnitId, goal: Sequence[float], speed: float) -> None:
        self.command(MovementCommand.move_to(unit_id, goal, speed))

    def follow_path(
        self, unit_id: UnitId, waypoints: Sequence[Sequence[float]], speed: float
    ) -> None:
        self.command(MovementCommand.follow_path(unit_id, waypoints, speed))

    def movement_state(self, unit_id: UnitId) -> MovementState:
        return self.dispatcher.state(unit_id).movement

    def remove_unit(self, unit_id: UnitId) -> None:
        self.dispatcher.forget(unit_id)

    def add_obstacle(
        self,
        entity_id: str,
        cells: Iterable[GridCoord],
        clearance_radius: Optional[int] = None,
    ) -> ObstacleRecord:
        """Queue a new obstacle; clearance defaults to the configured radius."""

        radius = self.settings.clearance_radius if clearance_radius is None else clearance_radius
        record = ObstacleRecord(entity_id, frozenset(cells), radius)
        self.tracker.queue_add(record)
        return record

    def move_obstacle(self, entity_id: str, cells: Iterable[GridCoord]) -> ObstacleRecord:
        """Queue a move of ``entity_id``; its clearance radius is kept."""

        live = self.tracker.get(entity_id)
        radius = live.clearance_radius if live is not None else self.settings.clearance_radius
        record = ObstacleRecord(entity_id, frozenset(cells), radius)
        self.tracker.queue_move(record)
        return record

    def remove_obstacle(self, entity_id: str) -> None:
        self.tracker.queue_remove(entity_id)

    def set_corruption(self, cell: GridCoord, level: float) -> None:
        self.tracker.queue_corruption(cell, level)

    def plan(self, request: PlanRequest, grid: TerrainGrid) -> PlanResult:
        """Default planner: explicit waypoints pass through, goals are searched."""

        if request.waypoints is not None:
            path: Optional[Path] = Path(request.waypoints, request.speed)
        else:
            waypoints = plan_route(request.start, request.goal, grid, self.settings)
            path = Path(tuple(waypoints), request.speed) if waypoints is not None else None
        return PlanResult(
            unit_id=request.unit_id,
            generation=request.generation,
            reason=request.reason,
            goal=request.goal,
            path=path,
        )

    def tick(self, dt: float, positions: Mapping[UnitId, Sequence[float]]) -> TickReport:
        """Run the write, observe, plan and apply phases once."""

        change = self.tracker.commit()
        requested = self.dispatcher.observe(dt, positions)

        requests = self.dispatcher.drain_requests()
        results = self._run_planner(requests)

        applied: List[UnitId] = []
        discarded: List[UnitId] = []
        for result in results:
            if self.dispatcher.apply(result):
                applied.append(result.unit_id)
            else:
                discarded.append(result.unit_id)

        if requests:
            _LOGGER.debug(
                "tick: %d request(s), %d applied, %d discarded",
                len(requests),
                len(applied),
                len(discarded),
            )
        return TickReport(
            change=change,
            requested=tuple(requested),
            applied=tuple(applied),
            discarded=tuple(discarded),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _run_planner(self, requests: List[PlanRequest]) -> List[PlanResult]:
        if not requests:
            return []
        snapshot = self.grid.snapshot()
        workers = min(self.settings.max_workers, len(requests))
        if workers <= 1:
            return [self._planner(request, snapshot) for request in requests]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="navcore-plan") as pool:
            futures = [pool.submit(self._planner, request, snapshot) for request in requests]
            return [future.result() for future in futures]

    def _on_movement_command(self, command: MovementCommand, **_: object) -> None:
        self.command(command)


__all__ = ["NavigationSystem", "Planner", "TickReport", "plan_route"]
