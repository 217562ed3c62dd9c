"""Per-unit replanning decisions.

The dispatcher never searches by itself.  It keeps one
:class:`UnitNavState` per unit, decides *when* a unit needs a new route
(new command, grid change across its remaining path, or stuck detection)
and hands out :class:`PlanRequest` objects.  Results come back through
:meth:`ReplanningDispatcher.apply`, which only accepts the result of the
unit's latest request.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from config.config_loader import NavigationSettings
from core.events.topics import EventTopic
from modules.maps.components import GridCoord
from modules.maps.coords import WorldPos, world_to_grid
from modules.movement.components import MovementCommand, MovementState, Path, UnitId, distance
from modules.movement.smoothing import cells_on_segment
from utils.logger import get_logger

_LOGGER = get_logger(__name__)


class NavigationError(RuntimeError):
    """Base exception raised by the navigation systems."""


class UnknownUnitError(NavigationError, KeyError):
    """Raised when an operation targets a unit the dispatcher does not track."""


class ReplanReason(str, Enum):
    """Why a route is being (re)computed."""

    COMMAND = "command"
    GRID_CHANGE = "grid_change"
    STUCK = "stuck"


class NavStatus(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    MOVING = "moving"
    UNREACHABLE = "unreachable"


# A new command must win over an automatic trigger raised in the same tick.
_REASON_PRIORITY = {
    ReplanReason.COMMAND: 2,
    ReplanReason.STUCK: 1,
    ReplanReason.GRID_CHANGE: 0,
}


@dataclass(frozen=True)
class PlanRequest:
    """Immutable input handed to a planner worker."""

    unit_id: UnitId
    generation: int
    reason: ReplanReason
    start: WorldPos
    goal: WorldPos
    speed: float
    waypoints: Optional[Tuple[WorldPos, ...]] = None

    @property
    def explicit(self) -> bool:
        return self.waypoints is not None


@dataclass(frozen=True)
class PlanResult:
    """Output of a planner worker; ``path`` is ``None`` when no route exists."""

    unit_id: UnitId
    generation: int
    reason: ReplanReason
    goal: WorldPos
    path: Optional[Path]


@dataclass
class UnitNavState:
    """Navigation bookkeeping for one unit."""

    unit_id: UnitId
    goal: Optional[WorldPos] = None
    goal_cell: Optional[GridCoord] = None
    speed: float = 0.0
    waypoints: Optional[Tuple[WorldPos, ...]] = None
    path: Optional[Path] = None
    movement: MovementState = field(default_factory=MovementState)
    last_position: Optional[WorldPos] = None
    stuck_time: float = 0.0
    cooldown: float = 0.0
    generation: int = 0
    pending: Optional[ReplanReason] = None
    status: NavStatus = NavStatus.IDLE

    def remaining_route(self) -> List[WorldPos]:
        """Current position followed by the waypoints not reached yet."""

        if self.last_position is None:
            return list(self.movement.waypoints)
        return [self.last_position, *self.movement.waypoints]


def route_cells(
    route: Sequence[WorldPos],
    tile_size: float,
    origin: Sequence[float] = (0.0, 0.0),
) -> Set[GridCoord]:
    """Cells touched by the polyline ``route``."""

    if not route:
        return set()
    if len(route) == 1:
        return {world_to_grid(route[0], tile_size, origin)}
    cells: Set[GridCoord] = set()
    for start, end in zip(route, route[1:]):
        cells.update(cells_on_segment(start, end, tile_size, origin))
    return cells


class ReplanningDispatcher:
    """Decides when each unit has to be routed again.

    Parameters
    ----------
    settings:
        Tile geometry plus the stuck detection thresholds.
    event_bus:
        Optional bus; when given the dispatcher listens to
        ``GRID_CHANGED`` and publishes ``REPLAN_TRIGGERED``,
        ``PATH_ASSIGNED`` and ``PATH_NOT_FOUND``.
    """

    def __init__(
        self,
        settings: Optional[NavigationSettings] = None,
        *,
        event_bus: Optional[object] = None,
    ) -> None:
        self.settings = settings or NavigationSettings()
        self._event_bus = event_bus
        self._units: Dict[UnitId, UnitNavState] = {}
        self._changed_cells: Set[GridCoord] = set()
        self._lock = threading.RLock()

        if event_bus is not None:
            subscribe = getattr(event_bus, "subscribe", None)
            if callable(subscribe):
                subscribe(EventTopic.GRID_CHANGED, self._on_grid_changed)

    # ------------------------------------------------------------------
    # Unit registry
    # ------------------------------------------------------------------
    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._units

    def units(self) -> Tuple[UnitId, ...]:
        return tuple(self._units)

    def state(self, unit_id: UnitId) -> UnitNavState:
        try:
            return self._units[unit_id]
        except KeyError as exc:
            raise UnknownUnitError(unit_id) from exc

    def forget(self, unit_id: UnitId) -> None:
        """Stop tracking ``unit_id``; in-flight results for it are dropped."""

        with self._lock:
            self._units.pop(unit_id, None)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------
    def submit(self, command: MovementCommand) -> UnitNavState:
        """Record a new movement command; it supersedes any route in flight."""

        with self._lock:
            state = self._units.get(command.unit_id)
            if state is None:
                state = UnitNavState(command.unit_id)
                self._units[command.unit_id] = state
            state.goal = command.target
            state.goal_cell = world_to_grid(
                command.target, self.settings.tile_size, self.settings.origin
            )
            state.speed = command.speed
            state.waypoints = command.waypoints
            state.stuck_time = 0.0
            self.request(command.unit_id, ReplanReason.COMMAND)
            return state

    def request(self, unit_id: UnitId, reason: ReplanReason) -> int:
        """Schedule a recalculation for ``unit_id`` and return its new generation."""

        with self._lock:
            state = self.state(unit_id)
            if state.goal is None:
                raise NavigationError(f"unit '{unit_id}' has no goal to replan towards")
            state.generation += 1
            if state.pending is None or _REASON_PRIORITY[reason] > _REASON_PRIORITY[state.pending]:
                state.pending = reason
            state.status = NavStatus.PLANNING
            generation = state.generation

        _LOGGER.debug("replan %s (%s), generation %d", unit_id, reason.value, generation)
        self._publish(EventTopic.REPLAN_TRIGGERED, unit_id=unit_id, reason=reason)
        return generation

    def notify_grid_change(self, cells: Iterable[GridCoord]) -> None:
        """Remember changed cells until the next :meth:`observe`."""

        with self._lock:
            self._changed_cells.update(cells)

    def _on_grid_changed(self, cells: FrozenSet[GridCoord], **_: object) -> None:
        self.notify_grid_change(cells)

    # ------------------------------------------------------------------
    # Observe phase
    # ------------------------------------------------------------------
    def observe(self, dt: float, positions: Mapping[UnitId, Sequence[float]]) -> List[UnitId]:
        """Update positions and raise stuck / grid-change triggers.

        Returns the units for which a replan was requested this call.
        """

        with self._lock:
            changed, self._changed_cells = self._changed_cells, set()
            triggered: List[UnitId] = []
            for unit_id, state in list(self._units.items()):
                position = positions.get(unit_id)
                if position is not None:
                    reason = self._observe_unit(state, dt, (float(position[0]), float(position[1])))
                    if reason is not None:
                        self.request(unit_id, reason)
                        triggered.append(unit_id)
                        continue
                if changed and self._route_hit(state, changed):
                    self.request(unit_id, ReplanReason.GRID_CHANGE)
                    triggered.append(unit_id)
            return triggered

    def _observe_unit(
        self,
        state: UnitNavState,
        dt: float,
        position: WorldPos,
    ) -> Optional[ReplanReason]:
        previous = state.last_position
        state.last_position = position
        state.cooldown = max(0.0, state.cooldown - dt)
        state.movement.advance(position, self.settings.arrival_radius)

        if state.status is NavStatus.MOVING and not state.movement.is_moving:
            state.status = NavStatus.IDLE
            state.stuck_time = 0.0
            _LOGGER.debug("%s reached its goal", state.unit_id)
            return None
        if state.status is not NavStatus.MOVING or previous is None or dt <= 0:
            state.stuck_time = 0.0
            return None

        speed = distance(previous, position) / dt
        if speed >= self.settings.stuck_speed_threshold:
            state.stuck_time = 0.0
            return None

        state.stuck_time += dt
        if state.stuck_time <= self.settings.stuck_timeout or state.cooldown > 0.0:
            return None

        _LOGGER.info(
            "%s stuck for %.2fs at %s, replanning", state.unit_id, state.stuck_time, position
        )
        state.stuck_time = 0.0
        state.cooldown = self.settings.stuck_replan_cooldown
        return ReplanReason.STUCK

    def _route_hit(self, state: UnitNavState, changed: Set[GridCoord]) -> bool:
        if state.pending is not None or not state.movement.is_moving:
            return False
        cells = route_cells(
            state.remaining_route(), self.settings.tile_size, self.settings.origin
        )
        return not cells.isdisjoint(changed)

    # ------------------------------------------------------------------
    # Plan / apply phases
    # ------------------------------------------------------------------
    def drain_requests(self) -> List[PlanRequest]:
        """Take every pending request that can be planned now."""

        requests: List[PlanRequest] = []
        with self._lock:
            for state in self._units.values():
                if state.pending is None:
                    continue
                if state.last_position is None:
                    _LOGGER.debug("%s has no known position yet, planning deferred", state.unit_id)
                    continue
                if state.goal is None:
                    raise NavigationError(
                        f"unit '{state.unit_id}' has a pending replan but no goal"
                    )
                explicit = state.waypoints if state.pending is ReplanReason.COMMAND else None
                requests.append(
                    PlanRequest(
                        unit_id=state.unit_id,
                        generation=state.generation,
                        reason=state.pending,
                        start=state.last_position,
                        goal=state.goal,
                        speed=state.speed,
                        waypoints=explicit,
                    )
                )
                state.pending = None
        return requests

    def is_current(self, result: PlanResult) -> bool:
        state = self._units.get(result.unit_id)
        return state is not None and state.generation == result.generation

    def apply(self, result: PlanResult) -> bool:
        """Install ``result`` unless a newer request superseded it."""

        with self._lock:
            if not self.is_current(result):
                _LOGGER.debug(
                    "discarding stale route for %s (generation %d)",
                    result.unit_id,
                    result.generation,
                )
                return False

            state = self._units[result.unit_id]
            state.path = result.path
            state.stuck_time = 0.0
            if result.path is None:
                state.movement.clear()
                state.status = NavStatus.UNREACHABLE
            else:
                state.movement.assign(result.path)
                state.status = NavStatus.MOVING

        if result.path is None:
            _LOGGER.info("no route for %s towards %s", result.unit_id, result.goal)
            self._publish(
                EventTopic.PATH_NOT_FOUND,
                unit_id=result.unit_id,
                goal=result.goal,
                reason=result.reason,
            )
        else:
            self._publish(
                EventTopic.PATH_ASSIGNED,
                unit_id=result.unit_id,
                path=result.path,
                reason=result.reason,
            )
        return True

    def _publish(self, topic: EventTopic, **payload: object) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(topic, **payload)


__all__ = [
    "NavStatus",
    "NavigationError",
    "PlanRequest",
    "PlanResult",
    "ReplanReason",
    "ReplanningDispatcher",
    "UnitNavState",
    "UnknownUnitError",
    "route_cells",
]
