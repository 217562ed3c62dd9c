"""Movement requests, paths and the per-unit waypoint queue."""
from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, Optional, Sequence, Tuple

from modules.maps.coords import WorldPos

UnitId = str


def _as_world_pos(position: Sequence[float]) -> WorldPos:
    return (float(position[0]), float(position[1]))


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Planar distance between two world positions."""

    return math.hypot(a[0] - b[0], a[1] - b[1])


@dataclass(frozen=True)
class Path:
    """Ordered world-space waypoints plus the speed to travel them at.

    Consecutive duplicate waypoints are collapsed on construction.
    """

    waypoints: Tuple[WorldPos, ...]
    speed: float

    def __post_init__(self) -> None:
        if self.speed <= 0:
            raise ValueError("speed must be positive")
        collapsed: list[WorldPos] = []
        for point in self.waypoints:
            pos = _as_world_pos(point)
            if not collapsed or collapsed[-1] != pos:
                collapsed.append(pos)
        object.__setattr__(self, "waypoints", tuple(collapsed))

    @property
    def goal(self) -> Optional[WorldPos]:
        return self.waypoints[-1] if self.waypoints else None

    def __len__(self) -> int:
        return len(self.waypoints)


@dataclass(frozen=True)
class MovementCommand:
    """Inbound request to move a unit.

    Exactly one of ``goal`` (route with search) or ``waypoints`` (explicit
    route that bypasses search) is set.
    """

    unit_id: UnitId
    speed: float
    goal: Optional[WorldPos] = None
    waypoints: Optional[Tuple[WorldPos, ...]] = None

    def __post_init__(self) -> None:
        if self.speed <= 0:
            raise ValueError("speed must be positive")
        if (self.goal is None) == (self.waypoints is None):
            raise ValueError("a movement command needs either a goal or a waypoint list")
        if self.waypoints is not None and not self.waypoints:
            raise ValueError("an explicit waypoint list cannot be empty")

    @classmethod
    def move_to(cls, unit_id: UnitId, goal: Sequence[float], speed: float) -> "MovementCommand":
        return cls(unit_id=unit_id, speed=speed, goal=_as_world_pos(goal))

    @classmethod
    def follow_path(
        cls,
        unit_id: UnitId,
        waypoints: Iterable[Sequence[float]],
        speed: float,
    ) -> "MovementCommand":
        return cls(
            unit_id=unit_id,
            speed=speed,
            waypoints=tuple(_as_world_pos(point) for point in waypoints),
        )

    @property
    def target(self) -> WorldPos:
        """Final destination of the command."""

        if self.goal is not None:
            return self.goal
        if not self.waypoints:
            raise ValueError(f"movement command for '{self.unit_id}' has no destination")
        return self.waypoints[-1]


@dataclass
class MovementState:
    """Waypoint queue consumed by the movement layer.

    The navigation core replaces the queue wholesale; the movement layer
    pops waypoints as they are reached.
    """

    waypoints: Deque[WorldPos] = field(default_factory=deque)
    speed: float = 0.0

    @property
    def is_moving(self) -> bool:
        return bool(self.waypoints)

    @property
    def next_waypoint(self) -> Optional[WorldPos]:
        return self.waypoints[0] if self.waypoints else None

    def assign(self, path: Path) -> None:
        self.waypoints = deque(path.waypoints)
        self.speed = path.speed

    def clear(self) -> None:
        self.waypoints.clear()
        self.speed = 0.0

    def advance(self, position: Sequence[float], arrival_radius: float = 0.5) -> int:
        """Pop every leading waypoint within ``arrival_radius`` of ``position``."""

        popped = 0
        while self.waypoints and distance(position, self.waypoints[0]) < arrival_radius:
            self.waypoints.popleft()
            popped += 1
        return popped


__all__ = ["MovementCommand", "MovementState", "Path", "UnitId", "distance"]
