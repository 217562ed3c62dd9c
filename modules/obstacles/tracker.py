"""Obstacle occupancy and clearance applied onto the terrain grid.

The tracker is the only writer of dynamic walkability.  Every marked cell
remembers which obstacles own it, so retracting an obstacle restores
exactly the cells nobody else still blocks.  World collaborators queue
changes at any time; they reach the grid only when :meth:`ObstacleTracker.commit`
runs during the tick's write phase.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from core.events.topics import EventTopic
from modules.maps.components import GridCoord, TerrainGrid
from utils.logger import get_logger, log_calls

_LOGGER = get_logger(__name__)


def dilate(cells: Iterable[GridCoord], radius: int) -> FrozenSet[GridCoord]:
    """Return ``cells`` grown by ``radius`` in every direction (square kernel)."""

    if radius < 0:
        raise ValueError("clearance radius cannot be negative")
    base = frozenset((int(x), int(y)) for x, y in cells)
    if radius == 0:
        return base
    span = range(-radius, radius + 1)
    return frozenset((x + dx, y + dy) for x, y in base for dx in span for dy in span)


@dataclass(frozen=True)
class ObstacleRecord:
    """Cells occupied by one blocking entity plus the clearance kept around it.

    Example
    -------
    >>> sorted(ObstacleRecord.from_size("crate", (3, 3), 2, 1, clearance_radius=0).cells)
    [(3, 3), (4, 3)]
    """

    entity_id: str
    cells: FrozenSet[GridCoord]
    clearance_radius: int = 1

    def __post_init__(self) -> None:
        if not self.cells:
            raise ValueError("an obstacle must occupy at least one cell")
        if self.clearance_radius < 0:
            raise ValueError("clearance radius cannot be negative")
        object.__setattr__(self, "cells", frozenset((int(x), int(y)) for x, y in self.cells))

    @classmethod
    def at(cls, entity_id: str, cell: GridCoord, clearance_radius: int = 1) -> "ObstacleRecord":
        """Single-cell obstacle."""

        return cls(entity_id, frozenset({cell}), clearance_radius)

    @classmethod
    def from_size(
        cls,
        entity_id: str,
        anchor: GridCoord,
        width: int,
        height: int,
        *,
        clearance_radius: int = 1,
    ) -> "ObstacleRecord":
        """Rectangular obstacle spanning ``width`` x ``height`` from ``anchor``."""

        if width <= 0 or height <= 0:
            raise ValueError("dimensions must be positive")
        ax, ay = anchor
        cells = frozenset((ax + dx, ay + dy) for dx in range(width) for dy in range(height))
        return cls(entity_id, cells, clearance_radius)

    def moved_to(self, cells: Iterable[GridCoord]) -> "ObstacleRecord":
        return ObstacleRecord(self.entity_id, frozenset(cells), self.clearance_radius)

    def translated(self, dx: int, dy: int) -> "ObstacleRecord":
        return self.moved_to((x + dx, y + dy) for x, y in self.cells)

    def footprint(self) -> FrozenSet[GridCoord]:
        """Occupied cells plus clearance."""

        return dilate(self.cells, self.clearance_radius)


@dataclass(frozen=True)
class GridChange:
    """Outcome of one commit: cells whose state changed and obstacles touched."""

    cells: FrozenSet[GridCoord] = frozenset()
    obstacles: FrozenSet[str] = frozenset()

    def __bool__(self) -> bool:
        return bool(self.cells)


@dataclass
class _PendingOp:
    kind: str
    record: Optional[ObstacleRecord] = None
    entity_id: Optional[str] = None
    cell: Optional[GridCoord] = None
    level: float = 0.0


RecordOrId = Union[ObstacleRecord, str]


class ObstacleTracker:
    """Applies and retracts obstacle marks with per-cell ownership."""

    def __init__(self, grid: TerrainGrid, *, event_bus: Optional[object] = None) -> None:
        self._grid = grid
        self._event_bus = event_bus
        self._owners: Dict[GridCoord, Set[str]] = {}
        self._live: Dict[str, ObstacleRecord] = {}
        self._marked: Dict[str, FrozenSet[GridCoord]] = {}
        self._pending: List[_PendingOp] = []
        self._lock = threading.Lock()

        if event_bus is not None:
            subscribe = getattr(event_bus, "subscribe", None)
            if callable(subscribe):
                subscribe(EventTopic.OBSTACLE_ADDED, self._on_obstacle_added)
                subscribe(EventTopic.OBSTACLE_REMOVED, self._on_obstacle_removed)
                subscribe(EventTopic.OBSTACLE_MOVED, self._on_obstacle_moved)
                subscribe(EventTopic.CORRUPTION_CHANGED, self._on_corruption_changed)

    @property
    def grid(self) -> TerrainGrid:
        return self._grid

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def is_live(self, entity_id: str) -> bool:
        return entity_id in self._live

    def get(self, entity_id: str) -> Optional[ObstacleRecord]:
        return self._live.get(entity_id)

    def live_records(self) -> Tuple[ObstacleRecord, ...]:
        return tuple(self._live.values())

    def owners_of(self, cell: GridCoord) -> FrozenSet[str]:
        return frozenset(self._owners.get(cell, ()))

    def marked_cells(self, entity_id: str) -> FrozenSet[GridCoord]:
        return self._marked.get(entity_id, frozenset())

    def residual_marks(self) -> Set[GridCoord]:
        """Blocked cells without any live owner; always empty unless buggy."""

        return self._grid.blocked_cells() - set(self._owners)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Ownership bookkeeping
    # ------------------------------------------------------------------
    def _claim(self, record: ObstacleRecord) -> FrozenSet[GridCoord]:
        cells = frozenset(c for c in record.footprint() if self._grid.in_bounds(c))
        for cell in cells:
            self._owners.setdefault(cell, set()).add(record.entity_id)
        self._live[record.entity_id] = record
        self._marked[record.entity_id] = cells
        return cells

    def _release(self, entity_id: str) -> FrozenSet[GridCoord]:
        self._live.pop(entity_id, None)
        cells = self._marked.pop(entity_id, frozenset())
        for cell in cells:
            owners = self._owners.get(cell)
            if owners is None:
                continue
            owners.discard(entity_id)
            if not owners:
                del self._owners[cell]
        return cells

    def _sync(self, cells: Iterable[GridCoord]) -> Set[GridCoord]:
        """Write ownership state for ``cells`` to the grid; return flipped cells."""

        flipped: Set[GridCoord] = set()
        for cell in cells:
            should_block = cell in self._owners
            if self._grid.is_blocked(cell) != should_block:
                self._grid.set_walkable(cell, not should_block)
                flipped.add(cell)
        return flipped

    # ------------------------------------------------------------------
    # Immediate operations (used by the commit phase)
    # ------------------------------------------------------------------
    def apply_obstacle(self, record: ObstacleRecord) -> Set[GridCoord]:
        """Mark ``record``'s footprint unwalkable.

        Applying a record whose entity is already live replaces the old
        placement, exactly as :meth:`move_obstacle` would.
        """

        if record.entity_id in self._live:
            return self.move_obstacle(self._live[record.entity_id], record)
        return self._sync(self._claim(record))

    def retract_obstacle(self, record: RecordOrId) -> Set[GridCoord]:
        """Remove an obstacle's marks; unknown obstacles are ignored."""

        entity_id = record if isinstance(record, str) else record.entity_id
        if entity_id not in self._live:
            return set()
        return self._sync(self._release(entity_id))

    def move_obstacle(self, old_record: RecordOrId, new_record: ObstacleRecord) -> Set[GridCoord]:
        """Retract ``old_record`` and apply ``new_record`` as one grid write."""

        old_id = old_record if isinstance(old_record, str) else old_record.entity_id
        released = self._release(old_id) if old_id in self._live else frozenset()
        if new_record.entity_id != old_id and new_record.entity_id in self._live:
            released = released | self._release(new_record.entity_id)
        claimed = self._claim(new_record)
        return self._sync(released | claimed)

    def set_corruption(self, cell: GridCoord, level: float) -> Set[GridCoord]:
        if not self._grid.in_bounds(cell):
            return set()
        before = (self._grid.corruption(cell), self._grid.is_walkable(cell))
        self._grid.set_corruption(cell, level)
        after = (self._grid.corruption(cell), self._grid.is_walkable(cell))
        return {cell} if before != after else set()

    # ------------------------------------------------------------------
    # Queued operations
    # ------------------------------------------------------------------
    def queue_add(self, record: ObstacleRecord) -> None:
        with self._lock:
            self._pending.append(_PendingOp("add", record=record))

    def queue_remove(self, entity_id: str) -> None:
        with self._lock:
            self._pending.append(_PendingOp("remove", entity_id=entity_id))

    def queue_move(self, record: ObstacleRecord) -> None:
        """Queue a move of ``record.entity_id`` to ``record``'s placement."""

        with self._lock:
            self._pending.append(_PendingOp("move", record=record))

    def queue_corruption(self, cell: GridCoord, level: float) -> None:
        with self._lock:
            self._pending.append(_PendingOp("corruption", cell=cell, level=float(level)))

    @log_calls
    def commit(self) -> GridChange:
        """Apply every queued change in arrival order and announce the result."""

        with self._lock:
            pending, self._pending = self._pending, []
        if not pending:
            return GridChange()

        changed: Set[GridCoord] = set()
        touched: Set[str] = set()
        for op in pending:
            if op.kind == "add" and op.record is not None:
                changed |= self.apply_obstacle(op.record)
                touched.add(op.record.entity_id)
            elif op.kind == "move" and op.record is not None:
                entity_id = op.record.entity_id
                changed |= self.move_obstacle(entity_id, op.record)
                touched.add(entity_id)
            elif op.kind == "remove" and op.entity_id is not None:
                changed |= self.retract_obstacle(op.entity_id)
                touched.add(op.entity_id)
            elif op.kind == "corruption" and op.cell is not None:
                changed |= self.set_corruption(op.cell, op.level)

        change = GridChange(cells=frozenset(changed), obstacles=frozenset(touched))
        _LOGGER.debug(
            "committed %d change(s): %d cell(s) updated, obstacles=%s",
            len(pending),
            len(change.cells),
            sorted(change.obstacles),
        )
        if change and self._event_bus is not None:
            self._event_bus.publish(
                EventTopic.GRID_CHANGED,
                cells=change.cells,
                obstacles=change.obstacles,
            )
        return change

    # ------------------------------------------------------------------
    # Event bus handlers
    # ------------------------------------------------------------------
    def _on_obstacle_added(self, record: ObstacleRecord, **_: object) -> None:
        self.queue_add(record)

    def _on_obstacle_removed(self, entity_id: str, **_: object) -> None:
        self.queue_remove(entity_id)

    def _on_obstacle_moved(self, record: ObstacleRecord, **_: object) -> None:
        self.queue_move(record)

    def _on_corruption_changed(self, cell: GridCoord, level: float, **_: object) -> None:
        self.queue_corruption(cell, level)


__all__ = ["GridChange", "ObstacleRecord", "ObstacleTracker", "dilate"]
