"""Terrain grid service shared by the navigation systems."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence, Set, Tuple

import numpy as np

from modules.maps.terrain_types import (
    IMPASSABLE,
    TILE_CATALOG,
    TileType,
    VOID_CORRUPTION_LIMIT,
    parse_symbol,
    tile_cost,
    tile_walkable,
)

GridCoord = Tuple[int, int]


class ReadOnlyGridError(RuntimeError):
    """Raised when a grid snapshot is written to."""


@dataclass(frozen=True, slots=True)
class CellRecord:
    """Snapshot of a single grid cell."""

    x: int
    y: int
    walkable: bool
    base_cost: float
    tile_type: TileType
    corruption: float

    @property
    def coord(self) -> GridCoord:
        return (self.x, self.y)


class TerrainGrid:
    """Bounded grid holding per-cell terrain, cost and dynamic blocking.

    Cells are addressed by integer ``(x, y)`` coordinates ranging from
    ``min_cell`` to ``min_cell + (width - 1, height - 1)``.  Reads outside
    that range report impassable terrain and writes outside it are ignored,
    so callers probing map edges never need to bounds-check first.

    The grid is created once at world setup and mutated in place.  Systems
    that only read it during a tick should work on :meth:`snapshot`.
    """

    def __init__(
        self,
        width: int,
        height: int,
        *,
        min_cell: GridCoord = (0, 0),
        default_tile: TileType = TileType.GROUND,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("width and height must be positive")

        self.width = int(width)
        self.height = int(height)
        self.min_x, self.min_y = int(min_cell[0]), int(min_cell[1])
        shape = (self.height, self.width)
        self._tiles = np.full(shape, int(default_tile), dtype=np.int8)
        self._base_cost = np.full(shape, TILE_CATALOG[default_tile].base_cost, dtype=np.float64)
        self._corruption = np.zeros(shape, dtype=np.float64)
        self._blocked = np.zeros(shape, dtype=np.bool_)
        self._read_only = False

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_layout(cls, rows: Sequence[str], *, min_cell: GridCoord = (0, 0)) -> "TerrainGrid":
        """Build a grid from ASCII rows, row ``i`` holding ``y = min_y + i``.

        Symbols: ``.`` ground, ``=`` bridge, ``~`` water, ``#`` cliff,
        ``v`` void.
        """

        if not rows:
            raise ValueError("layout must contain at least one row")
        width = len(rows[0])
        if any(len(row) != width for row in rows):
            raise ValueError("layout rows must all have the same length")

        grid = cls(width, len(rows), min_cell=min_cell)
        for row_index, row in enumerate(rows):
            for col_index, symbol in enumerate(row):
                grid.set_tile((grid.min_x + col_index, grid.min_y + row_index), parse_symbol(symbol))
        return grid

    @classmethod
    def centered(cls, width: int = 17, height: int = 17) -> "TerrainGrid":
        """Return an all-ground grid whose centre cell is ``(0, 0)``."""

        return cls(width, height, min_cell=(-(width // 2), -(height // 2)))

    @classmethod
    def from_cells(
        cls,
        width: int,
        height: int,
        cells: Iterable[CellRecord],
        *,
        min_cell: GridCoord = (0, 0),
    ) -> "TerrainGrid":
        """Rebuild a grid from records produced by :meth:`iter_cells`."""

        grid = cls(width, height, min_cell=min_cell)
        for record in cells:
            coord = record.coord
            grid.set_tile(coord, record.tile_type, record.base_cost)
            grid.set_corruption(coord, record.corruption)
            if not record.walkable and tile_walkable(record.tile_type, record.corruption):
                grid.set_walkable(coord, False)
        return grid

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------
    @property
    def max_cell(self) -> GridCoord:
        return (self.min_x + self.width - 1, self.min_y + self.height - 1)

    @property
    def read_only(self) -> bool:
        return self._read_only

    def in_bounds(self, cell: GridCoord) -> bool:
        """Return ``True`` when ``cell`` lies within the grid bounds."""

        x, y = cell
        return (
            self.min_x <= x < self.min_x + self.width
            and self.min_y <= y < self.min_y + self.height
        )

    def _index(self, cell: GridCoord) -> Optional[Tuple[int, int]]:
        x, y = cell
        col = x - self.min_x
        row = y - self.min_y
        if 0 <= col < self.width and 0 <= row < self.height:
            return row, col
        return None

    def _writable_index(self, cell: GridCoord) -> Optional[Tuple[int, int]]:
        if self._read_only:
            raise ReadOnlyGridError("grid snapshots cannot be modified")
        return self._index(cell)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def tile_type(self, cell: GridCoord) -> Optional[TileType]:
        idx = self._index(cell)
        if idx is None:
            return None
        return TileType(int(self._tiles[idx]))

    def corruption(self, cell: GridCoord) -> float:
        idx = self._index(cell)
        if idx is None:
            return 0.0
        return float(self._corruption[idx])

    def base_cost(self, cell: GridCoord) -> float:
        idx = self._index(cell)
        if idx is None:
            return IMPASSABLE
        return float(self._base_cost[idx])

    def is_blocked(self, cell: GridCoord) -> bool:
        """Return whether a dynamic block (obstacle mark) sits on ``cell``."""

        idx = self._index(cell)
        return idx is not None and bool(self._blocked[idx])

    def is_walkable(self, cell: GridCoord) -> bool:
        idx = self._index(cell)
        if idx is None or self._blocked[idx]:
            return False
        return tile_walkable(TileType(int(self._tiles[idx])), float(self._corruption[idx]))

    def cost(self, cell: GridCoord) -> float:
        """Return the cost of entering ``cell`` or :data:`IMPASSABLE`."""

        idx = self._index(cell)
        if idx is None or self._blocked[idx]:
            return IMPASSABLE
        return tile_cost(
            TileType(int(self._tiles[idx])),
            float(self._base_cost[idx]),
            float(self._corruption[idx]),
        )

    def cell(self, cell: GridCoord) -> Optional[CellRecord]:
        idx = self._index(cell)
        if idx is None:
            return None
        return CellRecord(
            x=cell[0],
            y=cell[1],
            walkable=self.is_walkable(cell),
            base_cost=float(self._base_cost[idx]),
            tile_type=TileType(int(self._tiles[idx])),
            corruption=float(self._corruption[idx]),
        )

    def iter_cells(self) -> Iterator[CellRecord]:
        """Yield every cell in row-major order (``y`` outer, ``x`` inner)."""

        for row in range(self.height):
            for col in range(self.width):
                record = self.cell((self.min_x + col, self.min_y + row))
                if record is not None:
                    yield record

    def blocked_cells(self) -> Set[GridCoord]:
        rows, cols = np.nonzero(self._blocked)
        return {
            (int(col) + self.min_x, int(row) + self.min_y)
            for row, col in zip(rows, cols)
        }

    def walkable_mask(self) -> np.ndarray:
        """Return a ``(height, width)`` boolean array of walkable cells."""

        tiles = self._tiles
        open_terrain = (tiles == TileType.GROUND) | (tiles == TileType.BRIDGE)
        passable_void = (tiles == TileType.VOID) & (self._corruption < VOID_CORRUPTION_LIMIT)
        return (open_terrain | passable_void) & ~self._blocked

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_walkable(self, cell: GridCoord, walkable: bool) -> None:
        """Set or clear the dynamic block on ``cell``.

        Clearing the block never makes water or cliffs walkable; the tile
        type still decides.
        """

        idx = self._writable_index(cell)
        if idx is not None:
            self._blocked[idx] = not walkable

    def set_corruption(self, cell: GridCoord, corruption: float) -> None:
        idx = self._writable_index(cell)
        if idx is not None:
            self._corruption[idx] = min(max(float(corruption), 0.0), 1.0)

    def set_tile(
        self,
        cell: GridCoord,
        tile_type: TileType,
        base_cost: Optional[float] = None,
    ) -> None:
        """Write terrain data for ``cell``; ``base_cost`` defaults per type."""

        idx = self._writable_index(cell)
        if idx is None:
            return
        cost = TILE_CATALOG[tile_type].base_cost if base_cost is None else float(base_cost)
        if cost < 1.0:
            raise ValueError("base_cost must be at least 1.0")
        self._tiles[idx] = int(tile_type)
        self._base_cost[idx] = cost

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self) -> "TerrainGrid":
        """Return an immutable copy safe to share across planning workers."""

        clone = TerrainGrid.__new__(TerrainGrid)
        clone.width = self.width
        clone.height = self.height
        clone.min_x = self.min_x
        clone.min_y = self.min_y
        clone._tiles = self._tiles.copy()
        clone._base_cost = self._base_cost.copy()
        clone._corruption = self._corruption.copy()
        clone._blocked = self._blocked.copy()
        for array in (clone._tiles, clone._base_cost, clone._corruption, clone._blocked):
            array.setflags(write=False)
        clone._read_only = True
        return clone

    def __repr__(self) -> str:
        return (
            f"TerrainGrid(width={self.width}, height={self.height}, "
            f"min_cell=({self.min_x}, {self.min_y}))"
        )


__all__ = ["CellRecord", "GridCoord", "ReadOnlyGridError", "TerrainGrid"]
