"""Conversion between continuous world positions and integer grid cells.

Cells are centred on multiples of ``tile_size`` measured from ``origin``, so
the world origin (the map centre) sits in the middle of cell ``(0, 0)``.
Only the two planar axes take part; a third, elevation component of a
position is ignored.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from modules.maps.components import GridCoord

WorldPos = Tuple[float, float]


def _check_tile_size(tile_size: float) -> None:
    if tile_size <= 0:
        raise ValueError("tile_size must be positive")


def world_to_grid(
    position: Sequence[float],
    tile_size: float,
    origin: Sequence[float] = (0.0, 0.0),
) -> GridCoord:
    """Return the cell containing ``position``."""

    _check_tile_size(tile_size)
    x = math.floor((position[0] - origin[0]) / tile_size + 0.5)
    y = math.floor((position[1] - origin[1]) / tile_size + 0.5)
    return (int(x), int(y))


def grid_to_world(
    cell: GridCoord,
    tile_size: float,
    origin: Sequence[float] = (0.0, 0.0),
) -> WorldPos:
    """Return the world position of the centre of ``cell``."""

    _check_tile_size(tile_size)
    return (
        origin[0] + cell[0] * tile_size,
        origin[1] + cell[1] * tile_size,
    )


def world_to_grid_many(
    positions: np.ndarray,
    tile_size: float,
    origin: Sequence[float] = (0.0, 0.0),
) -> np.ndarray:
    """Vectorised :func:`world_to_grid` for an ``(n, 2+)`` array of points."""

    _check_tile_size(tile_size)
    points = np.asarray(positions, dtype=np.float64)[:, :2]
    offset = np.asarray(origin[:2], dtype=np.float64)
    return np.floor((points - offset) / tile_size + 0.5).astype(np.int64)


@dataclass(frozen=True)
class CoordinateMapper:
    """Bundles ``tile_size`` and ``origin`` for repeated conversions."""

    tile_size: float
    origin: WorldPos = (0.0, 0.0)

    def __post_init__(self) -> None:
        _check_tile_size(self.tile_size)

    def to_cell(self, position: Sequence[float]) -> GridCoord:
        return world_to_grid(position, self.tile_size, self.origin)

    def to_world(self, cell: GridCoord) -> WorldPos:
        return grid_to_world(cell, self.tile_size, self.origin)


__all__ = [
    "CoordinateMapper",
    "WorldPos",
    "grid_to_world",
    "world_to_grid",
    "world_to_grid_many",
]
