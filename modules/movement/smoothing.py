"""Waypoint reduction for raw A* cell paths.

Line of sight is decided with an exact grid traversal rather than point
sampling: :func:`cells_on_segment` reports every cell a straight segment
passes through.  When the segment crosses exactly through a cell corner it
only touches the two flanking cells at a point; those are reported too
unless ``corner_flanks`` is off.  Line of sight follows the same corner
rule as the search, so a raw diagonal step accepted by
:func:`core.pathfinding.find_path` always has line of sight under the
matching ``allow_corner_cutting`` setting.
"""
from __future__ import annotations

import math
from typing import List, Sequence

from modules.maps.components import GridCoord, TerrainGrid
from modules.maps.coords import WorldPos, grid_to_world

_CORNER_EPSILON = 1e-9


def _to_cell_space(value: float, origin: float, tile_size: float) -> float:
    return (value - origin) / tile_size + 0.5


def cells_on_segment(
    start: Sequence[float],
    end: Sequence[float],
    tile_size: float,
    origin: Sequence[float] = (0.0, 0.0),
    *,
    corner_flanks: bool = True,
) -> List[GridCoord]:
    """Return the cells crossed by the segment ``start`` -> ``end`` in order.

    With ``corner_flanks`` the two cells touched at an exact corner crossing
    are included before the diagonal neighbour.
    """

    if tile_size <= 0:
        raise ValueError("tile_size must be positive")

    u0 = _to_cell_space(start[0], origin[0], tile_size)
    v0 = _to_cell_space(start[1], origin[1], tile_size)
    u1 = _to_cell_space(end[0], origin[0], tile_size)
    v1 = _to_cell_space(end[1], origin[1], tile_size)

    cx, cy = math.floor(u0), math.floor(v0)
    ex, ey = math.floor(u1), math.floor(v1)
    cells: List[GridCoord] = [(cx, cy)]

    du = u1 - u0
    dv = v1 - v0
    step_x = 1 if du > 0 else -1
    step_y = 1 if dv > 0 else -1

    # Parametric distance (0..1 along the segment) to the next boundary.
    if du > 0:
        t_max_x = (cx + 1 - u0) / du
    elif du < 0:
        t_max_x = (u0 - cx) / -du
    else:
        t_max_x = math.inf
    if dv > 0:
        t_max_y = (cy + 1 - v0) / dv
    elif dv < 0:
        t_max_y = (v0 - cy) / -dv
    else:
        t_max_y = math.inf
    t_delta_x = abs(1.0 / du) if du else math.inf
    t_delta_y = abs(1.0 / dv) if dv else math.inf

    while (cx, cy) != (ex, ey):
        can_x = cx != ex
        can_y = cy != ey
        if can_x and can_y and abs(t_max_x - t_max_y) <= _CORNER_EPSILON:
            if corner_flanks:
                cells.append((cx + step_x, cy))
                cells.append((cx, cy + step_y))
            cx += step_x
            cy += step_y
            t_max_x += t_delta_x
            t_max_y += t_delta_y
        elif can_x and (not can_y or t_max_x < t_max_y):
            cx += step_x
            t_max_x += t_delta_x
        else:
            cy += step_y
            t_max_y += t_delta_y
        cells.append((cx, cy))

    return cells


def has_line_of_sight(
    start: Sequence[float],
    end: Sequence[float],
    grid: TerrainGrid,
    tile_size: float,
    origin: Sequence[float] = (0.0, 0.0),
    *,
    allow_corner_cutting: bool = True,
) -> bool:
    """Return ``True`` when walking straight from ``start`` to ``end`` is safe.

    With ``allow_corner_cutting`` a segment may pass exactly through the
    shared corner of two blocked cells, as a diagonal search step does.
    """

    cells = cells_on_segment(
        start, end, tile_size, origin, corner_flanks=not allow_corner_cutting
    )
    return all(grid.is_walkable(cell) for cell in cells)


def smooth_path(
    cell_path: Sequence[GridCoord],
    grid: TerrainGrid,
    tile_size: float,
    origin: Sequence[float] = (0.0, 0.0),
    *,
    allow_corner_cutting: bool = True,
) -> List[WorldPos]:
    """Reduce ``cell_path`` to the waypoints needed to stay on walkable cells.

    From the current waypoint the farthest later waypoint with a clear line
    of sight is kept and the ones in between are dropped.  The next raw
    waypoint is the fallback; when ``cell_path`` came from
    :func:`core.pathfinding.find_path` with the same
    ``allow_corner_cutting`` value, that step has line of sight too.
    """

    waypoints: List[WorldPos] = []
    for cell in cell_path:
        point = grid_to_world(cell, tile_size, origin)
        if not waypoints or waypoints[-1] != point:
            waypoints.append(point)

    if len(waypoints) <= 2:
        return waypoints

    smoothed = [waypoints[0]]
    current = 0
    last = len(waypoints) - 1
    while current < last:
        farthest = current + 1
        for candidate in range(last, current + 1, -1):
            if has_line_of_sight(
                waypoints[current],
                waypoints[candidate],
                grid,
                tile_size,
                origin,
                allow_corner_cutting=allow_corner_cutting,
            ):
                farthest = candidate
                break
        smoothed.append(waypoints[farthest])
        current = farthest

    return smoothed


__all__ = ["cells_on_segment", "has_line_of_sight", "smooth_path"]
