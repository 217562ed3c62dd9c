import heapq
import itertools
from typing import Callable, Dict, List, Optional, Set, Tuple

from modules.maps.components import GridCoord, TerrainGrid
from modules.maps.terrain_types import IMPASSABLE

Heuristic = Callable[[GridCoord, GridCoord], float]

NEIGHBOR_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (0, 1),
    (1, 0),
    (0, -1),
    (-1, 0),
    (1, 1),
    (-1, 1),
    (1, -1),
    (-1, -1),
)

_SQRT2_MINUS_2 = 2 ** 0.5 - 2


def manhattan_distance(a: GridCoord, b: GridCoord) -> float:
    """Manhattan distance; overestimates along diagonal stretches."""
    return float(abs(a[0] - b[0]) + abs(a[1] - b[1]))


def chebyshev_distance(a: GridCoord, b: GridCoord) -> float:
    """Chebyshev distance, admissible when every step costs at least 1."""
    return float(max(abs(a[0] - b[0]), abs(a[1] - b[1])))


def octile_distance(a: GridCoord, b: GridCoord) -> float:
    """Octile distance.

    Only admissible when diagonal steps are charged sqrt(2) times the
    orthogonal cost, which the destination-cost model here does not do.
    """
    dx = abs(a[0] - b[0])
    dy = abs(a[1] - b[1])
    return float(dx + dy) + _SQRT2_MINUS_2 * min(dx, dy)


HEURISTICS: Dict[str, Heuristic] = {
    "manhattan": manhattan_distance,
    "chebyshev": chebyshev_distance,
    "octile": octile_distance,
}


def resolve_heuristic(name: str) -> Heuristic:
    """Look up a heuristic by its configuration name."""
    try:
        return HEURISTICS[name]
    except KeyError as exc:
        raise ValueError(
            f"unknown heuristic '{name}', expected one of {sorted(HEURISTICS)}"
        ) from exc


def _can_step(
    grid: TerrainGrid,
    current: GridCoord,
    dx: int,
    dy: int,
    allow_corner_cutting: bool,
) -> bool:
    if dx == 0 or dy == 0 or allow_corner_cutting:
        return True
    x, y = current
    return grid.is_walkable((x + dx, y)) and grid.is_walkable((x, y + dy))


def find_path(
    start: GridCoord,
    goal: GridCoord,
    grid: TerrainGrid,
    *,
    heuristic: Heuristic = manhattan_distance,
    allow_corner_cutting: bool = True,
) -> Optional[List[GridCoord]]:
    """
    Compute a cell path from ``start`` to ``goal`` with A*.

    Movement is 8-directional and entering a cell costs ``grid.cost(cell)``
    whether the step is orthogonal or diagonal.  The frontier is ordered by
    ``f = g + h`` with ties going to the lower ``h``.  The default Manhattan
    heuristic is not admissible under diagonal movement, so returned paths
    can be slightly longer than optimal; pass :func:`chebyshev_distance`
    for optimal paths.

    By default a diagonal step only needs its destination to be walkable,
    so units may squeeze between two blocked cells that share a corner.
    With ``allow_corner_cutting=False`` both orthogonal cells the step
    passes between must be walkable as well.

    Args:
        start: Starting cell.
        goal: Target cell.
        grid: Terrain grid (or snapshot) to read walkability and costs from.
        heuristic: Remaining-cost estimate between a cell and the goal.
        allow_corner_cutting: Permit diagonal steps past blocked corners;
            pass ``False`` to require both flanking cells to be walkable.

    Returns:
        Cells from ``start`` to ``goal`` inclusive, or ``None`` when the goal
        cannot be reached or either endpoint is unwalkable.
    """
    if not grid.is_walkable(start) or not grid.is_walkable(goal):
        return None

    counter = itertools.count()
    h_start = heuristic(start, goal)
    open_set: List[Tuple[float, float, int, GridCoord]] = [
        (h_start, h_start, next(counter), start)
    ]
    came_from: Dict[GridCoord, GridCoord] = {}
    g_score: Dict[GridCoord, float] = {start: 0.0}
    closed: Set[GridCoord] = set()

    while open_set:
        _, _, _, current = heapq.heappop(open_set)

        if current == goal:
            path = [current]
            while current in came_from:
                current = came_from[current]
                path.append(current)
            path.reverse()
            return path

        if current in closed:
            continue  # stale heap entry
        closed.add(current)

        x, y = current
        for dx, dy in NEIGHBOR_OFFSETS:
            neighbor = (x + dx, y + dy)
            if neighbor in closed:
                continue
            step_cost = grid.cost(neighbor)
            if step_cost == IMPASSABLE:
                continue
            if not _can_step(grid, current, dx, dy, allow_corner_cutting):
                continue

            tentative_g = g_score[current] + step_cost
            if tentative_g < g_score.get(neighbor, IMPASSABLE):
                came_from[neighbor] = current
                g_score[neighbor] = tentative_g
                h = heuristic(neighbor, goal)
                heapq.heappush(open_set, (tentative_g + h, h, next(counter), neighbor))

    return None


__all__ = [
    "HEURISTICS",
    "Heuristic",
    "NEIGHBOR_OFFSETS",
    "chebyshev_distance",
    "find_path",
    "manhattan_distance",
    "octile_distance",
    "resolve_heuristic",
]
