"""Unit tests for line of sight and path smoothing."""

import numpy as np
import pytest

from core.pathfinding import find_path
from modules.maps.coords import grid_to_world, world_to_grid_many
from modules.movement.smoothing import cells_on_segment, has_line_of_sight, smooth_path
from tests.helpers.grids import (
    bfs_connected,
    grid_with_walls,
    on_cell_corner,
    open_grid,
    sample_segment,
    scenario_a_grid,
)


class TestCellsOnSegment:
    def test_single_cell(self) -> None:
        assert cells_on_segment((0.2, 0.1), (0.3, -0.2), 1.0) == [(0, 0)]

    def test_horizontal_run(self) -> None:
        assert cells_on_segment((0.0, 0.0), (3.0, 0.0), 1.0) == [(0, 0), (1, 0), (2, 0), (3, 0)]

    def test_reverse_direction(self) -> None:
        assert cells_on_segment((0.0, 3.0), (0.0, 0.0), 1.0) == [(0, 3), (0, 2), (0, 1), (0, 0)]

    def test_exact_corner_crossing_includes_both_flanks(self) -> None:
        cells = cells_on_segment((0.0, 0.0), (2.0, 2.0), 1.0)
        assert set(cells) == {(0, 0), (1, 0), (0, 1), (1, 1), (2, 1), (1, 2), (2, 2)}
        assert cells[0] == (0, 0) and cells[-1] == (2, 2)

    def test_corner_flanks_can_be_left_out(self) -> None:
        cells = cells_on_segment((0.0, 0.0), (2.0, 2.0), 1.0, corner_flanks=False)
        assert cells == [(0, 0), (1, 1), (2, 2)]

    def test_shallow_slope(self) -> None:
        cells = cells_on_segment((0.0, 0.0), (4.0, 1.0), 1.0)
        assert cells[0] == (0, 0) and cells[-1] == (4, 1)
        assert (1, 0) in cells and (3, 1) in cells

    def test_respects_tile_size_and_origin(self) -> None:
        cells = cells_on_segment((100.0, 50.0), (120.0, 50.0), 10.0, origin=(100.0, 50.0))
        assert cells == [(0, 0), (1, 0), (2, 0)]

    def test_dense_samples_are_covered(self) -> None:
        rng = np.random.default_rng(11)
        for _ in range(200):
            start, end = rng.uniform(-6.0, 6.0, size=(2, 2))
            covered = set(cells_on_segment(start, end, 1.0))
            samples = world_to_grid_many(sample_segment(start, end, 50.0), 1.0)
            assert {tuple(cell) for cell in samples.tolist()} <= covered


def test_line_of_sight_blocked_by_wall():
    grid = grid_with_walls(5, 5, [(2, 1)])
    assert not has_line_of_sight((0.0, 0.0), (4.0, 2.0), grid, 1.0)
    assert has_line_of_sight((0.0, 0.0), (4.0, 0.0), grid, 1.0)


def test_line_of_sight_leaving_the_grid_is_blocked():
    grid = open_grid(3, 3)
    assert not has_line_of_sight((0.0, 0.0), (5.0, 0.0), grid, 1.0)


def test_diagonal_gap_follows_the_corner_rule():
    grid = grid_with_walls(3, 3, [(1, 0), (0, 1)])
    assert has_line_of_sight((0.0, 0.0), (1.0, 1.0), grid, 1.0)
    assert not has_line_of_sight((0.0, 0.0), (1.0, 1.0), grid, 1.0, allow_corner_cutting=False)
    # Only the exact corner point is shared with the blocked cells.
    assert not has_line_of_sight((0.0, 0.0), (1.0, 1.2), grid, 1.0)


class TestSmoothPath:
    def test_open_grid_collapses_to_straight_segment(self) -> None:
        grid = open_grid(8, 8)
        path = find_path((0, 0), (7, 3), grid)
        assert smooth_path(path, grid, 1.0) == [(0.0, 0.0), (7.0, 3.0)]

    def test_short_paths_are_returned_as_is(self) -> None:
        grid = open_grid(3, 3)
        assert smooth_path([], grid, 1.0) == []
        assert smooth_path([(1, 1)], grid, 2.0) == [(2.0, 2.0)]
        assert smooth_path([(0, 0), (1, 1)], grid, 1.0) == [(0.0, 0.0), (1.0, 1.0)]

    def test_duplicate_cells_are_collapsed(self) -> None:
        grid = open_grid(3, 3)
        assert smooth_path([(0, 0), (0, 0), (1, 0)], grid, 1.0) == [(0.0, 0.0), (1.0, 0.0)]

    def test_corner_waypoint_is_kept_around_walls(self) -> None:
        walls = [(1, y) for y in range(0, 4)]
        grid = grid_with_walls(5, 5, walls)
        path = find_path((0, 0), (2, 0), grid)
        smoothed = smooth_path(path, grid, 1.0)
        assert smoothed[0] == (0.0, 0.0)
        assert smoothed[-1] == (2.0, 0.0)
        assert len(smoothed) >= 3

    def test_scenario_a_route_still_uses_bridge(self) -> None:
        grid = scenario_a_grid()
        path = find_path((0, 0), (4, 4), grid)
        smoothed = smooth_path(path, grid, 10.0)
        assert smoothed[-1] == grid_to_world((4, 4), 10.0)
        covered = set()
        for a, b in zip(smoothed, smoothed[1:]):
            covered.update(cells_on_segment(a, b, 10.0, corner_flanks=False))
        assert (2, 3) in covered
        assert all(grid.is_walkable(cell) for cell in covered)


@pytest.mark.parametrize("allow_corner_cutting", [True, False])
@pytest.mark.parametrize("seed", range(12))
def test_smoothed_segments_never_enter_unwalkable_cells(seed, allow_corner_cutting):
    rng = np.random.default_rng(seed)
    size = 16
    tile_size = 10.0
    origin = (-80.0, -80.0)
    start, goal = (0, 0), (size - 1, size - 1)
    walls = [tuple(cell) for cell in rng.integers(0, size, size=(70, 2)).tolist()]
    grid = grid_with_walls(size, size, walls)
    grid.set_walkable(start, True)
    grid.set_walkable(goal, True)

    path = find_path(start, goal, grid, allow_corner_cutting=allow_corner_cutting)
    if not bfs_connected(grid, start, goal, allow_corner_cutting=allow_corner_cutting):
        assert path is None
        return
    assert path is not None

    smoothed = smooth_path(
        path, grid, tile_size, origin, allow_corner_cutting=allow_corner_cutting
    )
    assert smoothed[0] == grid_to_world(start, tile_size, origin)
    assert smoothed[-1] == grid_to_world(goal, tile_size, origin)
    assert len(smoothed) <= len(path)
    for a, b in zip(smoothed, smoothed[1:]):
        assert a != b
        assert has_line_of_sight(
            a, b, grid, tile_size, origin, allow_corner_cutting=allow_corner_cutting
        )
        points = sample_segment(a, b, samples_per_unit=5.0)
        cells = world_to_grid_many(points, tile_size, origin).tolist()
        for point, (x, y) in zip(points.tolist(), cells):
            if allow_corner_cutting and on_cell_corner(point, tile_size, origin):
                continue
            assert grid.is_walkable((x, y)), f"segment {a} -> {b} crosses {(x, y)}"
