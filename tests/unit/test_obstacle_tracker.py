"""Unit tests for obstacle marking with per-cell ownership."""

from unittest.mock import MagicMock

import pytest

from core.events.topics import EventTopic
from modules.maps.events import CorruptionChanged, ObstacleAdded, ObstacleMoved, ObstacleRemoved
from modules.maps.terrain_types import TileType
from modules.obstacles.tracker import GridChange, ObstacleRecord, ObstacleTracker, dilate
from tests.helpers.grids import open_grid


def test_dilate_square_kernel():
    assert dilate({(0, 0)}, 0) == frozenset({(0, 0)})
    assert dilate({(0, 0)}, 1) == frozenset((x, y) for x in (-1, 0, 1) for y in (-1, 0, 1))
    assert len(dilate({(0, 0), (1, 0)}, 1)) == 12
    with pytest.raises(ValueError):
        dilate({(0, 0)}, -1)


def test_record_validation():
    with pytest.raises(ValueError):
        ObstacleRecord("empty", frozenset())
    with pytest.raises(ValueError):
        ObstacleRecord.at("rock", (1, 1), clearance_radius=-1)
    with pytest.raises(ValueError, match="dimensions must be positive"):
        ObstacleRecord.from_size("crate", (0, 0), 0, 2)


def test_record_helpers():
    record = ObstacleRecord.from_size("crate", (3, 3), 2, 1, clearance_radius=0)
    assert record.cells == {(3, 3), (4, 3)}
    assert record.translated(0, 1).cells == {(3, 4), (4, 4)}
    assert record.moved_to([(0, 0)]).entity_id == "crate"
    assert ObstacleRecord.at("rock", (2, 2)).footprint() == dilate({(2, 2)}, 1)


class TestObstacleTracker:
    def setup_method(self) -> None:
        self.grid = open_grid(10, 10)
        self.tracker = ObstacleTracker(self.grid)

    def test_apply_marks_occupied_and_clearance(self) -> None:
        record = ObstacleRecord.at("rock", (4, 4), clearance_radius=1)
        changed = self.tracker.apply_obstacle(record)
        assert changed == set(record.footprint())
        for cell in record.footprint():
            assert not self.grid.is_walkable(cell)
        assert self.grid.is_walkable((6, 4))
        assert self.tracker.is_live("rock")

    def test_retract_restores_every_cell(self) -> None:
        record = ObstacleRecord.at("rock", (4, 4), clearance_radius=2)
        self.tracker.apply_obstacle(record)
        self.tracker.retract_obstacle(record)
        for cell in record.footprint():
            assert self.grid.is_walkable(cell)
        assert self.tracker.residual_marks() == set()
        assert not self.tracker.is_live("rock")

    def test_shared_cells_stay_blocked(self) -> None:
        a = ObstacleRecord.at("a", (3, 3), clearance_radius=1)
        b = ObstacleRecord.at("b", (5, 3), clearance_radius=1)
        self.tracker.apply_obstacle(a)
        self.tracker.apply_obstacle(b)
        assert self.tracker.owners_of((4, 3)) == {"a", "b"}

        self.tracker.retract_obstacle("a")
        assert not self.grid.is_walkable((4, 3))
        assert self.grid.is_walkable((2, 3))
        assert self.tracker.owners_of((4, 3)) == {"b"}
        assert self.tracker.residual_marks() == set()

    def test_unknown_retract_is_noop(self) -> None:
        assert self.tracker.retract_obstacle("ghost") == set()
        record = ObstacleRecord.at("rock", (1, 1), clearance_radius=0)
        self.tracker.apply_obstacle(record)
        self.tracker.retract_obstacle(record)
        assert self.tracker.retract_obstacle(record) == set()
        assert self.grid.blocked_cells() == set()

    def test_marks_near_edges_are_clipped(self) -> None:
        record = ObstacleRecord.at("edge", (0, 0), clearance_radius=1)
        changed = self.tracker.apply_obstacle(record)
        assert changed == {(0, 0), (1, 0), (0, 1), (1, 1)}
        self.tracker.retract_obstacle("edge")
        assert self.grid.blocked_cells() == set()

    def test_scenario_c_move_without_clearance(self) -> None:
        old = ObstacleRecord.at("boulder", (3, 3), clearance_radius=0)
        new = ObstacleRecord.at("boulder", (3, 4), clearance_radius=0)
        self.tracker.apply_obstacle(old)

        changed = self.tracker.move_obstacle(old, new)
        assert changed == {(3, 3), (3, 4)}
        assert self.grid.is_walkable((3, 3))
        assert not self.grid.is_walkable((3, 4))
        assert self.tracker.get("boulder") == new

    def test_move_with_clearance_leaves_no_stale_cells(self) -> None:
        old = ObstacleRecord.at("boulder", (3, 3), clearance_radius=1)
        new = ObstacleRecord.at("boulder", (6, 6), clearance_radius=1)
        self.tracker.apply_obstacle(old)
        self.tracker.move_obstacle(old, new)
        assert self.grid.blocked_cells() == set(new.footprint())
        assert self.tracker.residual_marks() == set()

    def test_overlapping_move_only_flips_difference(self) -> None:
        old = ObstacleRecord.at("boulder", (3, 3), clearance_radius=1)
        self.tracker.apply_obstacle(old)
        changed = self.tracker.move_obstacle("boulder", old.translated(1, 0))
        assert changed == {(2, 2), (2, 3), (2, 4), (5, 2), (5, 3), (5, 4)}

    def test_reapplying_live_record_moves_it(self) -> None:
        self.tracker.apply_obstacle(ObstacleRecord.at("rock", (1, 1), clearance_radius=0))
        self.tracker.apply_obstacle(ObstacleRecord.at("rock", (8, 8), clearance_radius=0))
        assert self.grid.blocked_cells() == {(8, 8)}

    def test_marks_do_not_make_water_walkable_on_release(self) -> None:
        self.grid.set_tile((2, 2), TileType.WATER)
        self.tracker.apply_obstacle(ObstacleRecord.at("rock", (2, 2), clearance_radius=0))
        self.tracker.retract_obstacle("rock")
        assert not self.grid.is_walkable((2, 2))

    def test_set_corruption_reports_change(self) -> None:
        self.grid.set_tile((5, 5), TileType.VOID)
        assert self.tracker.set_corruption((5, 5), 0.95) == {(5, 5)}
        assert not self.grid.is_walkable((5, 5))
        assert self.tracker.set_corruption((5, 5), 0.95) == set()
        assert self.tracker.set_corruption((50, 50), 0.5) == set()


class TestQueuedCommit:
    def setup_method(self) -> None:
        self.grid = open_grid(8, 8)
        self.bus = MagicMock()
        self.tracker = ObstacleTracker(self.grid, event_bus=self.bus)

    def test_subscribes_to_mutation_topics(self) -> None:
        topics = {call.args[0] for call in self.bus.subscribe.call_args_list}
        assert topics == {
            EventTopic.OBSTACLE_ADDED,
            EventTopic.OBSTACLE_REMOVED,
            EventTopic.OBSTACLE_MOVED,
            EventTopic.CORRUPTION_CHANGED,
        }

    def test_queue_does_not_touch_grid_until_commit(self) -> None:
        self.tracker.queue_add(ObstacleRecord.at("rock", (2, 2), clearance_radius=0))
        assert self.tracker.pending_count == 1
        assert self.grid.is_walkable((2, 2))

        change = self.tracker.commit()
        assert change == GridChange(cells=frozenset({(2, 2)}), obstacles=frozenset({"rock"}))
        assert not self.grid.is_walkable((2, 2))
        assert self.tracker.pending_count == 0
        self.bus.publish.assert_called_once_with(
            EventTopic.GRID_CHANGED,
            cells=frozenset({(2, 2)}),
            obstacles=frozenset({"rock"}),
        )

    def test_commit_applies_in_arrival_order(self) -> None:
        self.tracker.queue_add(ObstacleRecord.at("rock", (2, 2), clearance_radius=0))
        self.tracker.queue_move(ObstacleRecord.at("rock", (2, 3), clearance_radius=0))
        self.tracker.queue_remove("rock")
        change = self.tracker.commit()
        assert self.grid.blocked_cells() == set()
        assert change.cells == {(2, 2), (2, 3)}
        assert change.obstacles == {"rock"}

    def test_empty_commit_publishes_nothing(self) -> None:
        change = self.tracker.commit()
        assert not change
        self.tracker.queue_remove("ghost")
        assert not self.tracker.commit()
        self.bus.publish.assert_not_called()


def test_bus_events_reach_grid_on_commit(event_bus):
    grid = open_grid(8, 8)
    grid.set_tile((6, 6), TileType.VOID)
    tracker = ObstacleTracker(grid, event_bus=event_bus)
    changes = []
    event_bus.subscribe(EventTopic.GRID_CHANGED, lambda **payload: changes.append(payload))

    ObstacleAdded(ObstacleRecord.at("crate", (1, 1), clearance_radius=0)).publish(event_bus)
    ObstacleMoved(ObstacleRecord.at("crate", (1, 2), clearance_radius=0)).publish(event_bus)
    CorruptionChanged((6, 6), 0.95).publish(event_bus)
    assert tracker.pending_count == 3
    assert grid.is_walkable((1, 2))

    tracker.commit()
    assert grid.blocked_cells() == {(1, 2)}
    assert not grid.is_walkable((6, 6))
    assert changes[-1]["cells"] == {(1, 1), (1, 2), (6, 6)}

    ObstacleRemoved("crate").publish(event_bus)
    tracker.commit()
    assert grid.blocked_cells() == set()
    assert tracker.residual_marks() == set()
