import unittest

from modules.movement.components import MovementCommand, MovementState, Path, distance


class TestPath(unittest.TestCase):
    def test_consecutive_duplicates_are_collapsed(self):
        path = Path(((0, 0), (0.0, 0.0), (1, 2), (1, 2), (0, 0)), speed=1.0)
        self.assertEqual(path.waypoints, ((0.0, 0.0), (1.0, 2.0), (0.0, 0.0)))
        self.assertEqual(len(path), 3)
        self.assertEqual(path.goal, (0.0, 0.0))

    def test_speed_must_be_positive(self):
        with self.assertRaises(ValueError):
            Path(((0.0, 0.0),), speed=0.0)

    def test_empty_path_has_no_goal(self):
        self.assertIsNone(Path((), speed=1.0).goal)


class TestMovementCommand(unittest.TestCase):
    def test_move_to(self):
        command = MovementCommand.move_to("u1", (3, 4, 10), 2.0)
        self.assertEqual(command.goal, (3.0, 4.0))
        self.assertEqual(command.target, (3.0, 4.0))
        self.assertIsNone(command.waypoints)

    def test_follow_path(self):
        command = MovementCommand.follow_path("u1", [(1, 1), (2, 2)], 1.0)
        self.assertEqual(command.waypoints, ((1.0, 1.0), (2.0, 2.0)))
        self.assertEqual(command.target, (2.0, 2.0))

    def test_invalid_commands(self):
        with self.assertRaises(ValueError):
            MovementCommand("u1", 1.0)
        with self.assertRaises(ValueError):
            MovementCommand("u1", 1.0, goal=(0.0, 0.0), waypoints=((1.0, 1.0),))
        with self.assertRaises(ValueError):
            MovementCommand.follow_path("u1", [], 1.0)
        with self.assertRaises(ValueError):
            MovementCommand.move_to("u1", (0, 0), -1.0)

    def test_target_without_destination_raises(self):
        command = MovementCommand.move_to("u1", (1, 1), 1.0)
        object.__setattr__(command, "goal", None)
        with self.assertRaises(ValueError):
            command.target


class TestMovementState(unittest.TestCase):
    def test_assign_replaces_queue(self):
        state = MovementState()
        state.assign(Path(((1.0, 0.0), (2.0, 0.0)), speed=3.0))
        state.assign(Path(((5.0, 5.0),), speed=1.0))
        self.assertEqual(list(state.waypoints), [(5.0, 5.0)])
        self.assertEqual(state.speed, 1.0)
        self.assertEqual(state.next_waypoint, (5.0, 5.0))

    def test_advance_pops_reached_waypoints(self):
        state = MovementState()
        state.assign(Path(((1.0, 0.0), (1.2, 0.0), (5.0, 0.0)), speed=1.0))
        self.assertEqual(state.advance((1.1, 0.0)), 2)
        self.assertEqual(state.next_waypoint, (5.0, 0.0))
        self.assertEqual(state.advance((3.0, 0.0)), 0)
        self.assertEqual(state.advance((4.9, 0.1), arrival_radius=0.5), 1)
        self.assertFalse(state.is_moving)

    def test_clear(self):
        state = MovementState()
        state.assign(Path(((1.0, 0.0),), speed=2.0))
        state.clear()
        self.assertFalse(state.is_moving)
        self.assertEqual(state.speed, 0.0)
        self.assertIsNone(state.next_waypoint)


def test_distance_ignores_elevation():
    assert distance((0, 0, 5), (3, 4, -5)) == 5.0
