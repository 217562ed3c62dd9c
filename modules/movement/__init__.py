"""Movement requests, waypoint queues and path smoothing."""
from .components import MovementCommand, MovementState, Path, UnitId, distance
from .smoothing import cells_on_segment, has_line_of_sight, smooth_path

__all__ = [
    "MovementCommand",
    "MovementState",
    "Path",
    "UnitId",
    "cells_on_segment",
    "distance",
    "has_line_of_sight",
    "smooth_path",
]
