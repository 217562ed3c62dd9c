"""Obstacle footprints applied onto the terrain grid."""
from .tracker import GridChange, ObstacleRecord, ObstacleTracker, dilate

__all__ = ["GridChange", "ObstacleRecord", "ObstacleTracker", "dilate"]
