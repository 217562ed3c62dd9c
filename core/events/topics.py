"""Canonical registry of event bus topics used by the navigation systems.

Each entry is declared as an :class:`~enum.Enum` member and documents the
producer, the intended consumers and the payload guarantees for the associated
event.  Importing modules should rely on the enum members (e.g.
``topics.EventTopic.GRID_CHANGED``) rather than raw strings.
"""

from __future__ import annotations

from enum import Enum

__all__ = ["EventTopic"]


class EventTopic(str, Enum):
    """Enumeration of every topic published on the navigation event bus."""

    OBSTACLE_ADDED = "nav.obstacle_added"
    """Published by world collaborators when a blocking footprint appears.

    Subscribers: :class:`modules.obstacles.tracker.ObstacleTracker`.
    Guarantees: carries a ``record`` (:class:`ObstacleRecord`).
    """

    OBSTACLE_REMOVED = "nav.obstacle_removed"
    """Published by world collaborators when a blocking footprint vanishes.

    Subscribers: the obstacle tracker.
    Guarantees: carries the ``entity_id`` of the obstacle.
    """

    OBSTACLE_MOVED = "nav.obstacle_moved"
    """Published by world collaborators when a blocking footprint moves.

    Subscribers: the obstacle tracker.
    Guarantees: carries the new ``record``; the old one is resolved by id.
    """

    CORRUPTION_CHANGED = "nav.corruption_changed"
    """Published by world collaborators to change a cell's corruption.

    Subscribers: the obstacle tracker (queued with obstacle changes).
    Guarantees: carries ``cell`` and ``level``.
    """

    GRID_CHANGED = "nav.grid_changed"
    """Published by the obstacle tracker once per committed write phase.

    Subscribers: :class:`modules.navigation.dispatcher.ReplanningDispatcher`.
    Guarantees: ``cells`` is a frozenset of every cell whose walkability or
    cost may have changed; ``obstacles`` names the obstacles touched.
    """

    MOVEMENT_COMMAND = "nav.movement_command"
    """Published by AI or input collaborators to move a unit.

    Subscribers: the navigation system.
    Guarantees: carries a ``command`` (:class:`MovementCommand`).
    """

    PATH_ASSIGNED = "nav.path_assigned"
    """Published when a unit's waypoint queue has been replaced.

    Subscribers: movement layers, debugging overlays.
    Guarantees: provides ``unit_id``, ``path`` and the triggering ``reason``.
    """

    PATH_NOT_FOUND = "nav.path_not_found"
    """Published when no route to a unit's goal exists.

    Subscribers: AI collaborators deciding a fallback.
    Guarantees: provides ``unit_id``, ``goal`` and ``reason``.
    """

    REPLAN_TRIGGERED = "nav.replan_triggered"
    """Published by the dispatcher whenever a recalculation is scheduled.

    Subscribers: logging sinks and tests.
    Guarantees: provides ``unit_id`` and ``reason``.
    """
