"""Inbound grid mutation events published by world collaborators."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Protocol, runtime_checkable

from core.events.topics import EventTopic
from modules.maps.components import GridCoord

if TYPE_CHECKING:  # pragma: no cover - import hints only
    from modules.obstacles.tracker import ObstacleRecord


@runtime_checkable
class _PublishesEvents(Protocol):
    """Protocol capturing the subset of the event bus used here."""

    def publish(self, event_type: Any, payload: Any = None, /, **kwargs: Any) -> None:
        """Publish an event to all subscribers."""


@dataclass(frozen=True, slots=True)
class ObstacleAdded:
    """A blocking footprint appeared on the grid."""

    record: "ObstacleRecord"

    topic: ClassVar[EventTopic] = EventTopic.OBSTACLE_ADDED

    def payload(self) -> Dict[str, Any]:
        return {"record": self.record}

    def publish(self, bus: _PublishesEvents) -> None:
        """Convenience helper mirroring ``EventBus.publish``."""

        bus.publish(self.topic, self.payload())


@dataclass(frozen=True, slots=True)
class ObstacleRemoved:
    """A blocking footprint was despawned."""

    entity_id: str

    topic: ClassVar[EventTopic] = EventTopic.OBSTACLE_REMOVED

    def payload(self) -> Dict[str, Any]:
        return {"entity_id": self.entity_id}

    def publish(self, bus: _PublishesEvents) -> None:
        bus.publish(self.topic, self.payload())


@dataclass(frozen=True, slots=True)
class ObstacleMoved:
    """A blocking footprint moved; ``record`` describes its new placement."""

    record: "ObstacleRecord"

    topic: ClassVar[EventTopic] = EventTopic.OBSTACLE_MOVED

    def payload(self) -> Dict[str, Any]:
        return {"record": self.record}

    def publish(self, bus: _PublishesEvents) -> None:
        bus.publish(self.topic, self.payload())


@dataclass(frozen=True, slots=True)
class CorruptionChanged:
    """Request to set the corruption level of a single cell."""

    cell: GridCoord
    level: float

    topic: ClassVar[EventTopic] = EventTopic.CORRUPTION_CHANGED

    def payload(self) -> Dict[str, Any]:
        return {"cell": self.cell, "level": self.level}

    def publish(self, bus: _PublishesEvents) -> None:
        bus.publish(self.topic, self.payload())


__all__ = [
    "CorruptionChanged",
    "ObstacleAdded",
    "ObstacleMoved",
    "ObstacleRemoved",
]
