"""Publish/subscribe bus used to coordinate the navigation systems."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, Mapping, MutableMapping

from core.events.topics import EventTopic
from utils.logger import get_logger

__all__ = ["EventBus", "Subscriber", "Topic"]

Topic = str | EventTopic
Subscriber = Callable[..., None]

_LOGGER = get_logger(__name__)


class EventBus:
    """In-memory dispatcher shared by the tracker, dispatcher and system.

    Topics are :class:`~core.events.topics.EventTopic` members or their
    ``nav.*`` string values.  Payloads travel as keyword arguments; a mapping
    may be passed positionally and is merged first, so explicit keywords
    win.  Mutation events in :mod:`modules.maps.events` publish themselves.
    Subscriber exceptions propagate to the publisher.
    """

    def __init__(self) -> None:
        self._subscribers: MutableMapping[str, list[Subscriber]] = defaultdict(list)

    @staticmethod
    def _normalise_topic(topic: Topic) -> str:
        return topic.value if isinstance(topic, EventTopic) else str(topic)

    def subscribe(self, topic: Topic, callback: Subscriber) -> None:
        """Register ``callback`` for ``topic``; registering twice is a no-op."""

        key = self._normalise_topic(topic)
        if callback not in self._subscribers[key]:
            self._subscribers[key].append(callback)

    def publish(
        self,
        topic: Topic,
        payload: Mapping[str, Any] | None = None,
        /,
        **kwargs: Any,
    ) -> None:
        key = self._normalise_topic(topic)
        merged: Dict[str, Any] = dict(payload or {})
        merged.update(kwargs)

        # Snapshot so handlers may subscribe while being dispatched.
        callbacks = tuple(self._subscribers.get(key, ()))
        _LOGGER.debug("publish %s to %d subscriber(s)", key, len(callbacks))
        for callback in callbacks:
            callback(**merged)
