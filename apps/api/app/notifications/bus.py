from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

Handler = Callable[[str, dict[str, Any]], None]

WILDCARD = "*"


class LifecycleTopic(str, Enum):
    CREATED = "mingle.created"
    UPDATED = "mingle.updated"
    PUBLISHED = "mingle.published"
    ENDED = "mingle.ended"
    DELETED = "mingle.deleted"
    JOINED = "mingle.joined"
    LEFT = "mingle.left"


class EventBus:
    """In-process publish/subscribe channel for mingle lifecycle changes.

    One bus is created per application and handed to whoever needs it; there
    is no module-level instance. ``subscribe`` returns a callable that removes
    the subscription again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        key = _topic_key(topic)
        with self._lock:
            self._handlers[key].append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(key, [])
                if handler in handlers:
                    handlers.remove(handler)

        return _unsubscribe

    def publish(self, topic: str, payload: dict[str, Any]) -> int:
        key = _topic_key(topic)
        with self._lock:
            handlers = list(self._handlers.get(key, ())) + list(self._handlers.get(WILDCARD, ()))

        delivered = 0
        for handler in handlers:
            try:
                handler(key, payload)
                delivered += 1
            except Exception:
                logger.exception("event_bus_handler_failed", topic=key)
        return delivered

    def subscriber_count(self, topic: str | None = None) -> int:
        with self._lock:
            if topic is None:
                return sum(len(h) for h in self._handlers.values())
            return len(self._handlers.get(_topic_key(topic), ()))


def _topic_key(topic: str) -> str:
    return topic.value if isinstance(topic, LifecycleTopic) else topic
