from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import structlog
from redis.exceptions import RedisError

from app.core.config import settings
from app.notifications.bus import WILDCARD, EventBus
from app.redis_client import get_redis

logger = structlog.get_logger(__name__)


def audit_log_handler(topic: str, payload: dict[str, Any]) -> None:
    logger.info("mingle_lifecycle", topic=topic, **payload)


def redis_forward_handler(topic: str, payload: dict[str, Any]) -> None:
    message = json.dumps({"topic": topic, **payload}, default=str)
    try:
        get_redis().publish(settings.lifecycle_channel, message)
    except RedisError:
        # Best effort: clients fall back to polling when the channel is down
        logger.warning("lifecycle_forward_failed", topic=topic)


def register_default_subscribers(bus: EventBus) -> list[Callable[[], None]]:
    unsubscribers = [bus.subscribe(WILDCARD, audit_log_handler)]
    if settings.lifecycle_events_to_redis:
        unsubscribers.append(bus.subscribe(WILDCARD, redis_forward_handler))
    return unsubscribers
