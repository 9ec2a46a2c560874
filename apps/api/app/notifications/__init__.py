from app.notifications.bus import EventBus, LifecycleTopic

__all__ = ["EventBus", "LifecycleTopic"]
