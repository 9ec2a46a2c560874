from collections.abc import Callable, Iterator
from contextlib import contextmanager

from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.notifications.bus import EventBus
from app.notifications.subscribers import register_default_subscribers
from app.services import lifecycle_service
from app.storage.factory import get_storage
from app.worker.celery_app import celery_app

logger = get_task_logger(__name__)


@contextmanager
def _task_bus() -> Iterator[EventBus]:
    bus = EventBus()
    unsubscribers: list[Callable[[], None]] = register_default_subscribers(bus)
    try:
        yield bus
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()


@celery_app.task(name="sweep_expired_mingles")
def sweep_expired_mingles() -> dict:
    db: Session = SessionLocal()
    try:
        with _task_bus() as bus:
            ended = lifecycle_service.sweep_expired(db, bus=bus)
        logger.info("sweep_expired_mingles ended=%s", len(ended))
        return {"ended": [str(event_id) for event_id in ended]}
    except Exception:
        db.rollback()
        logger.exception("sweep_expired_mingles failed")
        raise
    finally:
        db.close()


@celery_app.task(name="purge_ended_mingles")
def purge_ended_mingles() -> dict:
    db: Session = SessionLocal()
    try:
        with _task_bus() as bus:
            purged = lifecycle_service.purge_ended(db, storage=get_storage(), bus=bus)
        logger.info("purge_ended_mingles purged=%s", len(purged))
        return {"purged": [str(event_id) for event_id in purged]}
    except Exception:
        db.rollback()
        logger.exception("purge_ended_mingles failed")
        raise
    finally:
        db.close()
