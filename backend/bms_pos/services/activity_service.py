# Overview: Service-layer operations for the audit trail; best-effort activity sink.

"""
Activity (audit) logging.

WHY: Every business mutation leaves a "who did what, when" record. Audit
writes must never block or fail the operation they describe.

DELIVERY SEMANTICS (at-most-once, non-blocking):
- log_activity() hands an ActivityEvent to the sink and returns immediately.
- The sink is a bounded queue drained by one daemon worker thread.
- Each event is written in its own short-lived SQLAlchemy session, outside
  the request's unit of work.
- A full queue drops the event; a failed write is logged and dropped.
  Neither is ever raised to the caller.
- ACTIVITY_LOG_SYNC=True writes inline with the same error handling
  (tests, CLI).
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime

from flask import has_request_context, request
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import UserActivity
from bms_pos.time_utils import utcnow

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass(frozen=True)
class ActivityEvent:
    user_id: int | None
    user_name: str
    action: str
    details: str | None = None
    entity_type: str | None = None
    entity_id: int | None = None
    action_type: str | None = None
    ip_address: str | None = None
    occurred_at: datetime = field(default_factory=utcnow)


class ActivitySink:
    """Bounded queue + single worker that persists ActivityEvents."""

    def __init__(self, app=None):
        self.app = None
        self.synchronous = False
        self._queue: queue.Queue | None = None
        self._worker: threading.Thread | None = None
        self._lock = threading.Lock()
        self.dropped = 0
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.app = app
        self.synchronous = bool(app.config.get("ACTIVITY_LOG_SYNC", False))
        self._queue = queue.Queue(maxsize=int(app.config.get("ACTIVITY_QUEUE_SIZE", 1000)))
        app.extensions["activity_sink"] = self

    def emit(self, event: ActivityEvent) -> None:
        if self.app is None:
            logger.warning("Activity sink not initialised; dropping event %r", event.action)
            return

        if self.synchronous:
            self._write(event)
            return

        self._ensure_worker()
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            logger.warning("Activity queue full; dropped audit event %r", event.action)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until every queued event has been processed. Returns False on timeout."""
        if self._queue is None or self._worker is None:
            return True
        if timeout is None:
            self._queue.join()
            return True
        done = threading.Event()

        def _join():
            self._queue.join()
            done.set()

        threading.Thread(target=_join, daemon=True).start()
        return done.wait(timeout)

    def shutdown(self, timeout: float = 5.0) -> None:
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is None:
            return
        self._queue.put(_STOP)
        worker.join(timeout)

    def _ensure_worker(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._run, name="activity-sink", daemon=True
                )
                self._worker.start()

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is _STOP:
                    return
                self._write(event)
            finally:
                self._queue.task_done()

    def _write(self, event: ActivityEvent) -> None:
        try:
            with self.app.app_context():
                self._persist(event)
        except Exception:
            # Operator-facing only; the business operation already succeeded
            logger.exception(
                "Failed to record activity %r for user %s", event.action, event.user_id
            )

    def _persist(self, event: ActivityEvent) -> None:
        with Session(db.engine) as session:
            session.add(UserActivity(
                user_id=event.user_id,
                user_name=(event.user_name or "Unknown")[:100],
                action=event.action[:200],
                details=event.details,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                action_type=event.action_type,
                ip_address=event.ip_address,
                occurred_at=event.occurred_at,
            ))
            session.commit()


activity_sink = ActivitySink()


def log_activity(
    user_id: int | None,
    user_name: str | None,
    action: str,
    details: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action_type: str | None = None,
    ip_address: str | None = None,
) -> None:
    """
    Record an audit event. Never raises.

    ip_address defaults to the current request's remote address.
    """
    try:
        if ip_address is None and has_request_context():
            ip_address = request.remote_addr
        activity_sink.emit(ActivityEvent(
            user_id=user_id,
            user_name=user_name or "Unknown",
            action=action,
            details=details,
            entity_type=entity_type,
            entity_id=entity_id,
            action_type=action_type,
            ip_address=ip_address,
        ))
    except Exception:
        logger.exception("Failed to enqueue activity %r", action)


def log_actor_activity(actor, action: str, **kwargs) -> None:
    """Convenience wrapper taking an authenticated Actor."""
    log_activity(actor.id, actor.name, action, **kwargs)


def list_activities(
    start: datetime | None = None,
    end: datetime | None = None,
    user_id: int | None = None,
    action_type: str | None = None,
    entity_type: str | None = None,
    limit: int = 1000,
) -> list[UserActivity]:
    query = db.session.query(UserActivity)

    if start is not None:
        query = query.filter(UserActivity.occurred_at >= start)
    if end is not None:
        query = query.filter(UserActivity.occurred_at <= end)
    if user_id is not None:
        query = query.filter(UserActivity.user_id == user_id)
    if action_type:
        query = query.filter(UserActivity.action_type == action_type)
    if entity_type:
        query = query.filter(UserActivity.entity_type == entity_type)

    limit = max(1, min(int(limit), 5000))
    return query.order_by(UserActivity.occurred_at.desc(), UserActivity.id.desc()).limit(limit).all()
