"""Background writer for the notification audit log.

Delivery code hands entries to a bounded queue and returns immediately. A
single daemon thread drains the queue into the database. When the queue is
full the entry is dropped with a warning rather than blocking the sender.
"""
from __future__ import annotations

import queue
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from loguru import logger
from sqlalchemy.orm import Session

from app.db.models.notification import NotificationEventType, NotificationLog
from app.utils.time import utcnow

_STOP = object()


@dataclass
class NotificationLogEntry:
    subscription_id: uuid.UUID
    event_type: NotificationEventType
    baby_id: uuid.UUID
    success: bool
    activity_type: Optional[str] = None
    error_message: Optional[str] = None
    http_status: Optional[int] = None
    payload: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_model(self) -> NotificationLog:
        return NotificationLog(
            subscription_id=self.subscription_id,
            event_type=self.event_type,
            activity_type=self.activity_type,
            baby_id=self.baby_id,
            success=self.success,
            error_message=self.error_message,
            http_status=self.http_status,
            payload=self.payload,
            created_at=self.created_at,
        )


class NotificationLogWriter:
    """Queue-backed audit log persistence that never raises to the caller."""

    def __init__(self, session_factory: Callable[[], Session], maxsize: int = 1000) -> None:
        self._session_factory = session_factory
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.dropped = 0

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(
                target=self._run, name="notification-log-writer", daemon=True
            )
            self._thread.start()

    def submit(self, entry: NotificationLogEntry) -> bool:
        """Queue ``entry`` for writing; returns ``False`` if it had to be dropped."""

        try:
            self.start()
            self._queue.put_nowait(entry)
        except queue.Full:
            self.dropped += 1
            logger.warning(
                "Notification log queue full, dropping entry",
                subscription_id=str(entry.subscription_id),
                dropped=self.dropped,
            )
            return False
        except Exception as exc:
            logger.error("Failed to queue notification log", error=str(exc))
            return False
        return True

    def flush(self) -> None:
        """Block until every queued entry has been processed."""

        if self._thread is None or not self._thread.is_alive():
            return
        self._queue.join()

    def stop(self, timeout: float = 5.0) -> None:
        thread = self._thread
        if thread is None or not thread.is_alive():
            return
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            logger.warning("Notification log writer did not stop cleanly", pending=self._queue.qsize())
            return
        thread.join(timeout)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._write(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    def _write(self, entry: NotificationLogEntry) -> None:
        db = self._session_factory()
        try:
            db.add(entry.to_model())
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.error(
                "Error logging notification attempt",
                subscription_id=str(entry.subscription_id),
                error=str(exc),
            )
        finally:
            db.close()


__all__ = ["NotificationLogEntry", "NotificationLogWriter"]
