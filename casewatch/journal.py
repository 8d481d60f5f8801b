"""Bounded, newest-first journal of notifications for the current session."""

import logging
import time
import uuid
from collections import deque
from typing import Callable, Deque, List, Optional

from .models import ChangeEvent, Notification

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


class NotificationJournal:
    """
    Ordered record of detected events with read/unread state.

    Entries are only ever added by ``append`` and only ever changed by
    marking them read. When the journal is full the oldest entry is
    dropped.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.time,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._clock = clock
        # index 0 is the newest entry
        self._entries: Deque[Notification] = deque(maxlen=capacity)

    def append(self, event: ChangeEvent) -> Notification:
        """
        Record a new event.

        Args:
            event: The change detected by the poller.

        Returns:
            The journal entry created for the event.
        """
        notification = Notification(
            id=uuid.uuid4().hex,
            type=event.type,
            title=event.title,
            message=event.message,
            timestamp=self._clock(),
            patient_name=event.patient_name,
            source=event.source,
            entity_id=event.identity,
        )
        self._entries.appendleft(notification)
        logger.debug(f"Journal entry {notification.id}: {notification.title} - {notification.message}")
        return notification

    def get(self, notification_id: str) -> Optional[Notification]:
        for entry in self._entries:
            if entry.id == notification_id:
                return entry
        return None

    def mark_read(self, notification_id: str) -> None:
        entry = self.get(notification_id)
        if entry is not None:
            entry.read = True

    def mark_all_read(self) -> None:
        for entry in self._entries:
            entry.read = True

    def list(self) -> List[Notification]:
        """Return all entries, newest first."""
        return list(self._entries)

    @property
    def unread_count(self) -> int:
        return sum(1 for entry in self._entries if not entry.read)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
