"""Short-lived toast copies of notifications."""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from .models import Notification, Toast

logger = logging.getLogger(__name__)

DEFAULT_DURATION_SECONDS = 6.0


class ToastScheduler:
    """
    Keeps the set of toasts currently on screen.

    A toast goes away after ``duration`` seconds or when it is dismissed,
    whichever happens first; the second removal is a no-op. Toasts are
    copies, so nothing done here touches the notification journal.

    When an event loop is running, ``show`` arms a ``call_later`` timer for
    the expiry. Without one, expiry happens lazily in ``active`` and
    ``expire``, which is also how tests drive it with a fake clock.
    """

    def __init__(
        self,
        duration: float = DEFAULT_DURATION_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.duration = duration
        self._clock = clock
        self._toasts: Dict[str, Toast] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    def show(self, notification: Notification) -> Toast:
        toast = Toast(
            id=notification.id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            created_at=self._clock(),
            patient_name=notification.patient_name,
        )
        self._toasts[toast.id] = toast
        self._arm_timer(toast.id)
        return toast

    def _arm_timer(self, toast_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timers[toast_id] = loop.call_later(self.duration, self._on_timer, toast_id)

    def _on_timer(self, toast_id: str) -> None:
        self._timers.pop(toast_id, None)
        if self._toasts.pop(toast_id, None) is not None:
            logger.debug(f"Toast {toast_id} expired")

    def dismiss(self, toast_id: str) -> bool:
        """
        Remove a toast now.

        Returns:
            True if the toast was still showing.
        """
        timer = self._timers.pop(toast_id, None)
        if timer is not None:
            timer.cancel()
        return self._toasts.pop(toast_id, None) is not None

    def expire(self, now: Optional[float] = None) -> List[str]:
        """Drop every toast older than the display duration."""
        now = self._clock() if now is None else now
        expired = [
            toast.id for toast in self._toasts.values()
            if toast.expired(now, self.duration)
        ]
        for toast_id in expired:
            self.dismiss(toast_id)
        return expired

    def active(self) -> List[Toast]:
        """Return the toasts still showing, oldest first."""
        self.expire()
        return list(self._toasts.values())

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._toasts.clear()

    def __len__(self) -> int:
        return len(self._toasts)
