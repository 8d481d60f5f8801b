"""Synchronization engine: poll, diff, journal, toast."""

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from .api_client import ApiError, CaseApiClient
from .config import NotificationConfig, PollConfig
from .detector import ChangeDetector
from .journal import NotificationJournal
from .models import (
    ADMISSIONS,
    APPOINTMENTS,
    DIAGNOSTICS,
    LIVE_FEED,
    PATIENTS,
    STATS,
    STATUSES,
    TODAY_APPOINTMENTS,
    WEEKLY,
    Appointment,
    CanonicalMessage,
    ChangeEvent,
    Interaction,
    Notification,
    Patient,
    Stats,
    Toast,
    WeeklyPoint,
)
from .normalizer import normalize
from .scheduler import PollScheduler
from .session import Session
from .sinks import NotificationSink
from .snapshot import SnapshotStore
from .toasts import ToastScheduler

logger = logging.getLogger(__name__)

# Statuses counted on the appointments summary row.
APPOINTMENT_SUMMARY_STATUSES = ("confirmed", "completed", "cancelled", "no-show")


@dataclass
class RefreshResult:
    """Outcome of one poll cycle."""
    updated: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    notifications: List[Notification] = field(default_factory=list)
    discarded: bool = False

    @property
    def ok(self) -> bool:
        return bool(self.updated) and not self.discarded

    @property
    def error(self) -> Optional[str]:
        """Summary of the failure when nothing could be applied."""
        if self.ok:
            return None
        if self.discarded:
            return "Session ended before the refresh completed"
        details = "; ".join(f"{name}: {reason}" for name, reason in self.errors.items())
        return f"All resource fetches failed ({details})" if details else "Nothing fetched"


class SyncEngine:
    """
    Mirrors the backend for one operator session.

    Owns the snapshot store, the seen-identity sets, the notification
    journal and the toast set. All of them are mutated only when a poll
    cycle completes, on the event loop thread, so no locking is used. Two
    overlapping refreshes (timer and manual) both apply their results and
    the later one wins; every write is a full per-resource replacement, so
    the store is never left half merged.

    Logging out tears the state down. Cycles still in flight when that
    happens are discarded when they complete.
    """

    def __init__(
        self,
        client: CaseApiClient,
        session: Session,
        poll: Optional[PollConfig] = None,
        notification: Optional[NotificationConfig] = None,
        sinks: Sequence[NotificationSink] = (),
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.session = session
        self.poll = poll or PollConfig()
        notification = notification or NotificationConfig()
        self.sinks = list(sinks)

        self.store = SnapshotStore(clock=clock)
        self.detector = ChangeDetector()
        self.journal = NotificationJournal(capacity=notification.journal_capacity, clock=clock)
        self.toasts = ToastScheduler(duration=notification.toast_duration_seconds, clock=clock)
        self.scheduler = PollScheduler(self.poll.interval_seconds, self.refresh)
        self.last_result: Optional[RefreshResult] = None
        self._wanted = False

        session.subscribe(self._on_session_change)

    # ---- Lifecycle ---------------------------------------------------------
    def start(self) -> None:
        """
        Begin polling. If no session exists yet, polling starts as soon as
        one is established.
        """
        self._wanted = True
        if self.session.authenticated:
            self.scheduler.start()
        else:
            logger.info("Not authenticated; polling will start after login")

    def stop(self) -> None:
        self._wanted = False
        self.scheduler.stop()

    async def close(self) -> None:
        self.stop()
        self.session.unsubscribe(self._on_session_change)
        await self.scheduler.drain()
        self.toasts.clear()
        await self.client.close()

    def _on_session_change(self, session: Session) -> None:
        if session.authenticated:
            self.reset()
            if self._wanted:
                self.scheduler.start()
        else:
            self.scheduler.stop()
            self.reset()

    def reset(self) -> None:
        """Drop all session state."""
        self.store.clear()
        self.detector.reset()
        self.journal.clear()
        self.toasts.clear()
        self.last_result = None

    # ---- Polling -----------------------------------------------------------
    def _fetches(self) -> Dict[str, Awaitable[Any]]:
        return {
            STATS: self.client.stats(),
            WEEKLY: self.client.weekly_analytics(),
            LIVE_FEED: self.client.live_feed(limit=self.poll.live_feed_limit),
            PATIENTS: self.client.patients(
                search=self.poll.patient_search, limit=self.poll.patient_limit
            ),
            # unfiltered so a status filter never hides bookings from the detector
            APPOINTMENTS: self.client.appointments(status="all"),
            DIAGNOSTICS: self.client.diagnostics(),
            ADMISSIONS: self.client.admissions(),
            TODAY_APPOINTMENTS: self.client.today_appointments(),
        }

    async def refresh(self) -> RefreshResult:
        """
        Fetch every resource concurrently and apply whatever succeeded.

        Never raises for fetch failures: they are logged and reported in
        the returned result, and the previous snapshot of a failed resource
        is kept.
        """
        if not self.session.authenticated:
            logger.debug("Refresh skipped: not authenticated")
            return RefreshResult(discarded=True)

        generation = self.session.generation
        fetches = self._fetches()
        names = list(fetches)
        outcomes = await asyncio.gather(*fetches.values(), return_exceptions=True)

        fetched: Dict[str, Any] = {}
        errors: Dict[str, str] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                errors[name] = str(outcome) or type(outcome).__name__
                logger.warning(f"Fetch of {name} failed: {errors[name]}")
            else:
                fetched[name] = outcome

        if self.session.generation != generation or not self.session.authenticated:
            logger.info("Session changed during refresh; discarding results")
            result = RefreshResult(errors=errors, discarded=True)
        else:
            result = self.apply(fetched, errors)
        return result

    def apply(self, fetched: Dict[str, Any], errors: Optional[Dict[str, str]] = None) -> RefreshResult:
        """
        Apply one cycle's fetch results.

        Args:
            fetched: Resource name -> records, for the fetches that succeeded.
            errors: Resource name -> error message, for those that failed.

        Returns:
            The cycle outcome, including the notifications it created.
        """
        result = RefreshResult(errors=dict(errors or {}))
        if not fetched:
            logger.error(f"Refresh failed, keeping previous snapshot: {result.error}")
            self.last_result = result
            return result

        self.store.replace_many(fetched)
        result.updated = list(fetched)

        for event in self.detector.process(fetched):
            result.notifications.append(self._publish(event))

        logger.info(
            f"Refresh applied: {len(result.updated)} resources updated, "
            f"{len(result.errors)} failed, {len(result.notifications)} new notifications"
        )
        self.last_result = result
        return result

    def _publish(self, event: ChangeEvent) -> Notification:
        notification = self.journal.append(event)
        self.toasts.show(notification)
        for sink in self.sinks:
            try:
                sink.publish(notification)
            except Exception as e:
                logger.error(f"Notification sink {type(sink).__name__} failed: {e}", exc_info=True)
        return notification

    # ---- Writes ------------------------------------------------------------
    async def update_status(self, resource: str, identity: str, status: str) -> bool:
        """
        Send a status change, then refresh everything on success.

        The local snapshot is not edited; the change shows up through the
        refresh.

        Returns:
            True if the backend accepted the change.

        Raises:
            ValueError: If the resource or status is not recognised.
        """
        try:
            await self.client.update_status(resource, identity, status)
        except ApiError as e:
            logger.error(f"Error updating {resource} {identity}: {e}")
            return False
        await self.refresh()
        return True

    async def patient_conversation(self, patient_id: int) -> List[Tuple[Interaction, CanonicalMessage]]:
        """Return a patient's messages oldest first, each with its canonical form."""
        try:
            timeline = await self.client.patient_timeline(patient_id)
        except ApiError as e:
            logger.error(f"Error fetching timeline for patient {patient_id}: {e}")
            return []
        return [(item, normalize(item.message)) for item in reversed(timeline)]

    # ---- Filters -----------------------------------------------------------
    def set_patient_search(self, term: str) -> None:
        self.poll.patient_search = term

    def set_appointment_filter(self, status: str) -> None:
        status = status.strip().lower()
        if status != "all" and status not in STATUSES:
            raise ValueError(f"Unknown appointment status filter: {status}")
        self.poll.appointment_status = status

    # ---- Views for the presentation layer ----------------------------------
    def notifications(self) -> List[Notification]:
        return self.journal.list()

    @property
    def unread_count(self) -> int:
        return self.journal.unread_count

    def mark_read(self, notification_id: str) -> None:
        self.journal.mark_read(notification_id)

    def mark_all_read(self) -> None:
        self.journal.mark_all_read()

    def active_toasts(self) -> List[Toast]:
        return self.toasts.active()

    def dismiss_toast(self, toast_id: str) -> bool:
        return self.toasts.dismiss(toast_id)

    @property
    def stats(self) -> Optional[Stats]:
        return self.store.get(STATS)

    @property
    def pending_admissions(self) -> int:
        stats = self.stats
        return stats.pending_admissions if stats else 0

    def appointments(self, status: Optional[str] = None) -> List[Appointment]:
        """Appointments matching ``status`` (default: the configured filter)."""
        status = status or self.poll.appointment_status
        records = self.store.records(APPOINTMENTS)
        if status == "all":
            return records
        return [record for record in records if record.status == status]

    def appointment_status_counts(self) -> Dict[str, int]:
        counts = Counter(record.status for record in self.store.records(APPOINTMENTS))
        return {status: counts.get(status, 0) for status in APPOINTMENT_SUMMARY_STATUSES}

    def feed(self) -> List[Tuple[Interaction, CanonicalMessage]]:
        """The live feed, newest first as served, with each message normalized."""
        return [(item, normalize(item.message)) for item in self.store.records(LIVE_FEED)]

    def today_appointments(self) -> List[Appointment]:
        return self.store.records(TODAY_APPOINTMENTS)

    def patients(self) -> List[Patient]:
        """Patients matching the current search term, as last fetched."""
        return self.store.records(PATIENTS)

    def weekly(self) -> List[WeeklyPoint]:
        return self.store.records(WEEKLY)

    @property
    def last_updated(self) -> Optional[float]:
        return self.store.last_updated
