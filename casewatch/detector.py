"""Identity-based change detection across poll cycles."""

import logging
from typing import Any, Dict, List, Mapping, Set, Tuple

from .models import (
    ADMISSIONS,
    APPOINTMENTS,
    DIAGNOSTICS,
    WATCHED_RESOURCES,
    Admission,
    Appointment,
    ChangeEvent,
    Diagnostic,
)

logger = logging.getLogger(__name__)

SeenIdentities = Dict[str, Set[str]]


def _describe_appointment(record: Appointment) -> ChangeEvent:
    patient = record.patient_name or "Patient"
    doctor = record.doctor or "Doctor"
    when = " ".join(part for part in (record.date, record.time) if part) or "an unscheduled time"
    return ChangeEvent(
        resource=APPOINTMENTS,
        identity=record.identity,
        title="New Appointment",
        message=f"{patient} booked with {doctor} for {when}",
        patient_name=record.patient_name or None,
        source=record.department_name or None,
    )


def _describe_diagnostic(record: Diagnostic) -> ChangeEvent:
    patient = record.patient_name or "Patient"
    test = record.test_type or "a diagnostic test"
    return ChangeEvent(
        resource=DIAGNOSTICS,
        identity=record.identity,
        title="New Diagnostic Booking",
        message=f"{patient} booked {test}",
        patient_name=record.patient_name or None,
        source=record.test_type or None,
    )


def _describe_admission(record: Admission) -> ChangeEvent:
    patient = record.patient_name or "Patient"
    kind = record.admission_type or "general"
    return ChangeEvent(
        resource=ADMISSIONS,
        identity=record.identity,
        title="New Admission Request",
        message=f"{patient} requested {kind} admission",
        patient_name=record.patient_name or None,
        source=record.admission_type or None,
    )


_DESCRIBERS = {
    APPOINTMENTS: _describe_appointment,
    DIAGNOSTICS: _describe_diagnostic,
    ADMISSIONS: _describe_admission,
}


def describe(resource: str, record: Any) -> ChangeEvent:
    """Build the event descriptor for a newly seen record."""
    return _DESCRIBERS[resource](record)


def detect(
    previous_seen: Mapping[str, Set[str]],
    snapshot: Mapping[str, Any],
) -> Tuple[SeenIdentities, List[ChangeEvent]]:
    """
    Diff a snapshot against the identities seen so far.

    ``previous_seen`` is not modified. A resource missing from ``snapshot``
    (its fetch failed) keeps its previous set and produces no events.

    A resource with no entry in ``previous_seen`` has never been fetched
    successfully, so its identities are recorded as a baseline without
    emitting events. An empty ``previous_seen`` is therefore a cold start and
    yields no events at all.

    Args:
        previous_seen: Resource name -> identities observed in earlier polls.
        snapshot: Resource name -> records from the current poll.

    Returns:
        The updated seen sets and the new events, ordered appointments,
        diagnostics, admissions.
    """
    updated: SeenIdentities = {
        resource: set(identities) for resource, identities in previous_seen.items()
    }
    events: List[ChangeEvent] = []

    for resource in WATCHED_RESOURCES:
        if resource not in snapshot:
            continue

        baseline = resource not in previous_seen
        seen = updated.setdefault(resource, set())

        for record in snapshot[resource] or []:
            identity = getattr(record, "identity", None)
            if not identity or identity in seen:
                continue
            seen.add(identity)
            if not baseline:
                events.append(describe(resource, record))

        if baseline:
            logger.info(f"Baseline captured for {resource}: {len(seen)} identities")

    if events:
        logger.info(f"Detected {len(events)} new records")
    return updated, events


class ChangeDetector:
    """Owns the seen-identity sets for one engine."""

    def __init__(self) -> None:
        self._seen: SeenIdentities = {}

    @property
    def baseline_captured(self) -> bool:
        return bool(self._seen)

    def seen(self, resource: str) -> Set[str]:
        return set(self._seen.get(resource, set()))

    def process(self, snapshot: Mapping[str, Any]) -> List[ChangeEvent]:
        """Run ``detect`` against the retained sets and keep the result."""
        self._seen, events = detect(self._seen, snapshot)
        return events

    def reset(self) -> None:
        self._seen = {}
