"""Data models for polled records, notifications and toasts."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Resource keys used by the snapshot store and the change detector.
APPOINTMENTS = "appointments"
DIAGNOSTICS = "diagnostics"
ADMISSIONS = "admissions"
LIVE_FEED = "live_feed"
PATIENTS = "patients"
STATS = "stats"
WEEKLY = "weekly"
TODAY_APPOINTMENTS = "today_appointments"

# Resource types whose identities are diffed, in emission order.
WATCHED_RESOURCES = (APPOINTMENTS, DIAGNOSTICS, ADMISSIONS)

# Notification type for each watched resource.
NOTIFICATION_TYPES = {
    APPOINTMENTS: "appointment",
    DIAGNOSTICS: "diagnostic",
    ADMISSIONS: "admission",
}

STATUSES = (
    "confirmed",
    "completed",
    "cancelled",
    "no-show",
    "pending",
    "admitted",
    "discharged",
)


def _str(data: Dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value)


def _int(data: Dict[str, Any], key: str, default: int = 0) -> int:
    try:
        return int(data.get(key) or default)
    except (TypeError, ValueError):
        return default


@dataclass
class Stats:
    """Dashboard counters returned by /api/stats."""
    total_patients: int = 0
    total_appointments: int = 0
    total_diagnostics: int = 0
    total_admissions: int = 0
    pending_admissions: int = 0
    today_appointments: int = 0
    today_diagnostics: int = 0
    recent_activity: int = 0
    new_patients_week: int = 0
    platforms: Dict[str, int] = field(default_factory=dict)
    departments: Dict[str, int] = field(default_factory=dict)
    test_types: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stats":
        return cls(
            total_patients=_int(data, "total_patients"),
            total_appointments=_int(data, "total_appointments"),
            total_diagnostics=_int(data, "total_diagnostics"),
            total_admissions=_int(data, "total_admissions"),
            pending_admissions=_int(data, "pending_admissions"),
            today_appointments=_int(data, "today_appointments"),
            today_diagnostics=_int(data, "today_diagnostics"),
            recent_activity=_int(data, "recent_activity"),
            new_patients_week=_int(data, "new_patients_week"),
            platforms=dict(data.get("platforms") or {}),
            departments=dict(data.get("departments") or {}),
            test_types=dict(data.get("test_types") or {}),
        )


@dataclass
class WeeklyPoint:
    """One day of the weekly activity trend."""
    day: str
    appointments: int = 0
    new_patients: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeeklyPoint":
        return cls(
            day=_str(data, "day"),
            appointments=_int(data, "appointments"),
            new_patients=_int(data, "new_patients"),
        )


@dataclass
class Patient:
    """A patient known to the backend."""
    id: int
    external_id: str
    platform: str = "whatsapp"
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    first_touch: int = 0
    last_touch: int = 0
    total_bookings: int = 0
    total_appointments: int = 0
    total_diagnostics: int = 0
    total_admissions: int = 0
    notes: Optional[str] = None

    @property
    def identity(self) -> str:
        return str(self.id)

    @property
    def display_name(self) -> str:
        return self.name or "Anonymous"

    @property
    def booking_count(self) -> int:
        return self.total_appointments + self.total_diagnostics + self.total_admissions

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Patient":
        return cls(
            id=_int(data, "id"),
            external_id=_str(data, "external_id"),
            platform=_str(data, "platform", "whatsapp") or "whatsapp",
            name=data.get("name"),
            phone=data.get("phone"),
            email=data.get("email"),
            first_touch=_int(data, "first_touch"),
            last_touch=_int(data, "last_touch"),
            total_bookings=_int(data, "total_bookings"),
            total_appointments=_int(data, "total_appointments"),
            total_diagnostics=_int(data, "total_diagnostics"),
            total_admissions=_int(data, "total_admissions"),
            notes=data.get("notes"),
        )


@dataclass
class Appointment:
    """A doctor appointment booking."""
    booking_id: str
    patient_name: str = ""
    user_id: str = ""
    phone: str = ""
    department: str = ""
    department_name: str = ""
    doctor: str = ""
    date: str = ""
    time: str = ""
    status: str = ""
    created_at: int = 0

    @property
    def identity(self) -> str:
        return self.booking_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Appointment":
        return cls(
            booking_id=_str(data, "booking_id"),
            patient_name=_str(data, "patient_name"),
            user_id=_str(data, "user_id"),
            phone=_str(data, "phone"),
            department=_str(data, "department"),
            department_name=_str(data, "department_name"),
            doctor=_str(data, "doctor"),
            date=_str(data, "date"),
            time=_str(data, "time"),
            status=_str(data, "status"),
            created_at=_int(data, "created_at"),
        )


@dataclass
class Diagnostic:
    """A diagnostic test booking."""
    booking_id: str
    patient_name: str = ""
    user_id: str = ""
    phone: str = ""
    test_type: str = ""
    date: str = ""
    time: str = ""
    status: str = ""
    created_at: int = 0

    @property
    def identity(self) -> str:
        return self.booking_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Diagnostic":
        return cls(
            booking_id=_str(data, "booking_id"),
            patient_name=_str(data, "patient_name"),
            user_id=_str(data, "user_id"),
            phone=_str(data, "phone"),
            test_type=_str(data, "test_type"),
            date=_str(data, "date"),
            time=_str(data, "time"),
            status=_str(data, "status"),
            created_at=_int(data, "created_at"),
        )


@dataclass
class Admission:
    """An admission request."""
    admission_id: str
    patient_name: str = ""
    user_id: str = ""
    phone: str = ""
    age: str = ""
    sex: str = ""
    admission_type: str = ""
    preferred_date: str = ""
    status: str = ""
    created_at: int = 0

    @property
    def identity(self) -> str:
        return self.admission_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Admission":
        return cls(
            admission_id=_str(data, "admission_id"),
            patient_name=_str(data, "patient_name"),
            user_id=_str(data, "user_id"),
            phone=_str(data, "phone"),
            age=_str(data, "age"),
            sex=_str(data, "sex"),
            admission_type=_str(data, "admission_type"),
            preferred_date=_str(data, "preferred_date"),
            status=_str(data, "status"),
            created_at=_int(data, "created_at"),
        )


@dataclass
class Interaction:
    """A single inbound or outbound chat message."""
    id: int
    patient_id: int = 0
    user_id: str = ""
    direction: str = "inbound"
    platform: str = "whatsapp"
    message: str = ""
    message_type: str = "text"
    timestamp: int = 0
    patient_name: Optional[str] = None
    external_id: Optional[str] = None

    @property
    def identity(self) -> str:
        return str(self.id)

    @property
    def inbound(self) -> bool:
        return self.direction == "inbound"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Interaction":
        return cls(
            id=_int(data, "id"),
            patient_id=_int(data, "patient_id"),
            user_id=_str(data, "user_id"),
            direction=_str(data, "direction", "inbound"),
            platform=_str(data, "platform", "whatsapp"),
            message=_str(data, "message"),
            message_type=_str(data, "message_type", "text"),
            timestamp=_int(data, "timestamp"),
            patient_name=data.get("patient_name"),
            external_id=data.get("external_id"),
        )


@dataclass
class CanonicalMessage:
    """Renderable form of a raw interaction message."""
    text: str
    options: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"text": self.text}
        if self.options is not None:
            result["options"] = list(self.options)
        return result


@dataclass
class ChangeEvent:
    """A newly observed identity, as reported by the change detector."""
    resource: str
    identity: str
    title: str
    message: str
    patient_name: Optional[str] = None
    source: Optional[str] = None

    @property
    def type(self) -> str:
        return NOTIFICATION_TYPES.get(self.resource, "interaction")


@dataclass
class Notification:
    """An entry in the notification journal."""
    id: str
    type: str          # appointment | diagnostic | admission | interaction
    title: str
    message: str
    timestamp: float   # seconds since epoch
    read: bool = False
    patient_name: Optional[str] = None
    source: Optional[str] = None
    entity_id: Optional[str] = None


@dataclass
class Toast:
    """A short-lived copy of a notification."""
    id: str
    type: str
    title: str
    message: str
    created_at: float
    patient_name: Optional[str] = None

    def expired(self, now: float, duration: float) -> bool:
        return now - self.created_at >= duration
