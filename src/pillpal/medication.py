"""
Medication and Dose domain models.

Medication is a tracked regimen and is edited in place by the tracker.
Dose is an immutable record of one medication being taken; it carries a
snapshot of the medication's name and dosage so the history still reads
correctly after the medication is renamed or deleted.

Both records convert to and from the camelCase dicts kept in the store.
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from .schedule import Schedule, upgrade_schedule

# Patterns
_REMINDER_TIME_PATTERN = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


def new_id() -> str:
    return str(uuid.uuid4())


def is_valid_reminder_time(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(_REMINDER_TIME_PATTERN.match(value))


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime.
    A trailing 'Z' is accepted; naive values are taken as local time.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


@dataclass
class Medication:
    """
    Represents one tracked drug regimen.

    Attributes:
        id: Stable identifier assigned at creation.
        name: Free-text medication name (non-empty).
        dosage: Free-text dosage, e.g. '200mg' (non-empty).
        schedule: Frequency plus day-parts.
        reminder_time: Daily 'HH:MM' reminder, or None for no reminder.
    """

    id: str
    name: str
    dosage: str
    schedule: Schedule
    reminder_time: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise ValueError(f"Invalid medication id: {self.id!r}")
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError(f"Invalid medication name: {self.name!r}")
        if not isinstance(self.dosage, str) or not self.dosage.strip():
            raise ValueError(f"Invalid dosage: {self.dosage!r}")
        if self.reminder_time is not None and not is_valid_reminder_time(self.reminder_time):
            raise ValueError(f"Invalid reminder time: {self.reminder_time!r}")

    @property
    def reminder_hour(self) -> Optional[int]:
        if self.reminder_time is None:
            return None
        return int(self.reminder_time.split(":")[0])

    def edited(self, **changes) -> "Medication":
        """Copy with the given fields replaced; the id is kept."""
        changes.pop("id", None)
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "dosage": self.dosage,
            "schedule": self.schedule.to_dict(),
            "reminderTime": self.reminder_time,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Medication":
        # legacy records keep a bare frequency string under "schedule"
        return cls(
            id=payload["id"],
            name=payload["name"],
            dosage=payload["dosage"],
            schedule=upgrade_schedule(payload["schedule"]),
            reminder_time=payload.get("reminderTime"),
        )


@dataclass(frozen=True)
class Dose:
    """
    A single recorded instance of a medication being taken.

    Attributes:
        id: Unique identifier of this dose.
        medication_id: Id of the medication at the time of taking. The
            medication may have been deleted since.
        medication_name: Name snapshot taken at the time of the dose.
        dosage: Dosage snapshot taken at the time of the dose.
        timestamp: Aware datetime of when the dose was recorded.
    """

    id: str
    medication_id: str
    medication_name: str
    dosage: str
    timestamp: datetime = field(default_factory=lambda: datetime.now().astimezone())

    def __post_init__(self):
        if not isinstance(self.timestamp, datetime):
            raise ValueError(f"timestamp must be a datetime, got {type(self.timestamp).__name__}")

    @classmethod
    def snapshot(cls, medication: Medication, taken_at: Optional[datetime] = None) -> "Dose":
        return cls(
            id=new_id(),
            medication_id=medication.id,
            medication_name=medication.name,
            dosage=medication.dosage,
            timestamp=taken_at if taken_at is not None else datetime.now().astimezone(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "medicationId": self.medication_id,
            "medicationName": self.medication_name,
            "dosage": self.dosage,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Dose":
        return cls(
            id=payload["id"],
            medication_id=payload["medicationId"],
            medication_name=payload["medicationName"],
            dosage=payload["dosage"],
            timestamp=parse_timestamp(payload["timestamp"]),
        )
