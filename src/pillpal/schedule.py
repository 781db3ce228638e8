"""
Schedule domain model.

Defines the day-parts a medication can be taken at, the table of allowed
dosing frequencies, and the Schedule record that pairs the two.

Older data stored a medication's schedule as a bare frequency string.
`upgrade_schedule` is the single place that shape is recognised and turned
into a Schedule.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class TimeOfDay(Enum):
    """
    Day-parts a dose can be scheduled for.
    Values are the labels written to disk.
    """
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"

    @classmethod
    def from_label(cls, label: str) -> "TimeOfDay":
        """
        Convert a human-readable label into the corresponding enum.
        Normalizes spacing/casing.
        """
        key = label.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown time of day label: {label!r}")

    @classmethod
    def from_hour(cls, hour: int) -> "TimeOfDay":
        """Bucket a 24-hour clock hour into a day-part."""
        if hour < 12:
            return cls.MORNING
        if hour < 17:
            return cls.AFTERNOON
        return cls.EVENING


@dataclass(frozen=True)
class Frequency:
    """
    One selectable dosing frequency.

    Attributes:
        label: Text stored in Schedule.frequency (e.g. 'Twice daily').
        max_times: Most day-parts that may be ticked for this frequency.
    """

    label: str
    max_times: int


FREQUENCY_OPTIONS: tuple[Frequency, ...] = (
    Frequency("As needed", 0),
    Frequency("Once daily", 1),
    Frequency("Twice daily", 2),
    Frequency("Three times daily", 3),
    Frequency("Four times daily", 4),
    Frequency("Every other day", 1),
    Frequency("Once a week", 1),
)

DEFAULT_FREQUENCY = FREQUENCY_OPTIONS[1]
DEFAULT_TIMES_OF_DAY = (TimeOfDay.MORNING,)


def find_frequency(label: str) -> Optional[Frequency]:
    for option in FREQUENCY_OPTIONS:
        if option.label == label:
            return option
    return None


def max_doses(label: str) -> int:
    """
    Maximum number of day-parts allowed for a frequency label.
    Unrecognised (legacy free-text) labels get the first option's limit.
    """
    option = find_frequency(label)
    if option is None:
        option = FREQUENCY_OPTIONS[0]
    return option.max_times


@dataclass
class Schedule:
    """
    A medication's dosing frequency plus the day-parts it is taken at.

    Attributes:
        frequency: Frequency label, normally one of FREQUENCY_OPTIONS.
        times_of_day: Ordered, duplicate-free list of TimeOfDay.
    """

    frequency: str
    times_of_day: list[TimeOfDay] = field(default_factory=list)

    def __post_init__(self):
        if not isinstance(self.frequency, str) or not self.frequency.strip():
            raise ValueError(f"Invalid frequency: {self.frequency!r}")
        self.times_of_day = [
            t if isinstance(t, TimeOfDay) else TimeOfDay.from_label(t)
            for t in self.times_of_day
        ]
        if len(set(self.times_of_day)) != len(self.times_of_day):
            raise ValueError(f"Duplicate times of day: {self.labels()}")

    @property
    def max_doses(self) -> int:
        return max_doses(self.frequency)

    def exceeds_frequency(self) -> bool:
        return len(self.times_of_day) > self.max_doses

    def labels(self) -> list[str]:
        return [t.value for t in self.times_of_day]

    def describe(self) -> str:
        """'Twice daily (Morning, Evening)' or just the frequency."""
        if self.times_of_day:
            return f"{self.frequency} ({', '.join(self.labels())})"
        return self.frequency

    def to_dict(self) -> dict[str, Any]:
        return {"frequency": self.frequency, "timesOfDay": self.labels()}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Schedule":
        return cls(
            frequency=payload["frequency"],
            times_of_day=list(payload.get("timesOfDay") or []),
        )


def upgrade_schedule(raw: Union[str, dict, Schedule]) -> Schedule:
    """
    Accept either stored schedule shape and return a Schedule.

    - str  : legacy shape, becomes Schedule(frequency=raw, times_of_day=[])
    - dict : current shape {"frequency": ..., "timesOfDay": [...]}
    - Schedule is returned unchanged, so upgrading twice equals upgrading once.
    """
    if isinstance(raw, Schedule):
        return raw
    if isinstance(raw, str):
        return Schedule(frequency=raw, times_of_day=[])
    if isinstance(raw, dict):
        return Schedule.from_dict(raw)
    raise ValueError(f"Unrecognised schedule shape: {raw!r}")
