"""
Boundary validation of medication input.

Raw values typed by the user are checked here before anything reaches the
tracker. Problems are recorded on a stairval Notepad, the same way sheet rows
are audited elsewhere, so the caller can report every issue at once and refuse
to create a partial record.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from stairval.notepad import Notepad

from .medication import is_valid_reminder_time
from .schedule import FREQUENCY_OPTIONS, Frequency, Schedule, TimeOfDay, find_frequency, max_doses


@dataclass
class MedicationInput:
    """Validated form values, ready for MedicationTracker.add_medication."""

    name: str
    dosage: str
    schedule: Schedule
    reminder_time: Optional[str]


def validate_medication_input(
    name: Optional[str],
    dosage: Optional[str],
    frequency: str,
    times_of_day: Sequence[str],
    reminder_time: Optional[str],
    notepad: Notepad,
    keep_legacy_frequency: bool = False,
) -> Optional[MedicationInput]:
    """
    Check one medication form submission.

    With `keep_legacy_frequency`, a free-text frequency that is not in
    FREQUENCY_OPTIONS is kept as-is and limited like the first option.
    Used when editing an old record without touching its frequency.

    Returns the cleaned MedicationInput, or None if any error was added to
    `notepad`.
    """
    name = (name or "").strip()
    dosage = (dosage or "").strip()

    if not name:
        notepad.add_error("Medication name must not be empty")
    if not dosage:
        notepad.add_error("Dosage must not be empty")

    option = find_frequency(frequency)
    if option is None:
        if keep_legacy_frequency and isinstance(frequency, str) and frequency.strip():
            option = Frequency(frequency, max_doses(frequency))
        else:
            allowed = ", ".join(o.label for o in FREQUENCY_OPTIONS)
            notepad.add_error(f"Unknown frequency {frequency!r}; choose one of: {allowed}")

    parsed_times: list[TimeOfDay] = []
    for label in times_of_day:
        try:
            time_of_day = TimeOfDay.from_label(label)
        except ValueError as e:
            notepad.add_error(str(e))
            continue
        if time_of_day in parsed_times:
            notepad.add_error(f"Time of day {time_of_day.value!r} given more than once")
            continue
        parsed_times.append(time_of_day)

    if option is not None and len(parsed_times) > option.max_times:
        notepad.add_error(
            f"{option.label!r} allows at most {option.max_times} time(s) of day, "
            f"got {len(parsed_times)}"
        )
    elif option is not None and option.max_times > 0 and not parsed_times:
        notepad.add_warning(f"No time of day selected for {option.label!r}")

    if reminder_time is not None and not is_valid_reminder_time(reminder_time):
        notepad.add_error(f"Reminder time must be HH:MM (24-hour), got {reminder_time!r}")

    if notepad.has_errors():
        return None
    return MedicationInput(
        name=name,
        dosage=dosage,
        schedule=Schedule(frequency=option.label, times_of_day=parsed_times),
        reminder_time=reminder_time,
    )
