"""
Application state controller.

MedicationTracker owns the in-memory medication list and dose history and is
the only thing that mutates them. Every mutation notifies subscribed
listeners with the key that changed; `from_store` wires a listener that writes
the changed collection straight back to the store.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional

from .medication import Dose, Medication, new_id
from .schedule import Schedule, TimeOfDay
from .store import DOSE_HISTORY_KEY, MEDICATIONS_KEY, KeyValueStore

ChangeListener = Callable[[str], None]


class TimeFilter(Enum):
    ALL = "All"
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"

    @classmethod
    def from_label(cls, label: str) -> "TimeFilter":
        key = label.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown time filter: {label!r}")

    @property
    def time_of_day(self) -> Optional[TimeOfDay]:
        if self is TimeFilter.ALL:
            return None
        return TimeOfDay(self.value)


def decode_medications(payload: list) -> list[Medication]:
    return [Medication.from_dict(item) for item in payload]


def encode_medications(medications: Iterable[Medication]) -> list[dict]:
    return [m.to_dict() for m in medications]


def decode_history(payload: list) -> list[Dose]:
    return [Dose.from_dict(item) for item in payload]


def encode_history(history: Iterable[Dose]) -> list[dict]:
    return [d.to_dict() for d in history]


def matches_filter(medication: Medication, time_filter: TimeFilter) -> bool:
    """
    - ALL passes everything.
    - Otherwise the schedule's day-parts decide; with none set, the
      reminder hour is bucketed instead.
    - A medication with neither is excluded.
    """
    wanted = time_filter.time_of_day
    if wanted is None:
        return True
    if medication.schedule.times_of_day:
        return wanted in medication.schedule.times_of_day
    if medication.reminder_hour is None:
        return False
    return TimeOfDay.from_hour(medication.reminder_hour) is wanted


class MedicationTracker:
    def __init__(
        self,
        medications: Optional[list[Medication]] = None,
        history: Optional[list[Dose]] = None,
    ):
        self._medications: list[Medication] = list(medications or [])
        self._history: list[Dose] = list(history or [])
        self._listeners: list[ChangeListener] = []

    @classmethod
    def from_store(cls, store: KeyValueStore) -> "MedicationTracker":
        """
        Load both collections and keep the store in sync from then on.
        Legacy schedules are upgraded here in memory only; they reach disk
        with the next write of the medication list.
        """
        medications = store.load(MEDICATIONS_KEY, [], decode=decode_medications)
        history = store.load(DOSE_HISTORY_KEY, [], decode=decode_history)
        logging.debug(f"Loaded {len(medications)} medications and {len(history)} doses")
        tracker = cls(medications, history)

        def persist(key: str) -> None:
            if key == MEDICATIONS_KEY:
                store.save(MEDICATIONS_KEY, tracker.medications, encode=encode_medications)
            elif key == DOSE_HISTORY_KEY:
                store.save(DOSE_HISTORY_KEY, tracker.history, encode=encode_history)

        tracker.subscribe(persist)
        return tracker

    # -- read access ----------------------------------------------------------

    @property
    def medications(self) -> list[Medication]:
        return list(self._medications)

    @property
    def history(self) -> list[Dose]:
        # insertion order: most recent first
        return list(self._history)

    def get_medication(self, medication_id: str) -> Optional[Medication]:
        for medication in self._medications:
            if medication.id == medication_id:
                return medication
        return None

    def filter_medications(self, time_filter: TimeFilter = TimeFilter.ALL) -> list[Medication]:
        return [m for m in self._medications if matches_filter(m, time_filter)]

    def sorted_history(self, order: str = "desc") -> list[Dose]:
        if order not in ("asc", "desc"):
            raise ValueError(f"order must be 'asc' or 'desc', got {order!r}")
        return sorted(self._history, key=lambda d: d.timestamp, reverse=(order == "desc"))

    # -- change hook ----------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _changed(self, key: str) -> None:
        for listener in self._listeners:
            listener(key)

    # -- operations -----------------------------------------------------------

    @staticmethod
    def _check_schedule(schedule: Schedule) -> None:
        if schedule.exceeds_frequency():
            raise ValueError(
                f"{schedule.frequency!r} allows at most {schedule.max_doses} time(s) of day, "
                f"got {len(schedule.times_of_day)}"
            )

    def add_medication(
        self,
        name: str,
        dosage: str,
        schedule: Schedule,
        reminder_time: Optional[str] = None,
    ) -> Medication:
        self._check_schedule(schedule)
        medication = Medication(
            id=new_id(),
            name=name,
            dosage=dosage,
            schedule=schedule,
            reminder_time=reminder_time,
        )
        self._medications.append(medication)
        logging.info(f"Added medication {medication.name!r} ({medication.id})")
        self._changed(MEDICATIONS_KEY)
        return medication

    def record_dose(self, medication_id: str, taken_at: Optional[datetime] = None) -> Optional[Dose]:
        medication = self.get_medication(medication_id)
        if medication is None:
            logging.warning(f"Cannot record dose: no medication with id {medication_id!r}")
            return None
        dose = Dose.snapshot(medication, taken_at)
        self._history.insert(0, dose)
        logging.info(f"Recorded dose of {dose.medication_name!r} at {dose.timestamp.isoformat()}")
        self._changed(DOSE_HISTORY_KEY)
        return dose

    def update_medication(self, updated: Medication) -> bool:
        """Replace the medication with the same id; past doses keep their snapshots."""
        self._check_schedule(updated.schedule)
        for index, medication in enumerate(self._medications):
            if medication.id == updated.id:
                self._medications[index] = updated
                logging.info(f"Updated medication {updated.name!r} ({updated.id})")
                self._changed(MEDICATIONS_KEY)
                return True
        logging.warning(f"Cannot update: no medication with id {updated.id!r}")
        return False

    def delete_medication(self, medication_id: str) -> bool:
        """
        Remove the medication and every dose that references it.
        The caller is responsible for asking the user first.
        """
        if self.get_medication(medication_id) is None:
            return False
        self._medications = [m for m in self._medications if m.id != medication_id]
        before = len(self._history)
        self._history = [d for d in self._history if d.medication_id != medication_id]
        logging.info(
            f"Deleted medication {medication_id} and {before - len(self._history)} dose(s)"
        )
        self._changed(MEDICATIONS_KEY)
        self._changed(DOSE_HISTORY_KEY)
        return True
