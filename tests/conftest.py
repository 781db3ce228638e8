import pytest
from datetime import datetime, timedelta, timezone

from pillpal.schedule import Schedule, TimeOfDay
from pillpal.store import MemoryStore
from pillpal.tracker import MedicationTracker


@pytest.fixture(scope="session")
def local_tz() -> timezone:
    """
    A fixed UTC+2 zone so reminder arithmetic does not depend on the host.
    """
    return timezone(timedelta(hours=2))


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def tracker(store: MemoryStore) -> MedicationTracker:
    return MedicationTracker.from_store(store)


@pytest.fixture
def twice_daily() -> Schedule:
    return Schedule(frequency="Twice daily", times_of_day=[TimeOfDay.MORNING, TimeOfDay.EVENING])


@pytest.fixture
def ibuprofen(tracker: MedicationTracker, twice_daily: Schedule):
    return tracker.add_medication("Ibuprofen", "200mg", twice_daily, reminder_time="09:00")


@pytest.fixture
def nine_am(local_tz: timezone) -> datetime:
    return datetime(2026, 10, 19, 9, 0, 5, tzinfo=local_tz)
