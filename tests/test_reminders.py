"""
Tests for permission handling and the once-a-minute reminder check.
"""

from datetime import datetime, timedelta

import pytest

from pillpal.reminders import (
    NOTIFICATION_TITLE,
    PERMISSION_DEFAULT,
    PERMISSION_DENIED,
    PERMISSION_GRANTED,
    Notification,
    Notifier,
    ReminderEvaluator,
    due_reminders,
    ensure_permission,
    format_clock,
)
from pillpal.schedule import Schedule


class RecordingNotifier(Notifier):
    def __init__(self, permission=PERMISSION_GRANTED, answer=PERMISSION_GRANTED):
        self._permission = permission
        self.answer = answer
        self.requests = 0
        self.sent: list[Notification] = []

    @property
    def permission(self):
        return self._permission

    def request_permission(self):
        self.requests += 1
        self._permission = self.answer
        return self.answer

    def notify(self, notification):
        self.sent.append(notification)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def evaluator(tracker, notifier):
    return ReminderEvaluator(lambda: (tracker.medications, tracker.history), notifier)


def test_format_clock_is_zero_padded(local_tz):
    assert format_clock(datetime(2026, 1, 2, 7, 5, tzinfo=local_tz)) == "07:05"


def test_permission_requested_once_and_persisted(store):
    notifier = RecordingNotifier(permission=PERMISSION_DEFAULT, answer=PERMISSION_DENIED)
    assert ensure_permission(store, notifier) == PERMISSION_DENIED
    assert store.load("notification_permission", None) == PERMISSION_DENIED

    # a fresh platform state must not trigger a second prompt
    again = RecordingNotifier(permission=PERMISSION_DEFAULT, answer=PERMISSION_GRANTED)
    ensure_permission(store, again)
    assert again.requests == 0
    assert notifier.requests == 1


def test_permission_not_requested_when_platform_decided(store):
    notifier = RecordingNotifier(permission=PERMISSION_GRANTED)
    assert ensure_permission(store, notifier) == PERMISSION_GRANTED
    assert notifier.requests == 0
    assert store.load("notification_permission", None) is None


def test_reminder_fires_without_recent_dose(tracker, ibuprofen, nine_am):
    due = due_reminders(tracker.medications, tracker.history, nine_am)
    assert len(due) == 1
    notification = due[0]
    assert notification.title == NOTIFICATION_TITLE
    assert notification.tag == ibuprofen.id
    assert "Ibuprofen" in notification.body and "200mg" in notification.body
    assert notification.icon


def test_reminder_suppressed_by_dose_yesterday_after_reminder(tracker, ibuprofen, nine_am):
    tracker.record_dose(ibuprofen.id, nine_am.replace(second=0) - timedelta(days=1) + timedelta(minutes=30))
    assert due_reminders(tracker.medications, tracker.history, nine_am) == []


def test_dose_exactly_at_window_start_does_not_suppress(tracker, ibuprofen, nine_am):
    window_start = nine_am.replace(second=0) - timedelta(days=1)
    tracker.record_dose(ibuprofen.id, window_start)
    assert len(due_reminders(tracker.medications, tracker.history, nine_am)) == 1


def test_dose_of_other_medication_does_not_suppress(tracker, ibuprofen, nine_am):
    other = tracker.add_medication("Aspirin", "81mg", Schedule("As needed"))
    tracker.record_dose(other.id, nine_am - timedelta(hours=1))
    assert [n.tag for n in due_reminders(tracker.medications, tracker.history, nine_am)] == [ibuprofen.id]


def test_reminder_only_at_exact_minute(tracker, ibuprofen, nine_am):
    assert due_reminders(tracker.medications, tracker.history, nine_am + timedelta(minutes=1)) == []
    assert due_reminders(tracker.medications, tracker.history, nine_am - timedelta(minutes=1)) == []


def test_medication_without_reminder_never_fires(tracker, nine_am):
    tracker.add_medication("Vitamin D", "1000 IU", Schedule("As needed"))
    assert due_reminders(tracker.medications, tracker.history, nine_am) == []


def test_tick_without_permission_does_nothing(tracker, ibuprofen, nine_am):
    notifier = RecordingNotifier(permission=PERMISSION_DENIED)
    evaluator = ReminderEvaluator(lambda: (tracker.medications, tracker.history), notifier)
    assert evaluator.tick(nine_am) == []
    assert notifier.sent == []


def test_tick_fires_once_per_minute(evaluator, notifier, ibuprofen, nine_am):
    assert len(evaluator.tick(nine_am)) == 1
    assert evaluator.tick(nine_am + timedelta(seconds=30)) == []
    assert [n.tag for n in notifier.sent] == [ibuprofen.id]


def test_tick_fires_again_next_day(evaluator, notifier, ibuprofen, nine_am):
    evaluator.tick(nine_am)
    evaluator.tick(nine_am + timedelta(days=1))
    assert len(notifier.sent) == 2


def test_tick_sees_latest_tracker_state(evaluator, notifier, tracker, ibuprofen, nine_am):
    tracker.record_dose(ibuprofen.id, nine_am - timedelta(hours=2))
    assert evaluator.tick(nine_am) == []


def test_start_and_stop_thread(evaluator):
    evaluator.interval = 0.01
    evaluator.start()
    assert evaluator.running
    evaluator.start()
    evaluator.stop()
    assert not evaluator.running


def test_naive_now_is_taken_as_local_time(tracker, ibuprofen):
    naive = datetime(2026, 10, 19, 9, 0, 5)
    assert [n.tag for n in due_reminders(tracker.medications, tracker.history, naive)] == [ibuprofen.id]

    tracker.record_dose(ibuprofen.id, naive.astimezone() - timedelta(hours=1))
    assert due_reminders(tracker.medications, tracker.history, naive) == []
