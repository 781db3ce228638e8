"""
Reminder evaluation.

Two concerns live here:

1. Permission. The notification channel is asked for permission at most once
   per installation; the outcome is remembered in the store and the user is
   never prompted again, even after declining.
2. The recurring check. Once a minute every medication whose reminder time
   equals the current "HH:MM" is examined. A notification is sent unless a
   dose of that medication was recorded after the same minute yesterday.

The check only fires on an exact minute match. A tick missed while the
machine was asleep skips that day's reminder; nothing fires late.
"""

from __future__ import annotations

import abc
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Callable, Iterable, Optional

import click

from .medication import Dose, Medication
from .store import NOTIFICATION_PERMISSION_KEY, KeyValueStore

PERMISSION_DEFAULT = "default"
PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"

REMINDER_INTERVAL_SECS = 60.0
REMINDER_WINDOW = timedelta(hours=24)

NOTIFICATION_TITLE = "Time for your medication!"
NOTIFICATION_ICON = "assets/icon-192.svg"


@dataclass(frozen=True)
class Notification:
    """
    A platform notification.

    Attributes:
        title: Headline text.
        body: Names the medication and dosage.
        icon: Icon reference understood by the platform.
        tag: Medication id; the platform may collapse repeats with one tag.
    """

    title: str
    body: str
    icon: str
    tag: str

    @classmethod
    def for_medication(cls, medication: Medication) -> "Notification":
        return cls(
            title=NOTIFICATION_TITLE,
            body=f"It's time to take your {medication.name} ({medication.dosage}).",
            icon=NOTIFICATION_ICON,
            tag=medication.id,
        )


class Notifier(metaclass=abc.ABCMeta):
    """Platform notification channel."""

    @property
    @abc.abstractmethod
    def permission(self) -> str:
        # one of PERMISSION_DEFAULT / PERMISSION_GRANTED / PERMISSION_DENIED
        raise NotImplementedError

    @abc.abstractmethod
    def request_permission(self) -> str:
        raise NotImplementedError

    @abc.abstractmethod
    def notify(self, notification: Notification) -> None:
        raise NotImplementedError


class ConsoleNotifier(Notifier):
    """
    Terminal notification channel.
    Starts from the remembered permission outcome, if there is one.
    """

    def __init__(self, permission: Optional[str] = None):
        self._permission = permission or PERMISSION_DEFAULT

    @property
    def permission(self) -> str:
        return self._permission

    def request_permission(self) -> str:
        allowed = click.confirm("Allow PillPal to show medication reminders?", default=True)
        self._permission = PERMISSION_GRANTED if allowed else PERMISSION_DENIED
        return self._permission

    def notify(self, notification: Notification) -> None:
        stamp = datetime.now().strftime("%H:%M")
        click.echo(click.style(f"[{stamp}] {notification.title}", fg="cyan", bold=True))
        click.echo(f"        {notification.body}")


def ensure_permission(store: KeyValueStore, notifier: Notifier) -> str:
    """
    Ask for notification permission the first time only.
    The outcome is persisted whether it was granted or denied.
    """
    stored = store.load(NOTIFICATION_PERMISSION_KEY, None)
    if stored is None and notifier.permission == PERMISSION_DEFAULT:
        outcome = notifier.request_permission()
        store.save(NOTIFICATION_PERMISSION_KEY, outcome)
        logging.info(f"Notification permission {outcome}")
        return outcome
    return notifier.permission


def format_clock(now: datetime) -> str:
    return f"{now.hour:02d}:{now.minute:02d}"


def scheduled_instant(reminder_time: str, now: datetime) -> datetime:
    """Today's occurrence of `reminder_time`, in the same zone as `now`."""
    hour, minute = (int(part) for part in reminder_time.split(":"))
    return datetime.combine(now.date(), time(hour, minute), tzinfo=now.tzinfo)


def taken_since(medication_id: str, history: Iterable[Dose], cutoff: datetime) -> bool:
    return any(d.medication_id == medication_id and d.timestamp > cutoff for d in history)


def due_reminders(
    medications: Iterable[Medication],
    history: Iterable[Dose],
    now: datetime,
) -> list[Notification]:
    """
    Notifications that should fire at `now`.

    A medication is due when its reminder time equals now's "HH:MM" and no
    dose of it is newer than 24 hours before today's scheduled instant.
    """
    if now.tzinfo is None:
        # naive values are local time, like stored dose timestamps
        now = now.astimezone()
    history = list(history)
    current = format_clock(now)
    due: list[Notification] = []
    for medication in medications:
        if not medication.reminder_time or medication.reminder_time != current:
            continue
        cutoff = scheduled_instant(medication.reminder_time, now) - REMINDER_WINDOW
        if taken_since(medication.id, history, cutoff):
            logging.debug(f"Reminder for {medication.name!r} suppressed: dose taken since {cutoff}")
            continue
        due.append(Notification.for_medication(medication))
    return due


class ReminderEvaluator:
    """
    Owns the repeating reminder check.

    `source` returns the current (medications, history) each tick so the
    evaluator always sees the tracker's latest state. `start` launches a
    daemon thread ticking every `interval` seconds; `stop` cancels it.
    """

    def __init__(
        self,
        source: Callable[[], tuple[list[Medication], list[Dose]]],
        notifier: Notifier,
        interval: float = REMINDER_INTERVAL_SECS,
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone(),
    ):
        self._source = source
        self._notifier = notifier
        self.interval = interval
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._fired: set[tuple[str, str]] = set()

    def tick(self, now: Optional[datetime] = None) -> list[Notification]:
        """Run one check; returns the notifications delivered."""
        if self._notifier.permission != PERMISSION_GRANTED:
            return []
        now = now or self._clock()
        minute = now.strftime("%Y-%m-%dT%H:%M")
        # only the current minute can repeat
        self._fired = {key for key in self._fired if key[1] == minute}

        medications, history = self._source()
        delivered: list[Notification] = []
        for notification in due_reminders(medications, history, now):
            key = (notification.tag, minute)
            if key in self._fired:
                continue
            self._notifier.notify(notification)
            self._fired.add(key)
            delivered.append(notification)
        if delivered:
            logging.info(f"Sent {len(delivered)} reminder(s) at {minute}")
        return delivered

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="pillpal-reminders", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2.0)
        self._thread = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stopped; True if stop was requested."""
        return self._stop.wait(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.tick()
            except Exception:
                logging.exception("Reminder check failed")
