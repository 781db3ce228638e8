"""
Command-line interface for PillPal.

Every command opens the store in --data-dir, loads a MedicationTracker from
it and lets the tracker write changes back. Medications are referred to by
id, id prefix or (case-insensitive) name.
"""

import click
import logging
import pathlib
import sys
import typing

from stairval.notepad import create_notepad

from .info_lookup import DISCLAIMER, GeminiClient, InfoLookupService
from .medication import Dose, Medication
from .reminders import (
    REMINDER_INTERVAL_SECS,
    ConsoleNotifier,
    ReminderEvaluator,
    ensure_permission,
    PERMISSION_GRANTED,
)
from .schedule import FREQUENCY_OPTIONS, DEFAULT_FREQUENCY, DEFAULT_TIMES_OF_DAY, find_frequency
from .store import NOTIFICATION_PERMISSION_KEY, FileStore
from .tracker import MedicationTracker, TimeFilter
from .validation import validate_medication_input

DEFAULT_DATA_DIR = pathlib.Path.home() / ".pillpal"
FREQUENCY_LABELS = [o.label for o in FREQUENCY_OPTIONS]
TIME_FILTER_LABELS = [f.value for f in TimeFilter]


@click.group()
@click.option(
    "-d",
    "--data-dir",
    "data_dir",
    envvar="PILLPAL_DATA_DIR",
    default=str(DEFAULT_DATA_DIR),
    show_default=True,
    type=click.Path(file_okay=False),
    help="directory holding medications.json and doseHistory.json",
)
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
@click.pass_context
def main(ctx: click.Context, data_dir: str, verbose_logging: bool, log_file_path: typing.Optional[str]):
    """PillPal: your personal medicine tracker."""
    _configure_logging(verbose_logging, log_file_path)
    store = FileStore(data_dir)
    ctx.obj = {"store": store, "tracker": MedicationTracker.from_store(store)}


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
            force=True,
        )


def _report_issues(notepad):
    # errors block the command, warnings are shown but do not
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in input:", err=True)
        for err in notepad.errors():
            click.echo(f"- {err.message}", err=True)
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in input:")
        for w in notepad.warnings():
            click.echo(f"- {w.message}")


def _resolve_medication(tracker: MedicationTracker, ref: str) -> Medication:
    # exact id, then unique id prefix, then unique name
    medication = tracker.get_medication(ref)
    if medication is not None:
        return medication
    by_prefix = [m for m in tracker.medications if m.id.startswith(ref)]
    by_name = [m for m in tracker.medications if m.name.strip().lower() == ref.strip().lower()]
    for candidates in (by_prefix, by_name):
        if len(candidates) == 1:
            return candidates[0]
        if len(candidates) > 1:
            click.echo(f"Error: {ref!r} matches {len(candidates)} medications; use the id", err=True)
            sys.exit(1)
    click.echo(f"Error: no medication matching {ref!r}", err=True)
    sys.exit(1)


def _default_times(frequency: str) -> list[str]:
    option = find_frequency(frequency)
    if option is not None and option.max_times > 0:
        return [t.value for t in DEFAULT_TIMES_OF_DAY]
    return []


def format_medication(medication: Medication) -> str:
    line = f"{medication.id[:8]}  {medication.name} ({medication.dosage}) - {medication.schedule.describe()}"
    if medication.reminder_time:
        line += f"  [reminder {medication.reminder_time}]"
    return line


def format_dose(dose: Dose) -> str:
    local = dose.timestamp.astimezone()
    when = f"{local:%B} {local.day}, {local.year} at {local:%H:%M}"
    return f"{dose.medication_name} ({dose.dosage}) - {when}"


@main.command(name="add")
@click.option("-n", "--name", required=True, help="medication name, e.g. Ibuprofen")
@click.option("-s", "--dosage", required=True, help="dosage, e.g. 200mg")
@click.option(
    "-f",
    "--frequency",
    default=DEFAULT_FREQUENCY.label,
    show_default=True,
    help=f"one of: {', '.join(FREQUENCY_LABELS)}",
)
@click.option(
    "-t",
    "--time-of-day",
    "times_of_day",
    multiple=True,
    help="Morning, Afternoon or Evening (repeatable; defaults to Morning)",
)
@click.option("-r", "--reminder", "reminder_time", default=None, help="daily reminder time, HH:MM")
@click.pass_obj
def add(obj: dict, name: str, dosage: str, frequency: str, times_of_day: tuple[str, ...], reminder_time: typing.Optional[str]):
    """
    Register a new medication.
    """
    tracker: MedicationTracker = obj["tracker"]
    times = list(times_of_day) if times_of_day else _default_times(frequency)

    notepad = create_notepad("medication")
    cleaned = validate_medication_input(name, dosage, frequency, times, reminder_time, notepad)
    _report_issues(notepad)
    if cleaned is None:
        sys.exit(1)

    medication = tracker.add_medication(
        cleaned.name, cleaned.dosage, cleaned.schedule, cleaned.reminder_time
    )
    click.echo(f"Added {format_medication(medication)}")


@main.command(name="edit")
@click.argument("medication_ref")
@click.option("-n", "--name", default=None, help="new name")
@click.option("-s", "--dosage", default=None, help="new dosage")
@click.option("-f", "--frequency", default=None, help=f"one of: {', '.join(FREQUENCY_LABELS)}")
@click.option("-t", "--time-of-day", "times_of_day", multiple=True, help="replaces the day-parts (repeatable)")
@click.option("-r", "--reminder", "reminder_time", default=None, help="new reminder time, HH:MM")
@click.option("--no-reminder", is_flag=True, help="remove the reminder")
@click.pass_obj
def edit(
    obj: dict,
    medication_ref: str,
    name: typing.Optional[str],
    dosage: typing.Optional[str],
    frequency: typing.Optional[str],
    times_of_day: tuple[str, ...],
    reminder_time: typing.Optional[str],
    no_reminder: bool,
):
    """
    Edit an existing medication. Past doses keep the old name and dosage.
    """
    tracker: MedicationTracker = obj["tracker"]
    current = _resolve_medication(tracker, medication_ref)

    new_frequency = frequency if frequency is not None else current.schedule.frequency
    if times_of_day:
        times = list(times_of_day)
    elif frequency is not None:
        # a frequency change keeps the ticked day-parts where it can
        option = find_frequency(frequency)
        if option is not None and option.max_times == 0:
            times = []
        elif not current.schedule.times_of_day:
            times = _default_times(frequency)
        else:
            times = current.schedule.labels()
    else:
        times = current.schedule.labels()

    if no_reminder:
        new_reminder = None
    else:
        new_reminder = reminder_time if reminder_time is not None else current.reminder_time

    notepad = create_notepad("medication")
    cleaned = validate_medication_input(
        name if name is not None else current.name,
        dosage if dosage is not None else current.dosage,
        new_frequency,
        times,
        new_reminder,
        notepad,
        keep_legacy_frequency=frequency is None,
    )
    _report_issues(notepad)
    if cleaned is None:
        sys.exit(1)

    updated = current.edited(
        name=cleaned.name,
        dosage=cleaned.dosage,
        schedule=cleaned.schedule,
        reminder_time=cleaned.reminder_time,
    )
    tracker.update_medication(updated)
    click.echo(f"Updated {format_medication(updated)}")


@main.command(name="delete")
@click.argument("medication_ref")
@click.option("-y", "--yes", is_flag=True, help="do not ask for confirmation")
@click.pass_obj
def delete(obj: dict, medication_ref: str, yes: bool):
    """
    Delete a medication together with its dose history.
    """
    tracker: MedicationTracker = obj["tracker"]
    medication = _resolve_medication(tracker, medication_ref)
    if not yes and not click.confirm(
        f"Are you sure you want to delete {medication.name}? This action cannot be undone."
    ):
        click.echo("Aborted.")
        return
    tracker.delete_medication(medication.id)
    click.echo(f"Deleted {medication.name}")


@main.command(name="take")
@click.argument("medication_ref")
@click.pass_obj
def take(obj: dict, medication_ref: str):
    """
    Record that a dose was taken now.
    """
    tracker: MedicationTracker = obj["tracker"]
    medication = _resolve_medication(tracker, medication_ref)
    dose = tracker.record_dose(medication.id)
    click.echo(f"Took {format_dose(dose)}")


@main.command(name="list")
@click.option(
    "--filter",
    "time_filter",
    type=click.Choice(TIME_FILTER_LABELS, case_sensitive=False),
    default=TimeFilter.ALL.value,
    show_default=True,
    help="only show medications for this time of day",
)
@click.pass_obj
def list_medications(obj: dict, time_filter: str):
    """
    List medications, optionally for one time of day.
    """
    tracker: MedicationTracker = obj["tracker"]
    medications = tracker.filter_medications(TimeFilter.from_label(time_filter))
    if not medications:
        click.echo("No medications added yet." if not tracker.medications else "No medications for this time of day.")
        return
    for medication in medications:
        click.echo(format_medication(medication))


@main.command(name="history")
@click.option(
    "--order",
    type=click.Choice(["desc", "asc"]),
    default="desc",
    show_default=True,
    help="desc = newest first, asc = oldest first",
)
@click.pass_obj
def history(obj: dict, order: str):
    """
    Show the dose history log.
    """
    tracker: MedicationTracker = obj["tracker"]
    doses = tracker.sorted_history(order)
    if not doses:
        click.echo("No doses taken yet.")
        return
    for dose in doses:
        click.echo(format_dose(dose))


@main.command(name="info")
@click.argument("medication_refs", nargs=-1, required=True)
@click.pass_obj
def info(obj: dict, medication_refs: tuple[str, ...]):
    """
    Fetch a plain-language description of one or more medications.
    """
    tracker: MedicationTracker = obj["tracker"]
    medications = [_resolve_medication(tracker, ref) for ref in medication_refs]

    failed = 0
    with InfoLookupService(GeminiClient()) as service:
        futures = [service.submit(m) for m in medications]
        for future in futures:
            result = future.result()
            click.echo(click.style(result.medication.name, bold=True))
            if result.ok:
                click.echo(result.content)
            else:
                failed += 1
                click.echo(click.style(result.error, fg="red"), err=True)
            click.echo("")
    click.echo(click.style(DISCLAIMER, fg="yellow"))
    if failed:
        sys.exit(1)


@main.command(name="remind")
@click.option(
    "--interval",
    type=float,
    default=REMINDER_INTERVAL_SECS,
    show_default=True,
    help="seconds between reminder checks",
)
@click.pass_obj
def remind(obj: dict, interval: float):
    """
    Stay in the foreground and show reminders when they are due.
    """
    store = obj["store"]
    notifier = ConsoleNotifier(store.load(NOTIFICATION_PERMISSION_KEY, None))
    if ensure_permission(store, notifier) != PERMISSION_GRANTED:
        click.echo("Notifications are not allowed; no reminders will be shown.")
        return

    def current_state():
        # another process may have changed the store since the last tick
        tracker = MedicationTracker.from_store(store)
        return tracker.medications, tracker.history

    evaluator = ReminderEvaluator(current_state, notifier, interval=interval)
    evaluator.start()
    click.echo("Watching for reminders. Press Ctrl-C to stop.")
    try:
        evaluator.wait()
    except KeyboardInterrupt:
        pass
    finally:
        evaluator.stop()


if __name__ == "__main__":
    main()
