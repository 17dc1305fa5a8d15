import logging
from dataclasses import replace
from datetime import timedelta

from dates import calendar_day, days_between, to_date_key
from errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)


def anchor_date(habit):
    """Day after which untracked days start counting as missed."""
    created = calendar_day(habit.created_at)
    if habit.last_tracked_date is None:
        return created
    return max(created, calendar_day(habit.last_tracked_date))


def find_missed_dates(habit, today):
    anchor = anchor_date(habit)
    if anchor >= today or today in habit.completed_dates:
        return []
    return [
        day
        for day in days_between(anchor + timedelta(days=1), today)
        if day not in habit.completed_dates and day not in habit.missed_dates
    ]


def reconcile(habit, today):
    """Fold the days missed since the anchor date into ``missed_dates``.

    Returns ``habit`` itself when there is nothing to add, so repeated
    calls with the same ``today`` are no-ops.
    """
    missed = find_missed_dates(habit, today)
    if not missed:
        return habit
    missed_dates = habit.missed_dates | frozenset(missed)
    return replace(
        habit,
        missed_dates=missed_dates,
        x1=len(habit.completed_dates),
        x2=len(missed_dates),
    )


def reconcile_and_save(store, habit, today):
    """Reconcile and persist ``habit``. Returns None if the habit was deleted meanwhile."""
    updated = reconcile(habit, today)
    if updated is habit:
        return habit
    added = len(updated.missed_dates) - len(habit.missed_dates)
    try:
        saved = store.save_habit(updated, expected_version=habit.version)
    except NotFoundError:
        logger.info(f"Habit {habit.id} was deleted before its missed days could be saved")
        return None
    except StorageError as e:
        logger.error(f"Failed to save {added} missed days for habit {habit.id}, will retry on next read: {e!r}")
        return habit
    logger.info(f"Habit \"{habit.name}\": added {added} missed days up to {to_date_key(today)}")
    return saved


def load_reconciled(store, user_id, today):
    habits = (reconcile_and_save(store, habit, today) for habit in store.list_habits(user_id))
    return [habit for habit in habits if habit is not None]
