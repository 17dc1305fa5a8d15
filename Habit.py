import logging
from dataclasses import replace

from flask import Blueprint, jsonify, request

from dates import current_time
from errors import ConcurrentUpdateError, NotFoundError, StorageError, ValidationError
from models import CATEGORIES
from Reconcile import load_reconciled, reconcile, reconcile_and_save
from Sessions import session_required
from storage import get_store
from Streak import current_streak, overall_streak
from Strength import generate_graph_data, habit_progress, successful_days_in_window

logger = logging.getLogger(__name__)

habits_bp = Blueprint("habits", __name__)


def validate_habit_payload(data, partial=False):
    """Return cleaned ``{name, category}``; raise ValidationError listing bad fields."""
    errors = {}
    cleaned = {}
    if not isinstance(data, dict):
        raise ValidationError({"body": "Expected a JSON object"})
    if "name" in data or not partial:
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            errors["name"] = "Habit name is required"
        elif len(name.strip()) > 100:
            errors["name"] = "Habit name must be at most 100 characters"
        else:
            cleaned["name"] = name.strip()
    if "category" in data or not partial:
        category = data.get("category")
        if category not in CATEGORIES:
            errors["category"] = f"Category must be one of: {', '.join(CATEGORIES)}"
        else:
            cleaned["category"] = category
    if errors:
        raise ValidationError(errors)
    return cleaned


def record_completion(habit, now):
    """Mark ``now``'s calendar day complete. Already-completed days are a no-op."""
    today = now.date()
    if today in habit.completed_dates:
        return habit
    completed = habit.completed_dates | {today}
    return replace(
        habit,
        completed_dates=completed,
        last_tracked_date=now,
        x1=len(completed),
        x2=len(habit.missed_dates),
    )


def present(habit, today):
    data = habit.to_dict()
    data["progress"] = habit_progress(habit, today)
    data["streak"] = current_streak(habit.completed_dates, today)
    return data


def _find_habit(store, habit_id, session):
    habit = store.get_habit(habit_id, session.id)
    if habit is None:
        raise NotFoundError(habit_id)
    return habit


def _load_reconciled_habit(store, habit_id, session, today):
    habit = reconcile_and_save(store, _find_habit(store, habit_id, session), today)
    if habit is None:
        raise NotFoundError(habit_id)
    return habit


def _invalid(e):
    return jsonify({"message": "Invalid habit data", "errors": e.errors}), 400


def _not_found(habit_id, session):
    logger.error(f"Habit {habit_id} not found for session {session.id}")
    return jsonify({"message": "Habit not found"}), 404


@habits_bp.route("/api/habits", methods=["GET"])
@session_required
def list_habits(session):
    today = current_time().date()
    try:
        habits = load_reconciled(get_store(), session.id, today)
    except StorageError:
        return jsonify({"message": "Failed to fetch habits"}), 503
    logger.debug(f"Fetched {len(habits)} habits for session {session.id}")
    return jsonify([present(h, today) for h in habits]), 200


@habits_bp.route("/api/habits", methods=["POST"])
@session_required
def create_habit(session):
    data = request.get_json(silent=True)
    logger.debug(f"Create habit payload: {data}")
    try:
        fields = validate_habit_payload(data)
    except ValidationError as e:
        return _invalid(e)
    now = current_time()
    try:
        habit = get_store().create_habit(session.id, fields["name"], fields["category"], now)
    except StorageError:
        return jsonify({"message": "Failed to create habit"}), 503
    logger.info(f"Habit created: {habit.name} for session {session.id}")
    return jsonify(present(habit, now.date())), 201


@habits_bp.route("/api/habits/streak", methods=["GET"])
@session_required
def get_overall_streak(session):
    today = current_time().date()
    try:
        habits = load_reconciled(get_store(), session.id, today)
    except StorageError:
        return jsonify({"message": "Failed to fetch habits"}), 503
    return jsonify({"streak": overall_streak(habits, today)}), 200


@habits_bp.route("/api/habits/<habit_id>", methods=["GET"])
@session_required
def get_habit(session, habit_id):
    today = current_time().date()
    store = get_store()
    try:
        habit = _load_reconciled_habit(store, habit_id, session, today)
    except NotFoundError:
        return _not_found(habit_id, session)
    except StorageError:
        return jsonify({"message": "Failed to fetch habit"}), 503
    return jsonify(present(habit, today)), 200


@habits_bp.route("/api/habits/<habit_id>", methods=["PATCH"])
@session_required
def update_habit(session, habit_id):
    data = request.get_json(silent=True)
    logger.debug(f"Update habit {habit_id} payload: {data}")
    try:
        fields = validate_habit_payload(data, partial=True)
    except ValidationError as e:
        return _invalid(e)
    today = current_time().date()
    store = get_store()
    try:
        habit = _find_habit(store, habit_id, session)
        updated = replace(reconcile(habit, today), **fields)
        saved = store.save_habit(updated, expected_version=habit.version)
    except NotFoundError:
        return _not_found(habit_id, session)
    except ConcurrentUpdateError:
        return jsonify({"message": "Habit was modified concurrently, retry"}), 409
    except StorageError:
        return jsonify({"message": "Failed to update habit"}), 503
    logger.info(f"Habit {habit_id} updated for session {session.id}")
    return jsonify(present(saved, today)), 200


@habits_bp.route("/api/habits/<habit_id>/complete", methods=["POST"])
@session_required
def complete_habit(session, habit_id):
    now = current_time()
    today = now.date()
    store = get_store()
    try:
        habit = _find_habit(store, habit_id, session)
        # Missed days and today's completion land in one conditional write
        updated = record_completion(reconcile(habit, today), now)
        if updated is habit:
            saved = habit
        else:
            saved = store.save_habit(updated, expected_version=habit.version)
    except NotFoundError:
        return _not_found(habit_id, session)
    except ConcurrentUpdateError:
        return jsonify({"message": "Habit was modified concurrently, retry"}), 409
    except StorageError:
        return jsonify({"message": "Failed to log completion"}), 503
    if saved is not habit:
        logger.info(f"Habit {habit_id} completed for {today.isoformat()} by session {session.id}")
    return jsonify(present(saved, today)), 200


@habits_bp.route("/api/habits/<habit_id>", methods=["DELETE"])
@session_required
def delete_habit(session, habit_id):
    try:
        logger.info(f"Deleting habit {habit_id} for session {session.id}")
        deleted = get_store().delete_habit(habit_id, session.id)
    except StorageError:
        return jsonify({"message": "Failed to delete habit"}), 503
    if not deleted:
        return _not_found(habit_id, session)
    logger.info(f"Habit {habit_id} deleted successfully by session {session.id}")
    return jsonify({"message": "Habit deleted"}), 200


@habits_bp.route("/api/habits/<habit_id>/graph", methods=["GET"])
@session_required
def get_graph(session, habit_id):
    today = current_time().date()
    store = get_store()
    try:
        habit = _load_reconciled_habit(store, habit_id, session, today)
    except NotFoundError:
        return _not_found(habit_id, session)
    except StorageError:
        return jsonify({"message": "Failed to fetch habit"}), 503
    successful_days = successful_days_in_window(habit.completed_dates, today)
    return jsonify(generate_graph_data(successful_days)), 200
