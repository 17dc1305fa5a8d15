import logging
from datetime import timedelta

from flask import Blueprint, jsonify

from dates import current_time, to_date_key, window_start
from errors import StorageError
from Reconcile import load_reconciled
from Sessions import session_required
from storage import get_store
from Streak import current_streak, longest_streak, overall_streak
from Strength import FORMED, habit_progress

logger = logging.getLogger(__name__)

analysis_bp = Blueprint("analysis", __name__)

CALENDAR_DAYS = 30

COMPLETED = 1
UNTRACKED = 0
MISSED = -1


def day_states(habit, days):
    """One entry per day: 1 completed, -1 missed, 0 untracked."""
    states = []
    for day in days:
        if day in habit.completed_dates:
            states.append(COMPLETED)
        elif day in habit.missed_dates:
            states.append(MISSED)
        else:
            states.append(UNTRACKED)
    return states


@analysis_bp.route("/api/habits/analysis", methods=["GET"])
@session_required
def get_analysis(session):
    today = current_time().date()
    try:
        habits = load_reconciled(get_store(), session.id, today)
    except StorageError:
        return jsonify({"message": "Failed to fetch analysis"}), 503

    start = window_start(today, CALENDAR_DAYS)
    days = [start + timedelta(days=i) for i in range(CALENDAR_DAYS)]
    trend_data = {}
    habit_data = []
    for habit in habits:
        progress = habit_progress(habit, today)
        trend_data[habit.id] = day_states(habit, days)
        habit_data.append({
            "id": habit.id,
            "name": habit.name,
            "category": habit.category,
            "progress": progress,
            "streak": current_streak(habit.completed_dates, today),
            "longestStreak": longest_streak(habit.completed_dates),
        })

    strengths = [h["progress"]["currentValue"] for h in habit_data]
    logger.debug(f"Analysis fetched for session {session.id}: {len(habit_data)} habits")
    return jsonify({
        "habits": habit_data,
        "trends": {
            "labels": [to_date_key(day) for day in days],
            "data": trend_data,
        },
        "summary": {
            "totalHabits": len(habits),
            "formedHabits": sum(1 for h in habit_data if h["progress"]["status"] == FORMED),
            "averageStrength": sum(strengths) / len(strengths) if strengths else 0.0,
            "overallStreak": overall_streak(habits, today),
        },
    }), 200
