"""Habit strength engine.

Strength follows a logistic curve over the number of successful days in a
trailing window::

    H(d) = 1 / (1 + e^(-k * (d - d0)))

with ``k = 0.19`` and ``d0 = 25``: 25 successful days is the tipping point
(strength 0.5) and a habit counts as formed from strength 0.8, which takes
33 successful days. The window covers the 66 calendar days ending today.
"""
import math

from dates import in_window

STEEPNESS = 0.19
INFLECTION_DAY = 25
TIPPING_POINT = 0.5
FORMED_THRESHOLD = 0.8
WINDOW_DAYS = 66

STRUGGLING = "struggling"
BUILDING = "building"
FORMED = "formed"


def compute_strength(successful_days):
    exponent = -STEEPNESS * (successful_days - INFLECTION_DAY)
    return 1 / (1 + math.exp(exponent))


def classify_status(strength):
    if strength >= FORMED_THRESHOLD:
        return FORMED
    if strength >= TIPPING_POINT:
        return BUILDING
    return STRUGGLING


def compute_progress(strength):
    return min(100.0, strength * 100)


def estimate_days_to_formation(successful_days, target=FORMED_THRESHOLD):
    """Smallest number of extra successful days that lifts strength to ``target``."""
    if compute_strength(successful_days) >= target:
        return 0
    # d = d0 - ln(1/target - 1) / k
    target_days = INFLECTION_DAY - math.log(1 / target - 1) / STEEPNESS
    needed = max(1, math.ceil(target_days - successful_days))
    # The closed form can land one off after float rounding
    while compute_strength(successful_days + needed) < target:
        needed += 1
    while needed > 1 and compute_strength(successful_days + needed - 1) >= target:
        needed -= 1
    return needed


def compute_success_rate(completed, missed):
    total = len(completed) + len(missed)
    if total == 0:
        return 0.0
    return len(completed) / total * 100


def successful_days_in_window(completed, today, window_days=WINDOW_DAYS):
    return sum(1 for day in completed if in_window(day, today, window_days))


def habit_progress(habit, today):
    successful_days = successful_days_in_window(habit.completed_dates, today)
    strength = compute_strength(successful_days)
    return {
        "successfulDays": successful_days,
        "currentValue": strength,
        "progress": compute_progress(strength),
        "status": classify_status(strength),
        "daysToHabit": estimate_days_to_formation(successful_days),
        "successRate": compute_success_rate(habit.completed_dates, habit.missed_dates),
    }


def generate_graph_data(successful_days, max_days=WINDOW_DAYS):
    habit_data = []
    threshold_data = []
    for day in range(max_days + 1):
        habit_data.append({"x": day, "y": compute_strength(day)})
        threshold_data.append({"x": day, "y": TIPPING_POINT})
    return {
        "habitData": habit_data,
        "thresholdData": threshold_data,
        "currentPoint": {"x": successful_days, "y": compute_strength(successful_days)},
    }
