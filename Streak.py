from datetime import timedelta


def current_streak(completed, today):
    """Consecutive completed days ending today; 0 if today is not done yet."""
    streak = 0
    day = today
    while day in completed:
        streak += 1
        day -= timedelta(days=1)
    return streak


def longest_streak(completed):
    longest = 0
    run = 0
    previous = None
    for day in sorted(completed):
        if previous is not None and day == previous + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def overall_streak(habits, today, limit=30):
    """Days in a row, ending today, on which any of ``habits`` was completed."""
    streak = 0
    for offset in range(limit):
        day = today - timedelta(days=offset)
        if not any(day in habit.completed_dates for habit in habits):
            break
        streak += 1
    return streak
