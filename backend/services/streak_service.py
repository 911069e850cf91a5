from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from sqlalchemy.orm import Session

from db.models import Habit, HabitLog
from utils.datetime_utils import day_key, parse_day_key

STREAK_LOOKBACK_DAYS = 366


def current_streak(logged_days: Iterable[date], today: date) -> int:
    """Consecutive logged days ending today.

    Today is still open, so a run that ends yesterday counts as current.
    """
    logged = set(logged_days)
    cursor = today if today in logged else today - timedelta(days=1)
    streak = 0
    while cursor in logged:
        streak += 1
        cursor = cursor - timedelta(days=1)
    return streak


def habit_streaks(db: Session, user_id: int, today: date) -> dict[int, int]:
    """Current streak per habit id for every habit the user owns."""
    habit_ids = [row.id for row in db.query(Habit.id).filter(Habit.user_id == user_id).all()]
    if not habit_ids:
        return {}

    rows = (
        db.query(HabitLog.habit_id, HabitLog.date)
        .filter(
            HabitLog.habit_id.in_(habit_ids),
            HabitLog.date >= day_key(today - timedelta(days=STREAK_LOOKBACK_DAYS)),
            HabitLog.date <= day_key(today),
        )
        .all()
    )
    by_habit: dict[int, set[date]] = {habit_id: set() for habit_id in habit_ids}
    for habit_id, raw_day in rows:
        try:
            by_habit[int(habit_id)].add(parse_day_key(raw_day))
        except ValueError:
            continue
    return {habit_id: current_streak(days, today) for habit_id, days in by_habit.items()}


def longest_current_streak(db: Session, user_id: int, today: date) -> int:
    return max(habit_streaks(db, user_id, today).values(), default=0)
