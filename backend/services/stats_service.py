"""Daily performance scoring.

Two stages feed the stats endpoint:

* the aggregator turns a user's tasks, habit logs and routine logs for a
  trailing window into one completion percentage per day, and
* the insight generator turns that series into averages, weekday rankings,
  up to three tips and one headline sentence.

Both stages are pure functions over plain records. Only
``load_window_activity`` and the two entry points (``aggregate_daily_stats``,
``build_period_summary``) touch the database.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings as app_settings
from db.models import Habit, HabitLog, Routine, RoutineLog, Task, User
from services.streak_service import longest_current_streak
from utils.datetime_utils import (
    WEEKDAY_NAMES,
    day_key,
    local_date,
    parse_day_key,
    short_label,
    today_for_tz,
    weekday_index,
    window_bounds,
    window_days,
)

logger = logging.getLogger(__name__)

WEEK_LENGTH = 7
MAX_TIPS = 3
WEEKEND_INDEXES = (0, 6)  # Sunday, Saturday
WEEKDAY_INDEXES = (1, 2, 3, 4, 5)


class UserNotFoundError(LookupError):
    """The resolved identity has no matching user row."""


class UpstreamReadError(RuntimeError):
    """The store failed to answer one of the reads a summary needs."""


# --- Records ---

@dataclass(frozen=True)
class TaskEntry:
    day: date
    completed: bool


@dataclass(frozen=True)
class CompletionLog:
    """A habit or routine marked done on a given day."""

    entity_id: int
    day: date


@dataclass
class WindowActivity:
    """Everything the aggregator needs for one user and one window.

    ``habit_created``/``routine_created`` hold one creation day per active
    item. They are only consulted when counting items from their creation
    day; otherwise every active item is expected on every day.
    """

    tasks: list[TaskEntry] = field(default_factory=list)
    habit_count: int = 0
    habit_logs: list[CompletionLog] = field(default_factory=list)
    routine_count: int = 0
    routine_logs: list[CompletionLog] = field(default_factory=list)
    habit_created: list[date] | None = None
    routine_created: list[date] | None = None

    def expected_habits(self, d: date, count_from_creation: bool = False) -> int:
        if count_from_creation and self.habit_created is not None:
            return sum(1 for created in self.habit_created if created <= d)
        return self.habit_count

    def expected_routines(self, d: date, count_from_creation: bool = False) -> int:
        if count_from_creation and self.routine_created is not None:
            return sum(1 for created in self.routine_created if created <= d)
        return self.routine_count

    @property
    def is_empty(self) -> bool:
        return not self.tasks and self.habit_count == 0 and self.routine_count == 0


@dataclass(frozen=True)
class DailyStat:
    day: date
    label: str
    percentage: int

    def to_dict(self) -> dict[str, Any]:
        return {"date": day_key(self.day), "label": self.label, "percentage": self.percentage}


@dataclass(frozen=True)
class WeekdayScore:
    name: str
    score: int


@dataclass(frozen=True)
class PeriodInsights:
    today_progress: int
    this_week_avg: int
    prior_week_avg: int
    period_average: int
    window_days: int
    best_day: WeekdayScore
    worst_day: WeekdayScore
    weekend_score: int
    weekday_score: int
    tips: list[str]
    insight: str

    @property
    def week_delta(self) -> int:
        return self.this_week_avg - self.prior_week_avg


# --- Arithmetic ---

def ratio_percent(completed: int, total: int) -> int:
    """round-half-up(100 * completed / total), 0 for an empty denominator."""
    if total <= 0:
        return 0
    completed = max(int(completed), 0)
    return (200 * completed + total) // (2 * total)


def completion_percentage(completed: int, total: int) -> int:
    return min(ratio_percent(completed, total), 100)


def mean_rounded(values: Iterable[int]) -> int:
    """round-half-up of the mean of non-negative integers, 0 for no values."""
    items = list(values)
    if not items:
        return 0
    return (2 * sum(items) + len(items)) // (2 * len(items))


# --- Aggregator ---

def build_daily_stats(
    activity: WindowActivity,
    today: date,
    days: int,
    *,
    count_from_creation: bool = False,
) -> list[DailyStat]:
    """One DailyStat per day of the window ending today, oldest first."""
    tasks_total: Counter[date] = Counter()
    tasks_completed: Counter[date] = Counter()
    for task in activity.tasks:
        tasks_total[task.day] += 1
        if task.completed:
            tasks_completed[task.day] += 1

    habits_done = Counter(log.day for log in activity.habit_logs)
    routines_done = Counter(log.day for log in activity.routine_logs)

    stats: list[DailyStat] = []
    for d in window_days(today, days):
        total = (
            tasks_total[d]
            + activity.expected_habits(d, count_from_creation)
            + activity.expected_routines(d, count_from_creation)
        )
        completed = tasks_completed[d] + habits_done[d] + routines_done[d]
        stats.append(DailyStat(day=d, label=short_label(d), percentage=completion_percentage(completed, total)))
    return stats


def _day_or_none(raw: str | None, source: str) -> date | None:
    try:
        return parse_day_key(raw or "")
    except ValueError:
        logger.warning("Skipping %s row with malformed day key %r", source, raw)
        return None


def _created_day(value: datetime | None, fallback: date, tz_name: str | None) -> date:
    return local_date(value, tz_name) if value else fallback


def load_window_activity(
    db: Session,
    user_id: int,
    start: date,
    end: date,
    tz_name: str | None = None,
) -> WindowActivity:
    """Read the user's tasks, habits, routines and logs for [start, end].

    Creation timestamps are stored in UTC; ``tz_name`` turns them into the
    user's calendar days so they line up with the window.
    """
    start_key, end_key = day_key(start), day_key(end)

    task_rows = (
        db.query(Task.date, Task.completed)
        .filter(Task.user_id == user_id, Task.date >= start_key, Task.date <= end_key)
        .all()
    )
    habit_rows = db.query(Habit.id, Habit.created_at).filter(Habit.user_id == user_id).all()
    habit_log_rows = (
        db.query(HabitLog.habit_id, HabitLog.date)
        .join(Habit, HabitLog.habit_id == Habit.id)
        .filter(Habit.user_id == user_id, HabitLog.date >= start_key, HabitLog.date <= end_key)
        .all()
    )
    routine_rows = db.query(Routine.id, Routine.created_at).filter(Routine.user_id == user_id).all()
    routine_log_rows = (
        db.query(RoutineLog.routine_id, RoutineLog.date)
        .join(Routine, RoutineLog.routine_id == Routine.id)
        .filter(Routine.user_id == user_id, RoutineLog.date >= start_key, RoutineLog.date <= end_key)
        .all()
    )

    tasks = []
    for raw_day, completed in task_rows:
        d = _day_or_none(raw_day, "task")
        if d is not None:
            tasks.append(TaskEntry(day=d, completed=bool(completed)))

    habit_logs = []
    for habit_id, raw_day in habit_log_rows:
        d = _day_or_none(raw_day, "habit log")
        if d is not None:
            habit_logs.append(CompletionLog(entity_id=int(habit_id), day=d))

    routine_logs = []
    for routine_id, raw_day in routine_log_rows:
        d = _day_or_none(raw_day, "routine log")
        if d is not None:
            routine_logs.append(CompletionLog(entity_id=int(routine_id), day=d))

    return WindowActivity(
        tasks=tasks,
        habit_count=len(habit_rows),
        habit_logs=habit_logs,
        routine_count=len(routine_rows),
        routine_logs=routine_logs,
        habit_created=[_created_day(created_at, start, tz_name) for _id, created_at in habit_rows],
        routine_created=[_created_day(created_at, start, tz_name) for _id, created_at in routine_rows],
    )


def _get_user(db: Session, user_id: int) -> User:
    try:
        user = db.get(User, user_id)
    except SQLAlchemyError as exc:
        raise UpstreamReadError("Failed to read user") from exc
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


def aggregate_daily_stats(
    db: Session,
    user_id: int,
    days: int,
    today: date | None = None,
) -> list[DailyStat]:
    """Aggregator entry point: the user's daily series for the trailing window."""
    user = _get_user(db, user_id)
    _activity, history = _read_window(db, user, today or today_for_tz(user.timezone), days)
    return history


def _read_window(db: Session, user: User, today: date, days: int) -> tuple[WindowActivity, list[DailyStat]]:
    start, end = window_bounds(today, days)
    try:
        activity = load_window_activity(db, user.id, start, end, tz_name=user.timezone)
    except SQLAlchemyError as exc:
        raise UpstreamReadError("Failed to read activity") from exc
    history = build_daily_stats(
        activity,
        today,
        days,
        count_from_creation=app_settings.STATS_COUNT_FROM_CREATION,
    )
    return activity, history


# --- Insight generator ---

WEEKEND_SLUMP_TIP = (
    "📉 Weekend Slump Detected: Your habits drop significantly on weekends. "
    "Try setting a specific 'Weekend Routine' that is lighter but keeps the streak alive."
)
WEEKEND_WARRIOR_TIP = (
    "🔥 Weekend Warrior: You do great on weekends! "
    "Try to bring some of that free-time energy into your Monday routine."
)
STRUGGLE_DAY_TIP = (
    "🗓️ Struggle Day: {name} seems to be your toughest day ({score}%). "
    "Plan your easiest tasks for {name}s to ensure a win."
)
POWER_DAY_TIP = "🚀 Power Day: You absolutely crush it on {name}s ({score}%). Schedule your hardest work then!"
TRENDING_UP_TIP = (
    "📈 Trending Up: Your recent week is much better than your {days}-day average. "
    "Whatever change you made is working!"
)
STEADY_STATE_TIP = (
    "🤖 Steady State: Your performance is very consistent. "
    "Challenge yourself by adding one small new habit."
)

ELITE_INSIGHT = "🌟 Elite Consistency. You are performing in the top tier of habit builders."
GROWTH_INSIGHT = "📈 Significant Growth. You've turned a corner this week!"
ATTENTION_INSIGHT = "📉 Needs Attention. Let's get you back on track before the streak cools off."
BALANCED_INSIGHT = "⚖️ Balanced workflow. You are maintaining a healthy routine."


@dataclass(frozen=True)
class TipRule:
    name: str
    applies: Callable[[PeriodInsights], bool]
    render: Callable[[PeriodInsights], str]


@dataclass(frozen=True)
class HeadlineRule:
    name: str
    applies: Callable[[PeriodInsights], bool]
    message: str


def _weekend_tip(p: PeriodInsights) -> str:
    return WEEKEND_SLUMP_TIP if p.weekend_score < p.weekday_score else WEEKEND_WARRIOR_TIP


TIP_RULES: tuple[TipRule, ...] = (
    TipRule(
        "weekend_gap",
        lambda p: abs(p.weekend_score - p.weekday_score) > 15,
        _weekend_tip,
    ),
    TipRule(
        "struggle_day",
        lambda p: p.worst_day.score < 60,
        lambda p: STRUGGLE_DAY_TIP.format(name=p.worst_day.name, score=p.worst_day.score),
    ),
    TipRule(
        "power_day",
        lambda p: p.best_day.score > 90,
        lambda p: POWER_DAY_TIP.format(name=p.best_day.name, score=p.best_day.score),
    ),
    TipRule(
        "trending_up",
        lambda p: p.this_week_avg > p.period_average + 10,
        lambda p: TRENDING_UP_TIP.format(days=p.window_days),
    ),
)

HEADLINE_RULES: tuple[HeadlineRule, ...] = (
    HeadlineRule("elite", lambda p: p.this_week_avg >= 80, ELITE_INSIGHT),
    HeadlineRule("growth", lambda p: p.week_delta > 10, GROWTH_INSIGHT),
    HeadlineRule("attention", lambda p: p.week_delta < -10, ATTENTION_INSIGHT),
)


def select_tips(p: PeriodInsights) -> list[str]:
    tips: list[str] = []
    for rule in TIP_RULES:
        if len(tips) >= MAX_TIPS:
            break
        if rule.applies(p):
            tips.append(rule.render(p))
    if not tips:
        tips.append(STEADY_STATE_TIP)
    return tips


def select_headline(p: PeriodInsights) -> str:
    for rule in HEADLINE_RULES:
        if rule.applies(p):
            return rule.message
    return BALANCED_INSIGHT


def weekday_buckets(history: list[DailyStat]) -> list[tuple[int, int]]:
    """(total, completed) per weekday, Sunday first. Each day adds 100 to its bucket total."""
    totals = [0] * 7
    completed = [0] * 7
    for stat in history:
        idx = weekday_index(stat.day)
        totals[idx] += 100
        completed[idx] += stat.percentage
    return list(zip(totals, completed))


def rank_weekdays(buckets: list[tuple[int, int]]) -> list[WeekdayScore]:
    """Weekdays by score, best first. Equal scores keep Sunday..Saturday order."""
    scored = [
        WeekdayScore(name=WEEKDAY_NAMES[idx], score=ratio_percent(completed, total))
        for idx, (total, completed) in enumerate(buckets)
        if total > 0
    ]
    if not scored:
        scored = [WeekdayScore(name=name, score=0) for name in WEEKDAY_NAMES]
    return sorted(scored, key=lambda item: item.score, reverse=True)


def _combined_score(buckets: list[tuple[int, int]], indexes: tuple[int, ...]) -> int:
    total = sum(buckets[idx][0] for idx in indexes)
    completed = sum(buckets[idx][1] for idx in indexes)
    return ratio_percent(completed, total)


def summarize_history(history: list[DailyStat]) -> PeriodInsights:
    """Derive averages, weekday rankings, tips and the headline from a daily series."""
    percentages = [stat.percentage for stat in history]
    this_week = percentages[-WEEK_LENGTH:]
    prior_week = percentages[:-WEEK_LENGTH][-WEEK_LENGTH:]

    buckets = weekday_buckets(history)
    ranked = rank_weekdays(buckets)

    draft = PeriodInsights(
        today_progress=percentages[-1] if percentages else 0,
        this_week_avg=mean_rounded(this_week),
        prior_week_avg=mean_rounded(prior_week),
        period_average=mean_rounded(percentages),
        window_days=len(history),
        best_day=ranked[0],
        worst_day=ranked[-1],
        weekend_score=_combined_score(buckets, WEEKEND_INDEXES),
        weekday_score=_combined_score(buckets, WEEKDAY_INDEXES),
        tips=[],
        insight="",
    )
    return replace(draft, tips=select_tips(draft), insight=select_headline(draft))


# --- Summary ---

def build_period_summary(
    db: Session,
    user_id: int,
    *,
    days: int | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Run both stages for one user and shape the stats response."""
    days = int(days or app_settings.STATS_DEFAULT_WINDOW_DAYS)
    user = _get_user(db, user_id)
    today = today or today_for_tz(user.timezone)
    activity, history = _read_window(db, user, today, days)
    try:
        streak = longest_current_streak(db, user.id, today)
    except SQLAlchemyError as exc:
        raise UpstreamReadError("Failed to read streaks") from exc

    insights = summarize_history(history)

    return {
        "todayProgress": insights.today_progress,
        "thisWeekProgress": insights.this_week_avg,
        "lastWeekProgress": insights.prior_week_avg,
        "periodAverage": insights.period_average,
        "monthlyProgress": insights.period_average,
        "windowDays": days,
        "totalXp": int(user.total_xp or 0),
        "currentXp": int(user.xp or 0),
        "level": int(user.level or 1),
        "streak": streak,
        "history": [stat.to_dict() for stat in history],
        "insight": insights.insight,
        "tips": insights.tips,
        "bestDay": insights.best_day.name,
        "worstDay": insights.worst_day.name,
        "coldStart": activity.is_empty,
    }
