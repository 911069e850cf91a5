from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import User
from services.stats_service import (
    UpstreamReadError,
    build_daily_stats,
    load_window_activity,
    ratio_percent,
    summarize_history,
)
from utils.datetime_utils import window_bounds

CONTEXT_WINDOW_DAYS = 7
MAX_HISTORY_MESSAGES = 20
MAX_HISTORY_CHARS = 2000

COACH_SYSTEM_PROMPT = """You are FocusFlow AI, a productivity coach for a habit tracker app.
Your tone is encouraging, professional, and data-driven.
The user's name is {name}.
Current Stats:
- Level: {level} (XP: {xp}/{xp_goal})
- Total XP: {total_xp}
- Active Habits: {active_habits}
- Recent Task Completion Rate (Last {days} days): {task_rate}% ({tasks_done}/{tasks_total} tasks)
- Recent Habit Check-ins: {habit_checkins} in the last {days} days.
- This week's average completion: {week_avg}%
- Current read on the week: {insight}

Rules:
1. Always be supportive.
2. If the user asks about performance, use the stats above.
3. Keep responses concise and formatted with markdown.
4. If a user asks a question unrelated to productivity or the app, answer politely but try to bring it back to their goals."""


def gather_coach_stats(db: Session, user: User, today: date) -> dict:
    """Recent activity figures the coach prompt is built from."""
    start, end = window_bounds(today, CONTEXT_WINDOW_DAYS)
    try:
        activity = load_window_activity(db, user.id, start, end, tz_name=user.timezone)
    except SQLAlchemyError as exc:
        raise UpstreamReadError("Failed to read activity") from exc
    insights = summarize_history(build_daily_stats(activity, today, CONTEXT_WINDOW_DAYS))

    tasks_total = len(activity.tasks)
    tasks_done = sum(1 for task in activity.tasks if task.completed)
    return {
        "tasks_total": tasks_total,
        "tasks_done": tasks_done,
        "task_rate": ratio_percent(tasks_done, tasks_total),
        "habit_checkins": len(activity.habit_logs),
        "active_habits": activity.habit_count,
        "week_avg": insights.this_week_avg,
        "insight": insights.insight,
    }


def build_system_prompt(user: User, stats: dict) -> str:
    level = int(user.level or 1)
    return COACH_SYSTEM_PROMPT.format(
        name=user.display_name or "User",
        level=level,
        xp=int(user.xp or 0),
        xp_goal=level * 100,
        total_xp=int(user.total_xp or 0),
        days=CONTEXT_WINDOW_DAYS,
        **stats,
    )


def build_messages(history: list[dict], message: str) -> list[dict]:
    """Prior turns (most recent kept, clipped) followed by the new user message."""
    turns = []
    for item in history[-MAX_HISTORY_MESSAGES:]:
        role = "user" if item.get("role") == "user" else "assistant"
        content = str(item.get("content") or "").strip()
        if content:
            turns.append({"role": role, "content": content[:MAX_HISTORY_CHARS]})
    turns.append({"role": "user", "content": message.strip()})
    return turns
