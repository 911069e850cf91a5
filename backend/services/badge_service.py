from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from db.models import Habit, HabitLog, User, UserBadge
from services.streak_service import longest_current_streak

logger = logging.getLogger(__name__)

EARLY_BIRD_BEFORE_HOUR = 8
NIGHT_OWL_FROM_HOUR = 22


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    description: str
    icon: str
    category: str  # streak | volume | special
    color: str


BADGES: tuple[Badge, ...] = (
    Badge("streak_3", "Consistency Starter", "Maintain a 3-day streak", "🌱", "streak", "from-green-400 to-emerald-600"),
    Badge("streak_7", "Week Warrior", "Maintain a 7-day streak", "🔥", "streak", "from-orange-400 to-red-600"),
    Badge("streak_30", "Habit Master", "Maintain a 30-day streak", "👑", "streak", "from-purple-400 to-indigo-600"),
    Badge("early_bird", "Early Bird", "Complete a habit before 8 AM", "🌅", "special", "from-yellow-300 to-amber-500"),
    Badge("night_owl", "Night Owl", "Complete a habit after 10 PM", "🦉", "special", "from-indigo-400 to-slate-900"),
    Badge("first_step", "First Step", "Complete your first habit ever", "🦶", "volume", "from-blue-400 to-cyan-500"),
    Badge("habits_100", "Centurion", "Complete 100 total habits", "💯", "volume", "from-red-500 to-pink-600"),
)
BADGES_BY_ID = {badge.id: badge for badge in BADGES}

VOLUME_THRESHOLDS = (("first_step", 1), ("habits_100", 100))
STREAK_THRESHOLDS = (("streak_3", 3), ("streak_7", 7), ("streak_30", 30))


def earned_badges(db: Session, user_id: int) -> dict[str, datetime | None]:
    rows = db.query(UserBadge).filter(UserBadge.user_id == user_id).all()
    return {row.badge_id: row.earned_at for row in rows}


def list_badges(db: Session, user_id: int) -> list[dict[str, Any]]:
    earned = earned_badges(db, user_id)
    payload = []
    for badge in BADGES:
        earned_at = earned.get(badge.id)
        payload.append(
            {
                **asdict(badge),
                "earned": badge.id in earned,
                "earnedAt": earned_at.isoformat() if earned_at else None,
            }
        )
    return payload


def total_habit_completions(db: Session, user_id: int) -> int:
    return int(
        db.query(func.count(HabitLog.id))
        .join(Habit, HabitLog.habit_id == Habit.id)
        .filter(Habit.user_id == user_id)
        .scalar()
        or 0
    )


def check_badges(
    db: Session,
    user: User,
    today: date,
    completed_at: datetime | None = None,
) -> list[str]:
    """Award any badges the user now qualifies for and return the new ids.

    ``completed_at`` is the local time of the completion being rewarded; the
    time-of-day badges are only considered when it is given. Caller commits.
    """
    already = set(earned_badges(db, user.id))
    new_ids: list[str] = []

    def _award(badge_id: str) -> None:
        if badge_id in already or badge_id in new_ids:
            return
        db.add(UserBadge(user_id=user.id, badge_id=badge_id))
        new_ids.append(badge_id)

    completions = total_habit_completions(db, user.id)
    for badge_id, threshold in VOLUME_THRESHOLDS:
        if completions >= threshold:
            _award(badge_id)

    streak = longest_current_streak(db, user.id, today)
    for badge_id, threshold in STREAK_THRESHOLDS:
        if streak >= threshold:
            _award(badge_id)

    if completed_at is not None:
        if completed_at.hour < EARLY_BIRD_BEFORE_HOUR:
            _award("early_bird")
        if completed_at.hour >= NIGHT_OWL_FROM_HOUR:
            _award("night_owl")

    if new_ids:
        db.flush()
        logger.info("User %s earned badges: %s", user.id, ", ".join(new_ids))
    return new_ids
