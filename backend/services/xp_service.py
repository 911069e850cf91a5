import logging

from sqlalchemy.orm import Session

from config import settings
from db.models import User

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 100


def level_for_xp(xp: int) -> int:
    return max(int(xp or 0), 0) // XP_PER_LEVEL + 1


def xp_into_level(xp: int) -> int:
    return max(int(xp or 0), 0) % XP_PER_LEVEL


def award_xp(db: Session, user: User, amount: int, reason: str) -> User:
    """Add XP to the user and recompute the level. Caller commits."""
    amount = int(amount)
    if amount <= 0:
        raise ValueError("XP award must be positive")
    previous_level = int(user.level or 1)
    user.xp = int(user.xp or 0) + amount
    user.total_xp = int(user.total_xp or 0) + amount
    user.level = level_for_xp(user.xp)
    db.flush()
    logger.info("Awarded %s XP to user %s for %s", amount, user.id, reason)
    if user.level > previous_level:
        logger.info("User %s reached level %s", user.id, user.level)
    return user


def reward_for(action: str) -> int:
    rewards = {
        "task_completed": settings.XP_TASK_COMPLETED,
        "habit_logged": settings.XP_HABIT_LOGGED,
        "routine_logged": settings.XP_ROUTINE_LOGGED,
    }
    if action not in rewards:
        raise ValueError(f"Unknown XP action: {action}")
    return int(rewards[action])
