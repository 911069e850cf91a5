import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import Habit, HabitLog, User
from services.badge_service import check_badges
from services.streak_service import habit_streaks
from services.xp_service import award_xp, reward_for
from utils.datetime_utils import normalize_day_key, now_for_tz

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/habits", tags=["habits"])


class HabitCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    emoji: Optional[str] = Field(default=None, max_length=16)
    color: Optional[str] = Field(default=None, max_length=64)
    description: Optional[str] = Field(default=None, max_length=2000)


class HabitLogToggle(BaseModel):
    habit_id: int
    date: str
    completed: bool


def serialize_habit(habit: Habit, streak: int = 0) -> dict:
    return {
        "id": habit.id,
        "title": habit.title,
        "emoji": habit.emoji,
        "color": habit.color,
        "description": habit.description,
        "streak": streak,
        "logs": sorted(log.date for log in habit.logs),
        "created_at": habit.created_at.isoformat() if habit.created_at else None,
    }


def _owned_habit(db: Session, user: User, habit_id: int) -> Habit:
    habit = db.query(Habit).filter(Habit.id == habit_id, Habit.user_id == user.id).first()
    if not habit:
        raise HTTPException(status_code=404, detail="Habit not found")
    return habit


@router.get("")
def list_habits(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    habits = db.query(Habit).filter(Habit.user_id == user.id).order_by(Habit.created_at.asc(), Habit.id.asc()).all()
    streaks = habit_streaks(db, user.id, now_for_tz(user.timezone).date())
    return [serialize_habit(habit, streaks.get(habit.id, 0)) for habit in habits]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_habit(payload: HabitCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    habit = Habit(
        user_id=user.id,
        title=payload.title.strip(),
        emoji=payload.emoji,
        color=payload.color,
        description=payload.description,
    )
    db.add(habit)
    db.commit()
    db.refresh(habit)
    return serialize_habit(habit)


@router.delete("/{habit_id}")
def delete_habit(habit_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    habit = _owned_habit(db, user, habit_id)
    db.delete(habit)
    db.commit()
    return {"success": True, "id": habit_id}


@router.post("/log")
def toggle_habit_log(payload: HabitLogToggle, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Mark a habit done or not done for one day. Logging is idempotent per day."""
    try:
        day = normalize_day_key(payload.date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    habit = _owned_habit(db, user, payload.habit_id)
    existing = db.query(HabitLog).filter(HabitLog.habit_id == habit.id, HabitLog.date == day).first()
    xp_awarded = 0
    new_badges: list[str] = []

    if payload.completed:
        if not existing:
            db.add(HabitLog(habit_id=habit.id, date=day))
            db.flush()
            xp_awarded = reward_for("habit_logged")
            award_xp(db, user, xp_awarded, f"habit {habit.id} on {day}")
            local_now = now_for_tz(user.timezone)
            new_badges = check_badges(db, user, local_now.date(), completed_at=local_now)
    elif existing:
        db.delete(existing)

    db.commit()
    return {
        "success": True,
        "habit_id": habit.id,
        "date": day,
        "completed": payload.completed,
        "xpAwarded": xp_awarded,
        "newBadges": new_badges,
    }
