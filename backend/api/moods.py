from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import MoodLog, User
from utils.datetime_utils import normalize_day_key, today_for_tz

router = APIRouter(prefix="/moods", tags=["moods"])

MOOD_HISTORY_LIMIT = 30


class MoodUpsert(BaseModel):
    mood_type: str = Field(min_length=1, max_length=32)
    message: Optional[str] = Field(default=None, max_length=1000)
    date: Optional[str] = None


def serialize_mood(row: MoodLog) -> dict:
    return {
        "id": row.id,
        "date": row.date,
        "mood_type": row.mood_type,
        "message": row.message,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


@router.get("")
def list_moods(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(MoodLog)
        .filter(MoodLog.user_id == user.id)
        .order_by(MoodLog.date.desc())
        .limit(MOOD_HISTORY_LIMIT)
        .all()
    )
    return [serialize_mood(row) for row in rows]


@router.post("")
def upsert_mood(payload: MoodUpsert, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """One mood per day: posting again for the same day overwrites it."""
    try:
        day = normalize_day_key(payload.date) if payload.date else today_for_tz(user.timezone).isoformat()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    row = db.query(MoodLog).filter(MoodLog.user_id == user.id, MoodLog.date == day).first()
    if row:
        row.mood_type = payload.mood_type.strip()
        row.message = payload.message
    else:
        row = MoodLog(user_id=user.id, date=day, mood_type=payload.mood_type.strip(), message=payload.message)
        db.add(row)
    db.commit()
    db.refresh(row)
    return serialize_mood(row)
