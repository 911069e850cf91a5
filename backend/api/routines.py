from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import Routine, RoutineLog, User
from services.xp_service import award_xp, reward_for
from utils.datetime_utils import normalize_day_key

router = APIRouter(prefix="/routines", tags=["routines"])


class RoutineCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    time: str = Field(default="Daily", max_length=64)
    description: Optional[str] = Field(default=None, max_length=2000)


class RoutineToggle(BaseModel):
    completed: bool
    date: Optional[str] = None


def serialize_routine(routine: Routine, logs: list[RoutineLog]) -> dict:
    return {
        "id": routine.id,
        "title": routine.title,
        "time": routine.time,
        "description": routine.description,
        "order": routine.order,
        "logs": sorted(log.date for log in logs),
        "created_at": routine.created_at.isoformat() if routine.created_at else None,
    }


def _owned_routine(db: Session, user: User, routine_id: int) -> Routine:
    routine = db.query(Routine).filter(Routine.id == routine_id, Routine.user_id == user.id).first()
    if not routine:
        raise HTTPException(status_code=404, detail="Routine not found")
    return routine


@router.get("")
def list_routines(
    date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List routines; with `date`, only that day's logs are included."""
    day = None
    if date:
        try:
            day = normalize_day_key(date)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    routines = (
        db.query(Routine)
        .filter(Routine.user_id == user.id)
        .order_by(Routine.order.asc(), Routine.id.asc())
        .all()
    )
    result = []
    for routine in routines:
        logs = [log for log in routine.logs if day is None or log.date == day]
        result.append(serialize_routine(routine, logs))
    return result


@router.post("", status_code=status.HTTP_201_CREATED)
def create_routine(payload: RoutineCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    routine = Routine(
        user_id=user.id,
        title=payload.title.strip(),
        time=payload.time or "Daily",
        description=payload.description,
        order=99,
    )
    db.add(routine)
    db.commit()
    db.refresh(routine)
    return serialize_routine(routine, [])


@router.patch("/{routine_id}")
def toggle_routine(
    routine_id: int,
    payload: RoutineToggle,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not payload.date:
        raise HTTPException(status_code=400, detail="Date is required for routine tracking")
    try:
        day = normalize_day_key(payload.date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    routine = _owned_routine(db, user, routine_id)
    existing = db.query(RoutineLog).filter(RoutineLog.routine_id == routine.id, RoutineLog.date == day).first()
    xp_awarded = 0
    if payload.completed:
        if not existing:
            db.add(RoutineLog(routine_id=routine.id, date=day))
            xp_awarded = reward_for("routine_logged")
            award_xp(db, user, xp_awarded, f"routine {routine.id} on {day}")
    elif existing:
        db.delete(existing)

    db.commit()
    return {"success": True, "id": routine.id, "date": day, "completed": payload.completed, "xpAwarded": xp_awarded}


@router.delete("/{routine_id}")
def delete_routine(routine_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    routine = _owned_routine(db, user, routine_id)
    db.delete(routine)
    db.commit()
    return {"success": True, "id": routine_id}
