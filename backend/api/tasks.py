from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import Task, User
from services.xp_service import award_xp, reward_for
from utils.datetime_utils import normalize_day_key

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    date: str
    description: Optional[str] = Field(default=None, max_length=2000)


class TaskUpdate(BaseModel):
    completed: bool


def serialize_task(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "date": task.date,
        "completed": bool(task.completed),
        "created_at": task.created_at.isoformat() if task.created_at else None,
    }


def _owned_task(db: Session, user: User, task_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id, Task.user_id == user.id).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("")
def list_tasks(
    date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Task).filter(Task.user_id == user.id)
    if date:
        try:
            query = query.filter(Task.date == normalize_day_key(date))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
    return [serialize_task(task) for task in query.order_by(Task.created_at.asc(), Task.id.asc()).all()]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(payload: TaskCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        day = normalize_day_key(payload.date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    task = Task(
        user_id=user.id,
        title=payload.title.strip(),
        description=payload.description,
        date=day,
        completed=False,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return serialize_task(task)


@router.patch("/{task_id}")
def update_task(
    task_id: int,
    payload: TaskUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = _owned_task(db, user, task_id)
    xp_awarded = 0
    if payload.completed and not task.completed:
        xp_awarded = reward_for("task_completed")
        award_xp(db, user, xp_awarded, f"task {task.id}")
    task.completed = payload.completed
    db.commit()
    db.refresh(task)
    return {**serialize_task(task), "xpAwarded": xp_awarded}


@router.delete("/{task_id}")
def delete_task(task_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    task = _owned_task(db, user, task_id)
    db.delete(task)
    db.commit()
    return {"success": True, "id": task_id}
