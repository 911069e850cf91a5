from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.badge_service import check_badges, list_badges
from utils.datetime_utils import now_for_tz

router = APIRouter(prefix="/badges", tags=["badges"])


class BadgeCheckRequest(BaseModel):
    # Present when the check follows a completion, enabling the time-of-day badges.
    action_context: Optional[dict[str, Any]] = None


@router.get("")
def get_badges(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return list_badges(db, user.id)


@router.post("/check")
def run_badge_check(
    payload: BadgeCheckRequest | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    local_now = now_for_tz(user.timezone)
    completed_at = local_now if payload is not None and payload.action_context is not None else None
    new_badges = check_badges(db, user, local_now.date(), completed_at=completed_at)
    db.commit()
    return {"newBadges": new_badges}
