from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.xp_service import XP_PER_LEVEL, xp_into_level
from utils.datetime_utils import is_valid_timezone

router = APIRouter(prefix="/user", tags=["user"])


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    avatar: Optional[str] = Field(default=None, max_length=500)
    timezone: Optional[str] = None


def serialize_profile(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "avatar": user.avatar,
        "timezone": user.timezone,
        "xp": int(user.xp or 0),
        "total_xp": int(user.total_xp or 0),
        "level": int(user.level or 1),
        "xp_into_level": xp_into_level(user.xp),
        "xp_per_level": XP_PER_LEVEL,
    }


@router.get("")
def get_profile(user: User = Depends(get_current_user)):
    return serialize_profile(user)


@router.patch("")
def update_profile(payload: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if payload.timezone is not None and not is_valid_timezone(payload.timezone):
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {payload.timezone}")

    if payload.display_name:
        user.display_name = payload.display_name.strip()
    if payload.avatar is not None:
        user.avatar = payload.avatar or None
    if payload.timezone:
        user.timezone = payload.timezone
    db.commit()
    db.refresh(user)
    return serialize_profile(user)
