import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from config import settings
from db.database import get_db
from db.models import User
from services.stats_service import UpstreamReadError, UserNotFoundError, build_period_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("")
def get_stats(
    days: int = Query(
        default=settings.STATS_DEFAULT_WINDOW_DAYS,
        ge=settings.STATS_MIN_WINDOW_DAYS,
        le=settings.STATS_MAX_WINDOW_DAYS,
    ),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Daily completion history, averages and coaching insights for the trailing window."""
    try:
        return build_period_summary(db, user.id, days=days)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except UpstreamReadError as exc:
        logger.exception("Stats read failed for user %s", user.id)
        raise HTTPException(status_code=500, detail=f"Failed to fetch stats: {exc}")
