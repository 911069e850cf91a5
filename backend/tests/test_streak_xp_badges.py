from __future__ import annotations

import sys
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base  # noqa: E402
from db.models import Habit, HabitLog, User, UserBadge  # noqa: E402
from services.badge_service import BADGES, check_badges, list_badges  # noqa: E402
from services.streak_service import current_streak, habit_streaks, longest_current_streak  # noqa: E402
from services.xp_service import award_xp, level_for_xp, reward_for, xp_into_level  # noqa: E402

TODAY = date(2024, 3, 5)


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user(db, username: str = "gamer") -> User:
    user = User(
        username=username,
        username_normalized=username.lower(),
        password_hash="hash",
        display_name="Gamer",
        timezone="UTC",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _log_days(db, habit: Habit, offsets) -> None:
    for offset in offsets:
        db.add(HabitLog(habit_id=habit.id, date=(TODAY - timedelta(days=offset)).isoformat()))
    db.commit()


def test_current_streak_counts_back_from_today():
    days = [TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=2), TODAY - timedelta(days=4)]
    assert current_streak(days, TODAY) == 3


def test_current_streak_allows_today_to_be_still_open():
    days = [TODAY - timedelta(days=1), TODAY - timedelta(days=2)]
    assert current_streak(days, TODAY) == 2
    assert current_streak([TODAY - timedelta(days=2)], TODAY) == 0
    assert current_streak([], TODAY) == 0


def test_longest_current_streak_takes_best_habit():
    db = _new_db()
    user = _new_user(db)
    reading = Habit(user_id=user.id, title="Read")
    running = Habit(user_id=user.id, title="Run")
    idle = Habit(user_id=user.id, title="Idle")
    db.add_all([reading, running, idle])
    db.commit()
    _log_days(db, reading, [0, 1])
    _log_days(db, running, [1, 2, 3, 4])

    streaks = habit_streaks(db, user.id, TODAY)
    assert streaks == {reading.id: 2, running.id: 4, idle.id: 0}
    assert longest_current_streak(db, user.id, TODAY) == 4


def test_longest_current_streak_without_habits_is_zero():
    db = _new_db()
    user = _new_user(db)
    assert longest_current_streak(db, user.id, TODAY) == 0


def test_levels_follow_hundred_xp_steps():
    assert level_for_xp(0) == 1
    assert level_for_xp(99) == 1
    assert level_for_xp(100) == 2
    assert level_for_xp(250) == 3
    assert xp_into_level(250) == 50


def test_award_xp_updates_totals_and_level():
    db = _new_db()
    user = _new_user(db)

    award_xp(db, user, 90, "test")
    assert (user.xp, user.total_xp, user.level) == (90, 90, 1)

    award_xp(db, user, reward_for("task_completed"), "task")
    assert (user.xp, user.total_xp, user.level) == (100, 100, 2)


def test_award_xp_rejects_non_positive_amounts():
    db = _new_db()
    user = _new_user(db)
    with pytest.raises(ValueError):
        award_xp(db, user, 0, "nothing")
    with pytest.raises(ValueError):
        award_xp(db, user, -5, "penalty")


def test_reward_table():
    assert reward_for("task_completed") == 10
    assert reward_for("habit_logged") == 20
    assert reward_for("routine_logged") == 5
    with pytest.raises(ValueError):
        reward_for("mood_logged")


def test_first_completion_and_streak_badges():
    db = _new_db()
    user = _new_user(db)
    habit = Habit(user_id=user.id, title="Journal")
    db.add(habit)
    db.commit()

    _log_days(db, habit, [0])
    assert check_badges(db, user, TODAY) == ["first_step"]
    db.commit()

    _log_days(db, habit, [1, 2])
    assert check_badges(db, user, TODAY) == ["streak_3"]
    db.commit()

    # Awarded badges are not handed out twice.
    assert check_badges(db, user, TODAY) == []
    assert db.query(UserBadge).filter(UserBadge.user_id == user.id).count() == 2


def test_time_of_day_badges_need_a_completion_time():
    db = _new_db()
    user = _new_user(db)

    assert check_badges(db, user, TODAY) == []
    assert check_badges(db, user, TODAY, completed_at=datetime(2024, 3, 5, 6, 30)) == ["early_bird"]
    assert check_badges(db, user, TODAY, completed_at=datetime(2024, 3, 5, 22, 0)) == ["night_owl"]
    assert check_badges(db, user, TODAY, completed_at=datetime(2024, 3, 5, 12, 0)) == []


def test_badge_listing_marks_earned_entries():
    db = _new_db()
    user = _new_user(db)
    db.add(UserBadge(user_id=user.id, badge_id="night_owl"))
    db.commit()

    listing = list_badges(db, user.id)
    assert [item["id"] for item in listing] == [badge.id for badge in BADGES]
    earned = {item["id"]: item for item in listing if item["earned"]}
    assert list(earned) == ["night_owl"]
    assert earned["night_owl"]["earnedAt"] is not None
