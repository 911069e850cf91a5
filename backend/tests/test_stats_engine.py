from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.stats_service import (  # noqa: E402
    ATTENTION_INSIGHT,
    BALANCED_INSIGHT,
    ELITE_INSIGHT,
    GROWTH_INSIGHT,
    MAX_TIPS,
    POWER_DAY_TIP,
    STEADY_STATE_TIP,
    STRUGGLE_DAY_TIP,
    WEEKEND_SLUMP_TIP,
    WEEKEND_WARRIOR_TIP,
    CompletionLog,
    DailyStat,
    TaskEntry,
    WindowActivity,
    build_daily_stats,
    completion_percentage,
    mean_rounded,
    ratio_percent,
    summarize_history,
    weekday_buckets,
)
from utils.datetime_utils import short_label, weekday_index  # noqa: E402

# A Tuesday; the 14-day window ending here starts on Wednesday 2024-02-21.
TODAY = date(2024, 3, 5)


def _history(percent_for_day, days: int = 14, end: date = TODAY) -> list[DailyStat]:
    out = []
    for offset in range(days - 1, -1, -1):
        d = end - timedelta(days=offset)
        out.append(DailyStat(day=d, label=short_label(d), percentage=percent_for_day(d)))
    return out


def _is_weekend(d: date) -> bool:
    return weekday_index(d) in (0, 6)


# --- Aggregator ---

def test_two_tasks_one_done_plus_logged_habit_scores_67_percent():
    activity = WindowActivity(
        tasks=[TaskEntry(day=TODAY, completed=True), TaskEntry(day=TODAY, completed=False)],
        habit_count=1,
        habit_logs=[CompletionLog(entity_id=1, day=TODAY)],
        routine_count=0,
    )
    history = build_daily_stats(activity, TODAY, 14)
    assert history[-1].day == TODAY
    assert history[-1].percentage == 67


def test_day_with_nothing_scheduled_scores_zero():
    history = build_daily_stats(WindowActivity(), TODAY, 14)
    assert [stat.percentage for stat in history] == [0] * 14


def test_window_is_contiguous_oldest_first_and_ends_today():
    for days in (7, 14, 30):
        history = build_daily_stats(WindowActivity(habit_count=2), TODAY, days)
        assert len(history) == days
        assert history[-1].day == TODAY
        assert history[0].day == TODAY - timedelta(days=days - 1)
        steps = {(b.day - a.day).days for a, b in zip(history, history[1:])}
        assert steps == {1}


def test_labels_use_short_month_and_zero_padded_day():
    history = build_daily_stats(WindowActivity(), TODAY, 7)
    assert history[-1].label == "Mar 05"
    assert history[-1].to_dict() == {"date": "2024-03-05", "label": "Mar 05", "percentage": 0}


def test_habits_and_routines_are_expected_every_day_of_window():
    activity = WindowActivity(
        habit_count=2,
        routine_count=2,
        habit_logs=[CompletionLog(1, TODAY), CompletionLog(2, TODAY)],
        routine_logs=[CompletionLog(7, TODAY - timedelta(days=1))],
    )
    history = build_daily_stats(activity, TODAY, 7)
    assert history[-1].percentage == 50
    assert history[-2].percentage == 25
    assert history[0].percentage == 0


def test_rows_outside_window_are_ignored():
    activity = WindowActivity(
        tasks=[TaskEntry(day=TODAY - timedelta(days=20), completed=True), TaskEntry(day=TODAY, completed=True)],
    )
    history = build_daily_stats(activity, TODAY, 14)
    assert history[-1].percentage == 100
    assert sum(stat.percentage for stat in history) == 100


def test_excess_logs_never_push_percentage_above_100():
    activity = WindowActivity(
        habit_count=1,
        habit_logs=[CompletionLog(1, TODAY), CompletionLog(2, TODAY), CompletionLog(3, TODAY)],
    )
    history = build_daily_stats(activity, TODAY, 7)
    assert history[-1].percentage == 100
    assert all(0 <= stat.percentage <= 100 for stat in history)


def test_counting_from_creation_day_only_when_enabled():
    activity = WindowActivity(
        habit_count=1,
        habit_created=[TODAY - timedelta(days=2)],
        habit_logs=[CompletionLog(1, TODAY)],
        tasks=[TaskEntry(day=TODAY - timedelta(days=4), completed=True)],
    )
    legacy = build_daily_stats(activity, TODAY, 7)
    corrected = build_daily_stats(activity, TODAY, 7, count_from_creation=True)

    # The done task predates the habit: legacy still expects the habit that day.
    assert [s.percentage for s in legacy] == [0, 0, 50, 0, 0, 0, 100]
    assert [s.percentage for s in corrected] == [0, 0, 100, 0, 0, 0, 100]
    # Before creation the habit no longer counts as expected.
    assert activity.expected_habits(TODAY - timedelta(days=3), count_from_creation=True) == 0
    assert activity.expected_habits(TODAY - timedelta(days=3)) == 1


def test_aggregation_is_idempotent():
    activity = WindowActivity(
        tasks=[TaskEntry(TODAY, True), TaskEntry(TODAY - timedelta(days=3), False)],
        habit_count=3,
        habit_logs=[CompletionLog(1, TODAY - timedelta(days=1))],
        routine_count=1,
    )
    assert build_daily_stats(activity, TODAY, 14) == build_daily_stats(activity, TODAY, 14)


def test_rounding_is_half_up_and_zero_safe():
    assert ratio_percent(1, 8) == 13  # 12.5
    assert ratio_percent(1, 3) == 33
    assert ratio_percent(2, 3) == 67
    assert ratio_percent(5, 0) == 0
    assert completion_percentage(4, 2) == 100
    assert mean_rounded([50, 51]) == 51  # 50.5
    assert mean_rounded([]) == 0


# --- Insight generator ---

def test_weekday_buckets_cover_each_day_exactly_once():
    for days in (7, 14, 30):
        history = _history(lambda d: 50, days=days)
        buckets = weekday_buckets(history)
        assert sum(total for total, _completed in buckets) // 100 == days


def test_weekend_slump_with_weekday_best_and_weekend_worst():
    history = _history(lambda d: 20 if _is_weekend(d) else 100)
    insights = summarize_history(history)

    assert insights.weekend_score == 20
    assert insights.weekday_score == 100
    assert insights.tips[0] == WEEKEND_SLUMP_TIP
    assert insights.best_day.name in {"Monday", "Tuesday", "Wednesday", "Thursday", "Friday"}
    assert insights.worst_day.name in {"Saturday", "Sunday"}


def test_weekend_warrior_when_weekends_are_stronger():
    history = _history(lambda d: 90 if _is_weekend(d) else 60)
    insights = summarize_history(history)
    assert insights.tips[0] == WEEKEND_WARRIOR_TIP


def test_elite_headline_wins_over_growth():
    history = _history(lambda d: 85 if d > TODAY - timedelta(days=7) else 20)
    insights = summarize_history(history)
    assert insights.this_week_avg == 85
    assert insights.prior_week_avg == 20
    assert insights.insight == ELITE_INSIGHT


def test_growth_and_attention_headlines():
    growth = summarize_history(_history(lambda d: 60 if d > TODAY - timedelta(days=7) else 40))
    attention = summarize_history(_history(lambda d: 50 if d > TODAY - timedelta(days=7) else 70))
    flat = summarize_history(_history(lambda d: 55))

    assert growth.insight == GROWTH_INSIGHT
    assert attention.insight == ATTENTION_INSIGHT
    assert flat.insight == BALANCED_INSIGHT


def test_single_struggle_day_tip_names_the_weekday():
    history = _history(lambda d: 45 if d.weekday() == 2 else 70)  # Wednesdays
    insights = summarize_history(history)

    assert insights.worst_day.name == "Wednesday"
    assert insights.worst_day.score == 45
    assert insights.tips == [STRUGGLE_DAY_TIP.format(name="Wednesday", score=45)]
    assert insights.insight == BALANCED_INSIGHT


def test_steady_state_fallback_is_the_only_tip():
    insights = summarize_history(_history(lambda d: 75))
    assert insights.tips == [STEADY_STATE_TIP]


def test_tips_are_capped_at_three_in_priority_order():
    this_week_start = TODAY - timedelta(days=6)

    def pct(d: date) -> int:
        if d.weekday() == 0:  # Monday
            return 100
        if d < this_week_start:
            return 0
        return 40 if _is_weekend(d) else 100

    insights = summarize_history(_history(pct))
    # All four rules apply; the trending-up rule is the one dropped.
    assert insights.this_week_avg > insights.period_average + 10
    assert len(insights.tips) == MAX_TIPS
    assert insights.tips[0] == WEEKEND_SLUMP_TIP
    assert insights.tips[1].startswith("🗓️ Struggle Day")
    assert insights.tips[2] == POWER_DAY_TIP.format(name="Monday", score=100)


def test_ties_resolve_to_first_weekday_in_sunday_order():
    insights = summarize_history(_history(lambda d: 75))
    assert insights.best_day.name == "Sunday"
    assert insights.worst_day.name == "Saturday"


def test_empty_and_short_histories_stay_well_formed():
    empty = summarize_history([])
    assert empty.today_progress == 0
    assert empty.this_week_avg == 0
    assert 1 <= len(empty.tips) <= MAX_TIPS

    week = summarize_history(_history(lambda d: 80, days=7))
    assert week.prior_week_avg == 0
    assert week.this_week_avg == 80
    assert 1 <= len(week.tips) <= MAX_TIPS
