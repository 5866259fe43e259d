from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from lexmora.stats import build_metrics, last_activity, streak_days

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def test_last_activity_prefers_later_mastery():
    captured = NOW - timedelta(days=30)
    assert last_activity(captured, None) == captured
    assert last_activity(captured, NOW) == NOW


def test_streak_walks_back_from_today_until_a_gap():
    today = NOW.date()
    days = {today, today - timedelta(days=1), today - timedelta(days=2), today - timedelta(days=4)}

    assert streak_days(days, today) == 3


def test_streak_is_zero_without_activity_today():
    today = NOW.date()
    assert streak_days({today - timedelta(days=1)}, today) == 0


def test_build_metrics_counts_today_and_streak():
    activity = [NOW, NOW - timedelta(hours=3), NOW - timedelta(days=1), NOW - timedelta(days=5)]

    metrics = build_metrics(4, 1, activity, now=NOW, tz=UTC)

    assert metrics.total_words == 4
    assert metrics.mastered_words == 1
    assert metrics.in_review_words == 3
    assert metrics.reviewed_today == 2
    assert metrics.streak_days == 2


def test_in_review_never_negative():
    metrics = build_metrics(1, 3, [], now=NOW, tz=UTC)

    assert metrics.in_review_words == 0
    assert metrics.streak_days == 0


def test_calendar_days_follow_the_configured_timezone():
    # 23:30 UTC on the 9th is already the 10th in Tokyo
    late_evening = datetime(2026, 3, 9, 23, 30, tzinfo=UTC)
    now = datetime(2026, 3, 10, 1, 0, tzinfo=UTC)

    in_utc = build_metrics(1, 0, [late_evening], now=now, tz=UTC)
    in_tokyo = build_metrics(1, 0, [late_evening], now=now, tz=ZoneInfo("Asia/Tokyo"))

    assert (in_utc.reviewed_today, in_utc.streak_days) == (0, 0)
    assert (in_tokyo.reviewed_today, in_tokyo.streak_days) == (1, 1)


def test_to_dict_uses_field_names():
    metrics = build_metrics(0, 0, [], now=NOW, tz=UTC)

    assert metrics.to_dict() == {
        "total_words": 0,
        "mastered_words": 0,
        "in_review_words": 0,
        "reviewed_today": 0,
        "streak_days": 0,
    }
