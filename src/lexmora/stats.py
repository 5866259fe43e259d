from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable


@dataclass(frozen=True)
class ReviewMetrics:
    """Aggregate progress shown by the metrics UI.

    - total_words: 保存済みの全単語数
    - mastered_words: 習得済み（is_mastered）の単語数
    - in_review_words: total - mastered（負にはならない）
    - reviewed_today: 最終アクティビティが今日の単語数
    - streak_days: 今日から遡ってアクティビティが途切れない日数
    """

    total_words: int
    mastered_words: int
    in_review_words: int
    reviewed_today: int
    streak_days: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def last_activity(captured_at: datetime, mastered_at: datetime | None) -> datetime:
    """Latest activity timestamp of a record.

    Captures count as activity: a word saved today and never reviewed still
    extends the streak.
    """

    if mastered_at is not None and mastered_at > captured_at:
        return mastered_at
    return captured_at


def streak_days(active_days: set[date], today: date) -> int:
    streak = 0
    day = today
    while day in active_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def build_metrics(
    total_words: int,
    mastered_words: int,
    activity: Iterable[datetime],
    *,
    now: datetime,
    tz: tzinfo,
) -> ReviewMetrics:
    """Combine counts and per-record activity timestamps into ReviewMetrics.

    ``activity`` holds one last-activity timestamp per record. Calendar days
    are taken in ``tz`` so "today" matches the learner's wall clock.
    """

    today = now.astimezone(tz).date()
    active_days: set[date] = set()
    reviewed_today = 0
    for ts in activity:
        day = ts.astimezone(tz).date()
        active_days.add(day)
        if day == today:
            reviewed_today += 1

    return ReviewMetrics(
        total_words=total_words,
        mastered_words=mastered_words,
        in_review_words=max(0, total_words - mastered_words),
        reviewed_today=reviewed_today,
        streak_days=streak_days(active_days, today),
    )
