"""SM-2 spaced repetition transition.

The scheduler is a pure function: it never touches storage. The store reads
the current record, passes it here together with the review quality, and
persists whatever comes back.
"""
from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timedelta
from enum import Enum

from .models.word import WordRecord

MIN_EASE_FACTOR = 1.3
MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3
MASTERED_REPETITIONS = 5
MASTERED_MIN_INTERVAL_DAYS = 21
MASTERED_MIN_QUALITY = 4


class ReviewResponse(str, Enum):
    """The four buttons shown by the review UI, mapped onto the 0-5 scale."""

    SLIPPED = "slipped"
    PATCHY = "patchy"
    ON_POINT = "on_point"
    SHARP = "sharp"

    @property
    def quality(self) -> int:
        return _RESPONSE_QUALITY[self]


_RESPONSE_QUALITY = {
    ReviewResponse.SLIPPED: 1,
    ReviewResponse.PATCHY: 2,
    ReviewResponse.ON_POINT: 4,
    ReviewResponse.SHARP: 5,
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_quality(quality: float) -> int:
    """Round to the nearest integer (halves up) and clamp into [0, 5].

    Callers are never trusted to pre-validate; NaN counts as a blackout.
    """

    if isinstance(quality, ReviewResponse):
        return quality.quality
    value = float(quality)
    if math.isnan(value):
        return MIN_QUALITY
    if math.isinf(value):
        return MAX_QUALITY if value > 0 else MIN_QUALITY
    return min(max(_round_half_up(value), MIN_QUALITY), MAX_QUALITY)


def calculate_ease_factor(current_ease: float, quality: int) -> float:
    penalty = MAX_QUALITY - quality
    delta = 0.1 - penalty * (0.08 + penalty * 0.02)
    return max(MIN_EASE_FACTOR, current_ease + delta)


def should_mark_mastered(repetitions: int, interval_days: int, quality: int) -> bool:
    return (
        repetitions >= MASTERED_REPETITIONS
        and interval_days >= MASTERED_MIN_INTERVAL_DAYS
        and quality >= MASTERED_MIN_QUALITY
    )


def apply_review(record: WordRecord, quality: float | ReviewResponse, now: datetime) -> WordRecord:
    """Return the record that results from reviewing ``record`` at ``now``.

    Args:
        record: Current scheduling state.
        quality: Recall quality; clamped with :func:`clamp_quality`.
            1 - slipped (failed to recall)
            2 - patchy (recalled with difficulty, still a lapse)
            4 - on point (recalled correctly)
            5 - sharp (recalled instantly)
        now: Review time; ``next_review_at`` and ``mastered_at`` derive from it.

    Returns:
        A new WordRecord; the input is left untouched.
    """
    q = clamp_quality(quality)
    previous_interval_days = record.interval_days
    ease_factor = calculate_ease_factor(record.ease_factor, q)

    repetitions = record.repetitions
    interval_days = record.interval_days
    lapses = record.lapses

    if q < PASSING_QUALITY:
        # lapse: back to the start of the ladder
        repetitions = 0
        interval_days = 1
        lapses += 1
    else:
        repetitions += 1
        if repetitions == 1:
            interval_days = 1
        elif repetitions == 2:
            interval_days = 6
        else:
            interval_days = max(1, _round_half_up(previous_interval_days * ease_factor))

    is_mastered = record.is_mastered
    mastered_at = record.mastered_at
    if not is_mastered and should_mark_mastered(repetitions, interval_days, q):
        is_mastered = True
        mastered_at = now

    return replace(
        record,
        meanings=list(record.meanings),
        ease_factor=ease_factor,
        interval_days=interval_days,
        repetitions=repetitions,
        lapses=lapses,
        next_review_at=now + timedelta(days=interval_days),
        is_mastered=is_mastered,
        mastered_at=mastered_at,
    )
