from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from ..scheduler import ReviewResponse
from ..stats import ReviewMetrics
from .word import WordMeaning, WordRecord


class Meaning(BaseModel):
    """A single dictionary sense attached to a captured word."""

    part_of_speech: str = Field(default="unknown", max_length=64)
    definition: str = Field(min_length=1)
    example: str | None = None

    def to_domain(self) -> WordMeaning:
        return WordMeaning(
            part_of_speech=self.part_of_speech,
            definition=self.definition,
            example=self.example or None,
        )


class MeaningOut(BaseModel):
    """A stored sense as returned by the API.

    入力側の長さ制約は付けない。保存済みの語義は常にそのまま返せること。
    """

    part_of_speech: str
    definition: str
    example: str | None = None


class WordOut(BaseModel):
    """Full scheduling state of one word as returned by the API."""

    word: str
    captured_at: datetime
    source_url: str
    meanings: list[MeaningOut] = []
    ease_factor: float
    interval_days: int
    repetitions: int
    lapses: int
    next_review_at: datetime
    is_mastered: bool
    mastered_at: datetime | None = None

    @classmethod
    def from_record(cls, record: WordRecord) -> "WordOut":
        return cls(
            word=record.word,
            captured_at=record.captured_at,
            source_url=record.source_url,
            meanings=[
                MeaningOut(part_of_speech=m.part_of_speech, definition=m.definition, example=m.example)
                for m in record.meanings
            ],
            ease_factor=record.ease_factor,
            interval_days=record.interval_days,
            repetitions=record.repetitions,
            lapses=record.lapses,
            next_review_at=record.next_review_at,
            is_mastered=record.is_mastered,
            mastered_at=record.mastered_at,
        )


class CaptureRequest(BaseModel):
    """保存リクエスト。meanings 未指定なら辞書引き（設定時のみ）を試みる。"""

    word: str = Field(min_length=1, max_length=128)
    source_url: str = Field(default="", max_length=2048)
    meanings: list[Meaning] | None = None


class CaptureResponse(BaseModel):
    created: bool
    word: WordOut


class DeleteResponse(BaseModel):
    deleted: int


class ReviewDueResponse(BaseModel):
    """Response model for the due queue.

    出題時刻を過ぎた単語を、期限の早い順に返す。
    """

    items: list[WordOut]


class ReviewGradeRequest(BaseModel):
    """Request model for submitting a review result.

    - quality: 0..5 の生スコア（範囲外は丸めてクランプ）
    - response: UI のボタン名（slipped/patchy/on_point/sharp）
    どちらか一方のみを指定する。
    """

    word: str = Field(min_length=1, max_length=128)
    quality: float | None = None
    response: ReviewResponse | None = None

    @model_validator(mode="after")
    def _exactly_one_signal(self) -> "ReviewGradeRequest":
        if (self.quality is None) == (self.response is None):
            raise ValueError("exactly one of quality or response must be given")
        return self

    @property
    def signal(self) -> float | ReviewResponse:
        return self.response if self.response is not None else self.quality  # type: ignore[return-value]


class ReviewStatsResponse(BaseModel):
    """進捗の見える化 用の統計レスポンス。"""

    total_words: int
    mastered_words: int
    in_review_words: int
    reviewed_today: int
    streak_days: int

    @classmethod
    def from_metrics(cls, metrics: ReviewMetrics) -> "ReviewStatsResponse":
        return cls(**metrics.to_dict())
