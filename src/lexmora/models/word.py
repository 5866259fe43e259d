from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Mapping

DEFAULT_EASE_FACTOR = 2.5
FIRST_REVIEW_DELAY = timedelta(days=1)


def normalize_word(text: str | None) -> str:
    """Return the storage key for a captured word (trimmed, lowercased).

    大文字小文字・前後空白の違いは同一語として扱う。空文字は「無効な語」を表す。
    """

    return (text or "").strip().lower()


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    """Serialize a datetime as a fixed-width UTC ISO-8601 string.

    桁数を固定しているため、文字列の辞書順がそのまま時刻順になる。
    SQLite の `next_review_at <= ?` 比較はこの性質に依存している。
    """

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


@dataclass(frozen=True)
class WordMeaning:
    part_of_speech: str
    definition: str
    example: str | None = None

    def to_dict(self) -> dict[str, str]:
        payload = {"partOfSpeech": self.part_of_speech, "definition": self.definition}
        if self.example is not None:
            payload["example"] = self.example
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WordMeaning":
        # 保存された値はそのまま戻す。キー自体が無い場合だけ既定値を使う
        pos = data.get("partOfSpeech", data.get("part_of_speech", "unknown"))
        example = data.get("example")
        return cls(
            part_of_speech="unknown" if pos is None else str(pos),
            definition=str(data.get("definition") or ""),
            example=None if example is None else str(example),
        )


@dataclass
class WordRecord:
    """Scheduling state of one captured word.

    - word: 正規化済みの見出し（主キー）
    - ease_factor: SM-2 の易しさ係数（1.3 未満にはならない）
    - interval_days: 次回出題までの日数（未復習の間だけ 0）
    - repetitions: 直近の失敗以降に連続して正解した回数
    - lapses: 失敗（quality < 3）の累計
    - is_mastered / mastered_at: 一度立ったら戻らない習得フラグ
    """

    word: str
    captured_at: datetime
    next_review_at: datetime
    source_url: str = ""
    meanings: list[WordMeaning] = field(default_factory=list)
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: int = 0
    repetitions: int = 0
    lapses: int = 0
    is_mastered: bool = False
    mastered_at: datetime | None = None

    @classmethod
    def new(
        cls,
        word: str,
        source_url: str = "",
        meanings: list[WordMeaning] | None = None,
        *,
        now: datetime | None = None,
    ) -> "WordRecord":
        """Build a pristine record, first due one day after capture."""

        captured_at = now or utcnow()
        return cls(
            word=normalize_word(word),
            captured_at=captured_at,
            next_review_at=captured_at + FIRST_REVIEW_DELAY,
            source_url=source_url or "",
            meanings=list(meanings or []),
        )
