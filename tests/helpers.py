from __future__ import annotations

from datetime import UTC, datetime, timedelta

T0 = datetime(2026, 3, 10, 9, 30, tzinfo=UTC)


class FakeClock:
    """Deterministic clock injected into WordStore."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now
