from __future__ import annotations

from ..models.word import WordRecord
from ..scheduler import ReviewResponse
from ..store import WordStore


class ReviewSession:
    """One pass over the due queue, one word at a time.

    - the queue is built once by :meth:`load`; words that become due later
      wait for the next session
    - :meth:`respond` advances only after the response is persisted; a
      failure propagates and the same word stays active
    """

    def __init__(self, store: WordStore, limit: int | None = None) -> None:
        self.store = store
        self.limit = limit
        self.queue: list[WordRecord] = []
        self.current_index = 0
        self.is_meaning_revealed = False
        self.results: list[WordRecord] = []

    async def load(self) -> int:
        self.queue = await self.store.due_queue(self.limit)
        self.current_index = 0
        self.is_meaning_revealed = False
        self.results = []
        return len(self.queue)

    @property
    def active_word(self) -> WordRecord | None:
        if self.current_index < len(self.queue):
            return self.queue[self.current_index]
        return None

    @property
    def has_words(self) -> bool:
        return bool(self.queue)

    @property
    def has_next(self) -> bool:
        return self.current_index + 1 < len(self.queue)

    @property
    def is_finished(self) -> bool:
        return self.current_index >= len(self.queue)

    def reveal_meaning(self) -> None:
        self.is_meaning_revealed = True

    def go_to_next(self) -> None:
        next_index = min(self.current_index + 1, len(self.queue))
        if next_index != self.current_index:
            self.current_index = next_index
            self.is_meaning_revealed = False

    async def respond(self, response: ReviewResponse | float) -> WordRecord:
        active = self.active_word
        if active is None:
            raise RuntimeError("review session has no active word")
        updated = await self.store.apply_response(active.word, response)
        self.results.append(updated)
        self.go_to_next()
        return updated
