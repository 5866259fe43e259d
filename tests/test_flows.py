import asyncio

import pytest

from lexmora.errors import StorageError
from lexmora.flows import CaptureFlow, ReviewSession
from lexmora.models.word import WordMeaning
from lexmora.scheduler import ReviewResponse
from lexmora.store import InMemoryWordBackend, WordStore
from tests.helpers import FakeClock


class _StaticLookup:
    def __init__(self, meanings):
        self.meanings = meanings
        self.calls: list[str] = []

    async def lookup(self, word):
        self.calls.append(word)
        return self.meanings


class _BrokenLookup:
    async def lookup(self, word):
        raise ConnectionError("dictionary offline")


class _FlakyBackend(InMemoryWordBackend):
    """Fails the next ``update`` call once."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_next_update = False

    def update(self, word, mutate):
        if self.fail_next_update:
            self.fail_next_update = False
            raise StorageError("disk full")
        return super().update(word, mutate)


def test_capture_flow_attaches_looked_up_meanings():
    lookup = _StaticLookup([WordMeaning("noun", "a happy accident", "pure serendipity")])

    async def scenario():
        async with WordStore(InMemoryWordBackend()) as store:
            flow = CaptureFlow(store, lookup)
            created = await flow.run(" Serendipity", "https://example.com")
            repeated = await flow.run("serendipity", "https://example.com")
            return created, repeated

    created, repeated = asyncio.run(scenario())

    assert created.meanings == [WordMeaning("noun", "a happy accident", "pure serendipity")]
    assert repeated is None
    assert lookup.calls == ["serendipity"]


def test_capture_flow_proceeds_when_lookup_fails():
    async def scenario():
        async with WordStore(InMemoryWordBackend()) as store:
            created = await CaptureFlow(store, _BrokenLookup()).run("Robust")
            return created, await store.get("robust")

    created, stored = asyncio.run(scenario())

    assert created is not None
    assert stored.meanings == []


def test_capture_flow_skips_lookup_when_meanings_given():
    lookup = _StaticLookup([WordMeaning("verb", "unused")])

    async def scenario():
        async with WordStore(InMemoryWordBackend()) as store:
            return await CaptureFlow(store, lookup).run("yield", meanings=[WordMeaning("verb", "produce")])

    created = asyncio.run(scenario())

    assert created.meanings == [WordMeaning("verb", "produce")]
    assert lookup.calls == []


def test_capture_flow_ignores_blank_words():
    async def scenario():
        async with WordStore(InMemoryWordBackend()) as store:
            return await CaptureFlow(store).run("  ")

    assert asyncio.run(scenario()) is None


def test_review_session_walks_the_queue_once():
    clock = FakeClock()

    async def scenario():
        async with WordStore(InMemoryWordBackend(), clock=clock) as store:
            for word in ["alpha", "bravo"]:
                await store.capture(word)
            clock.advance(days=1)
            session = ReviewSession(store)
            loaded = await session.load()
            states = [(session.active_word.word, session.has_next, session.is_meaning_revealed)]
            session.reveal_meaning()
            revealed = session.is_meaning_revealed
            await session.respond(ReviewResponse.SHARP)
            states.append((session.active_word.word, session.has_next, session.is_meaning_revealed))
            await session.respond(ReviewResponse.SLIPPED)
            return loaded, states, revealed, session

    loaded, states, revealed, session = asyncio.run(scenario())

    assert loaded == 2
    assert states == [("alpha", True, False), ("bravo", False, False)]
    assert revealed is True
    assert session.is_finished
    assert session.active_word is None
    assert [(r.word, r.repetitions, r.lapses) for r in session.results] == [("alpha", 1, 0), ("bravo", 0, 1)]


def test_review_session_does_not_skip_a_word_when_persist_fails():
    clock = FakeClock()
    backend = _FlakyBackend()

    async def scenario():
        async with WordStore(backend, clock=clock) as store:
            await store.capture("converge")
            clock.advance(days=1)
            session = ReviewSession(store)
            await session.load()
            backend.fail_next_update = True
            with pytest.raises(StorageError):
                await session.respond(4)
            stuck_on = session.active_word.word
            retried = await session.respond(4)
            return stuck_on, retried, session

    stuck_on, retried, session = asyncio.run(scenario())

    assert stuck_on == "converge"
    assert retried.repetitions == 1
    assert session.is_finished


def test_review_session_without_due_words():
    async def scenario():
        async with WordStore(InMemoryWordBackend()) as store:
            await store.capture("later")
            session = ReviewSession(store)
            count = await session.load()
            return count, session

    count, session = asyncio.run(scenario())

    assert count == 0
    assert not session.has_words
    assert session.is_finished
    session.go_to_next()
    assert session.current_index == 0
    with pytest.raises(RuntimeError):
        asyncio.run(session.respond(5))


def test_capture_flow_drops_looked_up_meanings_without_definition():
    lookup = _StaticLookup([WordMeaning("noun", "  "), WordMeaning("verb", "to produce")])

    async def scenario():
        async with WordStore(InMemoryWordBackend()) as store:
            return await CaptureFlow(store, lookup).run("yield")

    created = asyncio.run(scenario())

    assert created.meanings == [WordMeaning("verb", "to produce")]
