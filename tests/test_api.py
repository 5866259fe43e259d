from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from lexmora.errors import StorageError
from lexmora.main import create_app
from lexmora.models.word import WordMeaning, WordRecord
from lexmora.store import InMemoryWordBackend, SQLiteWordBackend, WordStore


class _StaticLookup:
    async def lookup(self, word):
        return [WordMeaning("noun", f"definition of {word}")]


@pytest.fixture()
def client(clock):
    store = WordStore(InMemoryWordBackend(), clock=clock)
    with TestClient(create_app(store=store)) as test_client:
        yield test_client


def test_health(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("X-Request-ID")


def test_request_id_is_echoed_when_supplied(client):
    resp = client.get("/healthz", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"


def test_capture_then_duplicate(client):
    first = client.post(
        "/api/words",
        json={
            "word": "Serendipity",
            "source_url": "https://example.com",
            "meanings": [{"part_of_speech": "noun", "definition": "a happy accident"}],
        },
    )
    assert first.status_code == 201
    body = first.json()
    assert body["created"] is True
    assert body["word"]["word"] == "serendipity"
    assert body["word"]["interval_days"] == 0
    assert body["word"]["meanings"] == [
        {"part_of_speech": "noun", "definition": "a happy accident", "example": None}
    ]

    second = client.post("/api/words", json={"word": "  SERENDIPITY ", "source_url": "https://other.example"})
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert second.json()["word"]["source_url"] == "https://example.com"


def test_capture_rejects_blank_word(client):
    resp = client.post("/api/words", json={"word": "   "})
    assert resp.status_code == 400


def test_capture_uses_configured_dictionary_lookup(clock):
    store = WordStore(InMemoryWordBackend(), clock=clock)
    with TestClient(create_app(store=store, lookup=_StaticLookup())) as c:
        resp = c.post("/api/words", json={"word": "robust"})

    assert resp.status_code == 201
    assert resp.json()["word"]["meanings"][0]["definition"] == "definition of robust"


def test_grade_flow_and_due_queue(client, clock):
    client.post("/api/words", json={"word": "alpha"})
    client.post("/api/words", json={"word": "bravo"})
    assert client.get("/api/review/due").json() == {"items": []}

    clock.advance(days=1)
    due = client.get("/api/review/due").json()["items"]
    assert [it["word"] for it in due] == ["alpha", "bravo"]
    assert [it["word"] for it in client.get("/api/review/due", params={"limit": 1}).json()["items"]] == ["alpha"]

    graded = client.post("/api/review/grade", json={"word": "Alpha", "response": "sharp"})
    assert graded.status_code == 200
    assert graded.json()["repetitions"] == 1
    assert graded.json()["interval_days"] == 1

    lapsed = client.post("/api/review/grade", json={"word": "bravo", "quality": 0.4})
    assert lapsed.json()["lapses"] == 1

    assert client.get("/api/words/alpha").json()["repetitions"] == 1


def test_grade_unknown_word_is_404_and_creates_nothing(client):
    resp = client.post("/api/review/grade", json={"word": "nonexistent-word", "quality": 5})
    assert resp.status_code == 404
    assert resp.json()["word"] == "nonexistent-word"
    assert client.get("/api/words/nonexistent-word").status_code == 404
    assert client.get("/api/review/stats").json()["total_words"] == 0


@pytest.mark.parametrize(
    "payload",
    [
        {"word": "alpha"},
        {"word": "alpha", "quality": 5, "response": "sharp"},
        {"word": "alpha", "response": "excellent"},
    ],
)
def test_grade_requires_exactly_one_valid_signal(client, payload):
    client.post("/api/words", json={"word": "alpha"})
    assert client.post("/api/review/grade", json=payload).status_code == 422


def test_stats(client):
    for word in ["a", "b"]:
        client.post("/api/words", json={"word": word})

    stats = client.get("/api/review/stats").json()

    assert stats == {
        "total_words": 2,
        "mastered_words": 0,
        "in_review_words": 2,
        "reviewed_today": 2,
        "streak_days": 1,
    }


def test_forget_and_reset(client):
    for word in ["one", "two", "three"]:
        client.post("/api/words", json={"word": word})

    assert client.delete("/api/words/one").json() == {"deleted": 1}
    assert client.delete("/api/words/one").json() == {"deleted": 0}
    assert client.delete("/api/words").json() == {"deleted": 2}
    assert client.get("/api/review/stats").json()["total_words"] == 0


def test_storage_failure_maps_to_503(clock):
    class _BrokenBackend(InMemoryWordBackend):
        def due(self, now, limit=None):
            raise StorageError("disk unavailable")

    store = WordStore(_BrokenBackend(), clock=clock)
    with TestClient(create_app(store=store)) as c:
        resp = c.get("/api/review/due")

    assert resp.status_code == 503
    assert resp.json() == {"detail": "storage unavailable"}


def test_store_is_opened_and_closed_with_the_app(tmp_path, clock):
    backend = SQLiteWordBackend(str(tmp_path / "api.sqlite3"))
    store = WordStore(backend, clock=clock)
    with TestClient(create_app(store=store)) as c:
        assert c.post("/api/words", json={"word": "persisted"}).status_code == 201
        assert backend._conn is not None  # pylint: disable=protected-access

    assert backend._conn is None  # pylint: disable=protected-access
    backend.open()
    try:
        assert backend.get("persisted").next_review_at == clock.now + timedelta(days=1)
    finally:
        backend.close()


def test_stored_meanings_outside_capture_limits_are_still_served(clock):
    # CLI や辞書引き経由では API の入力制約より緩い語義が保存されうる
    backend = InMemoryWordBackend()
    backend.insert_if_absent(
        WordRecord.new("bravo", meanings=[WordMeaning("noun", "")], now=clock.now)
    )
    backend.insert_if_absent(
        WordRecord.new("charlie", meanings=[WordMeaning("x" * 65, "def")], now=clock.now)
    )
    clock.advance(days=2)

    with TestClient(create_app(store=WordStore(backend, clock=clock))) as c:
        due = c.get("/api/review/due")
        single = c.get("/api/words/bravo")

    assert due.status_code == 200
    assert [it["word"] for it in due.json()["items"]] == ["bravo", "charlie"]
    assert due.json()["items"][1]["meanings"][0]["part_of_speech"] == "x" * 65
    assert single.status_code == 200
    assert single.json()["meanings"] == [{"part_of_speech": "noun", "definition": "", "example": None}]


def test_capture_request_still_validates_meanings(client):
    resp = client.post(
        "/api/words",
        json={"word": "delta", "meanings": [{"part_of_speech": "noun", "definition": ""}]},
    )
    assert resp.status_code == 422
