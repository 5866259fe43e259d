from __future__ import annotations

from typing import Protocol

from ..logging import logger
from ..models.word import WordMeaning, WordRecord, normalize_word
from ..store import WordStore


class DictionaryLookup(Protocol):
    """Best-effort dictionary collaborator.

    辞書 API の呼び出し自体はこのパッケージの外側にある。実装は 0 件以上の
    語義を返すか、例外を送出する。
    """

    async def lookup(self, word: str) -> list[WordMeaning]: ...


class CaptureFlow:
    """Capture a selected word, enriching it with dictionary meanings when possible.

    辞書引きの失敗は握りつぶしてログに残し、語義なしで保存を続行する。
    スケジューリング状態が辞書 API の可用性に左右されないようにするため。
    """

    def __init__(self, store: WordStore, lookup: DictionaryLookup | None = None) -> None:
        self.store = store
        self.lookup = lookup

    async def _lookup_meanings(self, word: str) -> list[WordMeaning]:
        if self.lookup is None:
            return []
        try:
            found = list(await self.lookup.lookup(word))
        except Exception as exc:
            logger.warning("dictionary_lookup_failed", word=word, error=repr(exc))
            return []
        # 定義が空の語義は保存しない
        return [m for m in found if m.definition.strip()]

    async def run(
        self,
        word: str,
        source_url: str = "",
        meanings: list[WordMeaning] | None = None,
    ) -> WordRecord | None:
        """Return the newly created record, or None if nothing was written."""

        key = normalize_word(word)
        if not key:
            return None
        if meanings is None:
            # 既存語に辞書引きを無駄撃ちしない
            if await self.store.get(key) is not None:
                return None
            meanings = await self._lookup_meanings(key)
        return await self.store.capture(key, source_url, meanings)
