"""Domain errors raised by the word store.

ストア/スケジューラの失敗は常に呼び出し元へ伝播させる。HTTP 層と CLI は
ここで定義した型だけを見てステータスや終了コードを決める。
"""

from __future__ import annotations


class LexmoraError(Exception):
    """Base class for all domain errors."""


class NotFoundError(LexmoraError):
    """Raised when a review targets a word that was never captured."""

    def __init__(self, word: str) -> None:
        super().__init__(f'Unable to find word "{word}" for review update')
        self.word = word


class StorageError(LexmoraError):
    """Raised when the underlying storage engine fails to open, read or write."""
