from .word import WordMeaning, WordRecord, normalize_word

__all__ = ["WordMeaning", "WordRecord", "normalize_word"]
