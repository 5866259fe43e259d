from .capture import CaptureFlow, DictionaryLookup
from .review_session import ReviewSession

__all__ = ["CaptureFlow", "DictionaryLookup", "ReviewSession"]
