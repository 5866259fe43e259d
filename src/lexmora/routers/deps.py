from fastapi import Request

from ..flows import CaptureFlow
from ..store import WordStore


def get_word_store(request: Request) -> WordStore:
    return request.app.state.word_store


def get_capture_flow(request: Request) -> CaptureFlow:
    return CaptureFlow(
        store=request.app.state.word_store,
        lookup=getattr(request.app.state, "dictionary_lookup", None),
    )
