from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..flows import CaptureFlow
from ..models.api import CaptureRequest, CaptureResponse, DeleteResponse, WordOut
from ..models.word import normalize_word
from ..store import WordStore
from .deps import get_capture_flow, get_word_store

router = APIRouter(tags=["words"])


@router.post("", response_model=CaptureResponse, summary="単語を保存（既存なら何もしない）")
async def capture_word(
    req: CaptureRequest,
    response: Response,
    flow: CaptureFlow = Depends(get_capture_flow),
    store: WordStore = Depends(get_word_store),
) -> CaptureResponse:
    """Capture a word. The first capture wins; repeats return the stored record."""
    key = normalize_word(req.word)
    if not key:
        raise HTTPException(status_code=400, detail="word is required")
    meanings = [m.to_domain() for m in req.meanings] if req.meanings is not None else None
    created = await flow.run(key, req.source_url, meanings)
    if created is not None:
        response.status_code = status.HTTP_201_CREATED
        return CaptureResponse(created=True, word=WordOut.from_record(created))
    existing = await store.get(key)
    if existing is None:
        # forgotten between the no-op capture and this read
        raise HTTPException(status_code=409, detail="word was removed concurrently")
    return CaptureResponse(created=False, word=WordOut.from_record(existing))


@router.get("/{word}", response_model=WordOut, summary="単語のスケジュール状態を取得")
async def get_word(word: str, store: WordStore = Depends(get_word_store)) -> WordOut:
    record = await store.get(word)
    if record is None:
        raise HTTPException(status_code=404, detail="word not found")
    return WordOut.from_record(record)


@router.delete("/{word}", response_model=DeleteResponse, summary="単語を忘れる（存在しなくてもエラーにしない）")
async def forget_word(word: str, store: WordStore = Depends(get_word_store)) -> DeleteResponse:
    removed = await store.forget(word)
    return DeleteResponse(deleted=1 if removed else 0)


@router.delete("", response_model=DeleteResponse, summary="全単語を削除（リセット用）")
async def clear_words(store: WordStore = Depends(get_word_store)) -> DeleteResponse:
    return DeleteResponse(deleted=await store.clear_all())
