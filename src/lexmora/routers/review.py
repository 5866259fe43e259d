from fastapi import APIRouter, Depends, Query

from ..config import settings
from ..models.api import ReviewDueResponse, ReviewGradeRequest, ReviewStatsResponse, WordOut
from ..store import WordStore
from .deps import get_word_store

router = APIRouter(tags=["review"])


@router.get("/due", response_model=ReviewDueResponse, summary="復習期限を過ぎた単語を取得")
async def review_due(
    limit: int | None = Query(default=None, ge=1, le=1000),
    store: WordStore = Depends(get_word_store),
) -> ReviewDueResponse:
    """Return due words, earliest first. Falls back to REVIEW_DUE_LIMIT when no limit is given."""
    items = await store.due_queue(limit if limit is not None else settings.review_due_limit)
    return ReviewDueResponse(items=[WordOut.from_record(it) for it in items])


@router.post("/grade", response_model=WordOut, summary="採点して次回出題時刻を更新")
async def review_grade(req: ReviewGradeRequest, store: WordStore = Depends(get_word_store)) -> WordOut:
    """Apply one review response (SM-2) and return the persisted state.

    未保存の単語は NotFoundError → 404 となり、レコードは作成されない。
    """
    updated = await store.apply_response(req.word, req.signal)
    return WordOut.from_record(updated)


@router.get("/stats", response_model=ReviewStatsResponse, summary="進捗統計（総数/習得/復習中/今日/連続日数）")
async def review_stats(store: WordStore = Depends(get_word_store)) -> ReviewStatsResponse:
    return ReviewStatsResponse.from_metrics(await store.metrics())
