from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from .config import settings
from .errors import NotFoundError, StorageError
from .flows import DictionaryLookup
from .logging import configure_logging, logger
from .middleware import AccessLogMiddleware, RequestIDMiddleware
from .routers import health, review, words
from .store import WordStore


def create_app(store: WordStore | None = None, lookup: DictionaryLookup | None = None) -> FastAPI:
    """Build the API around an explicit store.

    ストアはアプリが所有する明示的なリソースとして扱い、起動時に open、
    停止時に close する。テストでは InMemoryWordBackend を持つストアを渡す。
    """
    configure_logging()
    app = FastAPI(title="Lexmora API", version="0.3.0")
    app.state.word_store = store if store is not None else WordStore.from_settings(settings)
    app.state.dictionary_lookup = lookup

    # 拡張機能のオリジンなど、明示的に許可されたものだけ CORS を開ける
    if settings.allowed_cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.allowed_cors_origins),
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["*"],
        )
    # 後から追加したミドルウェアが外側になる。request_id を先に採番させる
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(NotFoundError)
    async def _not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc), "word": exc.word})

    @app.exception_handler(StorageError)
    async def _storage_failed(_request: Request, exc: StorageError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": "storage unavailable"})

    app.include_router(health.router)  # ヘルスチェック
    app.include_router(words.router, prefix="/api/words")  # 単語の保存/削除
    app.include_router(review.router, prefix="/api/review")  # 復習キュー/採点/統計

    @app.on_event("startup")
    async def _open_store() -> None:
        await app.state.word_store.open()
        logger.info("word_store_opened", backend=type(app.state.word_store.backend).__name__)

    @app.on_event("shutdown")
    async def _close_store() -> None:
        await app.state.word_store.close()

    return app


app = create_app()
