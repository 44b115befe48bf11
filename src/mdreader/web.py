from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from .book import (
    ChapterError,
    ChapterNotFoundError,
    InvalidChapterPathError,
    load_book_data,
    read_chapter,
)
from .config import ReaderConfig
from .summary import SummaryError, SummaryNotFoundError, parse_summary

logger = logging.getLogger(__name__)


def _summary_http_error(exc: SummaryError) -> HTTPException:
    status = 404 if isinstance(exc, SummaryNotFoundError) else 500
    return HTTPException(status_code=status, detail=f"Error parsing summary: {exc}")


def _chapter_http_error(exc: ChapterError) -> HTTPException:
    if isinstance(exc, InvalidChapterPathError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ChapterNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def create_app(config: ReaderConfig) -> FastAPI:
    root = config.book_root.expanduser().resolve()
    if not root.exists() or not root.is_dir():
        raise FileNotFoundError(f"Book root not found: {root}")

    app = FastAPI(title=config.title or "mdreader")
    app.state.config = config
    app.state.root = root

    @app.get("/api/book")
    def api_book() -> JSONResponse:
        try:
            data = load_book_data(config)
        except SummaryError as exc:
            logger.error("Error parsing summary: %s", exc)
            raise _summary_http_error(exc) from exc
        payload = data.to_payload()
        payload["title"] = config.title
        return JSONResponse(payload)

    @app.get("/api/toc")
    def api_toc() -> JSONResponse:
        try:
            toc, first_chapter = parse_summary(
                config.summary_path, chapter_suffix=config.chapter_suffix
            )
        except SummaryError as exc:
            logger.error("Error parsing summary: %s", exc)
            raise _summary_http_error(exc) from exc
        return JSONResponse(
            {
                "toc": [entry.to_payload() for entry in toc],
                "firstChapter": first_chapter,
            }
        )

    @app.get("/api/chapter")
    def api_chapter(
        path: str = Query(..., description="Chapter path relative to the book root"),
    ) -> JSONResponse:
        try:
            markdown = read_chapter(root, path)
        except ChapterError as exc:
            raise _chapter_http_error(exc) from exc
        return JSONResponse({"path": path, "markdown": markdown})

    return app


__all__ = ["create_app"]
