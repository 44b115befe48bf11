from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .config import ReaderConfig
from .summary import TOCEntry, parse_summary

logger = logging.getLogger(__name__)


class ChapterError(Exception):
    """Base class for chapter loading failures."""


class InvalidChapterPathError(ChapterError, ValueError):
    """Raised when a chapter path is empty, absolute, or escapes the book root."""


class ChapterNotFoundError(ChapterError, FileNotFoundError):
    """Raised when a chapter file does not exist."""


class ChapterReadError(ChapterError, OSError):
    """Raised when a chapter file exists but cannot be read."""


@dataclass(frozen=True)
class BookData:
    toc: tuple[TOCEntry, ...]
    initial_markdown: str
    initial_path: str
    error: str | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "toc": [entry.to_payload() for entry in self.toc],
            "initialMarkdown": self.initial_markdown,
            "initialPath": self.initial_path,
        }
        if self.error:
            payload["error"] = self.error
        return payload


def resolve_chapter_path(root: Path, relative_path: str) -> Path:
    """Resolve ``relative_path`` under ``root`` and make sure it stays there."""
    if not isinstance(relative_path, str) or not relative_path.strip():
        raise InvalidChapterPathError("Chapter path is required.")
    rel = Path(relative_path.strip())
    if rel.is_absolute():
        raise InvalidChapterPathError(f"Chapter path must be relative: {relative_path}")
    resolved_root = root.expanduser().resolve()
    candidate = (resolved_root / rel).resolve()
    try:
        candidate.relative_to(resolved_root)
    except ValueError as exc:
        logger.warning(
            "Refusing chapter outside book root: %s (resolved to %s)",
            relative_path,
            candidate,
        )
        raise InvalidChapterPathError(f"Invalid chapter path: {relative_path}") from exc
    if not candidate.is_file():
        logger.info("Chapter not found: %s", candidate)
        raise ChapterNotFoundError(f"Chapter not found: {relative_path}")
    return candidate


def read_chapter(root: Path, relative_path: str) -> str:
    chapter_path = resolve_chapter_path(root, relative_path)
    logger.debug("Reading chapter %s", chapter_path)
    try:
        return chapter_path.read_text(encoding="utf-8", errors="ignore")
    except OSError as exc:
        raise ChapterReadError(f"Could not read chapter {relative_path}: {exc}") from exc


def _error_markdown(path: str, exc: Exception) -> str:
    return (
        "# Error Loading Content\n\n"
        f"Could not load: `{path}`\n\n"
        "**Details:**\n"
        f"```\n{exc}\n```"
    )


def load_book_data(config: ReaderConfig) -> BookData:
    """Parse the book's summary and load the first chapter.

    Summary failures propagate. A chapter that cannot be loaded keeps the
    TOC and reports the failure through ``BookData.error`` together with a
    placeholder document.
    """
    summary_path = config.summary_path
    logger.info("Loading book data from %s", summary_path)
    toc, initial_path = parse_summary(summary_path, chapter_suffix=config.chapter_suffix)
    if not initial_path:
        initial_path = config.default_chapter
        logger.info("No initial chapter in %s, defaulting to %s", summary_path.name, initial_path)

    try:
        markdown = read_chapter(config.book_root, initial_path)
    except ChapterError as exc:
        message = f"Error loading initial chapter '{initial_path}': {exc}"
        logger.warning("%s", message)
        return BookData(
            toc=toc,
            initial_markdown=_error_markdown(initial_path, exc),
            initial_path=initial_path,
            error=message,
        )
    logger.info("Loaded book data, initial chapter: %s", initial_path)
    return BookData(toc=toc, initial_markdown=markdown, initial_path=initial_path)


__all__ = [
    "BookData",
    "ChapterError",
    "ChapterNotFoundError",
    "ChapterReadError",
    "InvalidChapterPathError",
    "load_book_data",
    "read_chapter",
    "resolve_chapter_path",
]
