from .book import BookData, ChapterError, load_book_data, read_chapter
from .config import ReaderConfig, load_config
from .summary import (
    ParseResult,
    SummaryError,
    SummaryNotFoundError,
    SummaryReadError,
    SummaryScanError,
    TOCEntry,
    find_first_chapter,
    parse_summary,
    parse_summary_lines,
)

__all__ = [
    "BookData",
    "ChapterError",
    "ParseResult",
    "ReaderConfig",
    "SummaryError",
    "SummaryNotFoundError",
    "SummaryReadError",
    "SummaryScanError",
    "TOCEntry",
    "find_first_chapter",
    "load_book_data",
    "load_config",
    "parse_summary",
    "parse_summary_lines",
    "read_chapter",
]
