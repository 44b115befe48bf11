from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, NamedTuple, Sequence

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "SUMMARY.md"
CHAPTER_SUFFIX = ".md"
INDENT_WIDTH = 2
MAX_LINE_LENGTH = 64 * 1024  # bytes, UTF-8 encoded, line ending excluded

_LIST_MARKERS = ("- ", "* ")
# ASCII whitespace only; U+3000 and NBSP are part of the text.
_WS = r"[\t\n\f\r ]"
_ENTRY_PATTERN = re.compile(
    rf"^(?P<indent>{_WS}*)[-*]{_WS}*\[(?P<title>[^\]]+)\]\((?P<path>[^)]*)\)"
)


class SummaryError(Exception):
    """Base class for failures while reading a summary manifest."""


class SummaryNotFoundError(SummaryError, FileNotFoundError):
    """Raised when the summary manifest does not exist."""


class SummaryReadError(SummaryError, OSError):
    """Raised when the summary manifest cannot be opened."""


class SummaryScanError(SummaryError):
    """Raised when reading fails after the manifest was opened."""


@dataclass(frozen=True)
class TOCEntry:
    title: str
    path: str = ""
    level: int = 0
    children: tuple["TOCEntry", ...] = ()

    @property
    def is_chapter(self) -> bool:
        return bool(self.path)

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"title": self.title}
        if self.path:
            payload["path"] = self.path
        payload["level"] = self.level
        if self.children:
            payload["children"] = [child.to_payload() for child in self.children]
        return payload


class ParseResult(NamedTuple):
    toc: tuple[TOCEntry, ...]
    first_chapter_path: str


@dataclass
class _Node:
    title: str
    path: str
    level: int
    children: list["_Node"] = field(default_factory=list)

    def freeze(self) -> TOCEntry:
        return TOCEntry(
            title=self.title,
            path=self.path,
            level=self.level,
            children=tuple(child.freeze() for child in self.children),
        )


def _strip_line_ending(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def _is_list_item(line: str) -> bool:
    trimmed = line.strip()
    return bool(trimmed) and trimmed.startswith(_LIST_MARKERS)


def _normalize_path(path: str) -> str:
    if path.startswith("./"):
        return path[2:]
    return path


def _is_chapter_path(path: str, suffix: str) -> bool:
    return bool(path) and path.lower().endswith(suffix.lower())


def _parse_entry(line: str) -> _Node | None:
    match = _ENTRY_PATTERN.match(line)
    if match is None:
        return None
    return _Node(
        title=match.group("title").strip(),
        path=_normalize_path(match.group("path").strip()),
        level=len(match.group("indent")) // INDENT_WIDTH,
    )


class _TreeBuilder:
    """Assemble entries into a forest from their indentation levels.

    ``_parents`` holds the entries whose children are currently being
    filled; ``None`` at the bottom stands for the top level and is never
    popped. Any step deeper than the previous entry nests under that entry,
    whatever the size of the step.
    """

    def __init__(self) -> None:
        self.roots: list[_Node] = []
        self._parents: list[_Node | None] = [None]
        self._last_level = -1

    def _current_list(self) -> list[_Node]:
        parent = self._parents[-1]
        return self.roots if parent is None else parent.children

    def add(self, node: _Node) -> None:
        level = node.level
        if level > self._last_level:
            siblings = self._current_list()
            if siblings:
                self._parents.append(siblings[-1])
        elif level < self._last_level:
            for _ in range(self._last_level - level):
                if len(self._parents) > 1:
                    self._parents.pop()
        self._current_list().append(node)
        self._last_level = level

    def build(self) -> tuple[TOCEntry, ...]:
        return tuple(node.freeze() for node in self.roots)


def iter_entries(entries: Sequence[TOCEntry]) -> Iterator[TOCEntry]:
    """Yield entries depth-first, parents before their children."""
    for entry in entries:
        yield entry
        yield from iter_entries(entry.children)


def find_first_chapter(
    entries: Sequence[TOCEntry], *, chapter_suffix: str = CHAPTER_SUFFIX
) -> str:
    """Return the first chapter path in pre-order, or ``""`` when none exists."""
    for entry in iter_entries(entries):
        if _is_chapter_path(entry.path, chapter_suffix):
            return entry.path
    return ""


def parse_summary_lines(
    lines: Iterable[str],
    *,
    source: str = "<lines>",
    chapter_suffix: str = CHAPTER_SUFFIX,
) -> ParseResult:
    """Parse summary manifest lines into a TOC and the first chapter path.

    Lines that are not list items are ignored. List items that do not
    match ``- [Title](path)`` are logged and skipped. Reading or decoding
    failures raised by ``lines`` abort the parse with
    :class:`SummaryScanError`.
    """
    builder = _TreeBuilder()
    first_chapter = ""
    line_number = 0
    iterator = iter(lines)
    while True:
        try:
            raw_line = next(iterator)
        except StopIteration:
            break
        except (OSError, UnicodeDecodeError) as exc:
            raise SummaryScanError(
                f"Error scanning {source} after line {line_number}: {exc}"
            ) from exc
        line_number += 1
        line = _strip_line_ending(raw_line)
        if len(line.encode("utf-8", errors="replace")) >= MAX_LINE_LENGTH:
            raise SummaryScanError(
                f"Error scanning {source}: line {line_number} exceeds "
                f"{MAX_LINE_LENGTH} bytes"
            )
        if not _is_list_item(line):
            continue
        node = _parse_entry(line)
        if node is None:
            logger.info("Skipping line %d in %s (no match): %s", line_number, source, line)
            continue
        if not first_chapter and _is_chapter_path(node.path, chapter_suffix):
            first_chapter = node.path
        builder.add(node)

    toc = builder.build()
    if not first_chapter and toc:
        first_chapter = find_first_chapter(toc, chapter_suffix=chapter_suffix)
    return ParseResult(toc, first_chapter)


def parse_summary(
    source_path: Path | str,
    *,
    chapter_suffix: str = CHAPTER_SUFFIX,
) -> ParseResult:
    """Read a ``SUMMARY.md`` manifest from disk and parse it."""
    path = Path(source_path)
    try:
        handle = path.open("r", encoding="utf-8", errors="replace", newline="\n")
    except FileNotFoundError as exc:
        raise SummaryNotFoundError(f"Summary manifest not found: {path}") from exc
    except OSError as exc:
        raise SummaryReadError(f"Failed to open summary manifest {path}: {exc}") from exc
    with handle:
        return parse_summary_lines(handle, source=str(path), chapter_suffix=chapter_suffix)


__all__ = [
    "CHAPTER_SUFFIX",
    "INDENT_WIDTH",
    "MAX_LINE_LENGTH",
    "SUMMARY_FILENAME",
    "ParseResult",
    "SummaryError",
    "SummaryNotFoundError",
    "SummaryReadError",
    "SummaryScanError",
    "TOCEntry",
    "find_first_chapter",
    "iter_entries",
    "parse_summary",
    "parse_summary_lines",
]
