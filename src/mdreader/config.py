from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

import tomllib

from .summary import CHAPTER_SUFFIX, SUMMARY_FILENAME

BOOK_CONFIG_FILENAME = "book.toml"
BOOK_ROOT_ENV = "MDREADER_BOOK_ROOT"
DEFAULT_CHAPTER = "README.md"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 2047


class ConfigError(ValueError):
    """Raised when a book configuration cannot be loaded."""


@dataclass(frozen=True)
class ReaderConfig:
    book_root: Path
    summary_filename: str = SUMMARY_FILENAME
    default_chapter: str = DEFAULT_CHAPTER
    chapter_suffix: str = CHAPTER_SUFFIX
    title: str | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @property
    def summary_path(self) -> Path:
        return self.book_root / self.summary_filename


def default_book_dir() -> Path | None:
    value = os.environ.get(BOOK_ROOT_ENV, "").strip()
    if not value:
        return None
    return Path(value).expanduser()


def _read_book_toml(path: Path) -> dict[str, object]:
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid {path.name}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    book = data.get("book")
    if book is None:
        return {}
    if not isinstance(book, dict):
        raise ConfigError(f"[book] in {path.name} must be a table.")
    return book


def load_config(book_dir: Path | str, **overrides: object) -> ReaderConfig:
    """Build a :class:`ReaderConfig` for the book stored in ``book_dir``.

    When ``book_dir`` holds an mdBook style ``book.toml``, its ``[book]``
    table supplies the title and the ``src`` directory holding
    ``SUMMARY.md``. Otherwise ``book_dir`` itself is the content root.
    Keyword overrides replace the resulting fields.
    """
    directory = Path(book_dir).expanduser().resolve()
    book_root = directory
    title: str | None = None
    toml_path = directory / BOOK_CONFIG_FILENAME
    if toml_path.is_file():
        book = _read_book_toml(toml_path)
        raw_title = book.get("title")
        if isinstance(raw_title, str) and raw_title.strip():
            title = raw_title.strip()
        src = book.get("src", "src")
        if not isinstance(src, str) or not src.strip():
            raise ConfigError(f"[book].src in {toml_path.name} must be a non-empty string.")
        book_root = (directory / src.strip()).resolve()
    config = ReaderConfig(book_root=book_root, title=title)
    cleaned = {key: value for key, value in overrides.items() if value is not None}
    if cleaned:
        try:
            config = replace(config, **cleaned)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc
    return config


__all__ = [
    "BOOK_CONFIG_FILENAME",
    "BOOK_ROOT_ENV",
    "DEFAULT_CHAPTER",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "ConfigError",
    "ReaderConfig",
    "default_book_dir",
    "load_config",
]
