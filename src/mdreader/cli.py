from __future__ import annotations

import argparse
import json
import sys
from importlib import metadata
from pathlib import Path
from typing import Sequence

import tomllib
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from .book import ChapterError, read_chapter
from .config import (
    BOOK_ROOT_ENV,
    DEFAULT_HOST,
    DEFAULT_PORT,
    ConfigError,
    ReaderConfig,
    default_book_dir,
    load_config,
)
from .logging_utils import build_uvicorn_log_config, configure_logging
from .summary import SummaryError, TOCEntry, parse_summary
from .web import create_app


UNKNOWN_VERSION = "0.0.0+unknown"


def _checkout_version(start: Path) -> str | None:
    """Version from the nearest ``pyproject.toml`` that declares ``mdreader``."""
    for directory in start.parents:
        candidate = directory / "pyproject.toml"
        if not candidate.is_file():
            continue
        try:
            project = tomllib.loads(candidate.read_text(encoding="utf-8")).get("project", {})
        except (OSError, tomllib.TOMLDecodeError):
            return None
        if project.get("name") == "mdreader":
            return project.get("version")
    return None


def package_version() -> str:
    try:
        return metadata.version("mdreader")
    except metadata.PackageNotFoundError:
        return _checkout_version(Path(__file__).resolve()) or UNKNOWN_VERSION


__version__ = package_version()

COMMANDS = ("toc", "chapter", "serve")


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"mdreader {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )


def _add_book_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "book",
        nargs="?",
        help=(
            "Book directory (containing book.toml or SUMMARY.md). "
            f"Defaults to ${BOOK_ROOT_ENV}."
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mdreader",
        description="Read markdown books described by a SUMMARY.md manifest.",
        epilog="Commands: toc, chapter, serve. Run `mdreader <command> -h` for details.",
    )
    _add_common_flags(ap)
    return ap


def build_toc_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mdreader toc",
        description="Print the table of contents parsed from SUMMARY.md.",
    )
    _add_common_flags(ap)
    _add_book_argument(ap)
    ap.add_argument(
        "--json",
        action="store_true",
        help="Print the table of contents as JSON.",
    )
    return ap


def build_chapter_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mdreader chapter",
        description="Print the markdown of a chapter.",
    )
    _add_common_flags(ap)
    _add_book_argument(ap)
    ap.add_argument(
        "path",
        help="Chapter path relative to the book root.",
    )
    return ap


def build_serve_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mdreader serve",
        description="Serve the book as a JSON backend for a reader front end.",
    )
    _add_common_flags(ap)
    _add_book_argument(ap)
    ap.add_argument(
        "--host",
        default=DEFAULT_HOST,
        help=f"Host interface for the web server (default: {DEFAULT_HOST}).",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port for the web server (default: {DEFAULT_PORT}).",
    )
    return ap


def _resolve_config(args: argparse.Namespace, **overrides: object) -> ReaderConfig:
    book_dir = Path(args.book) if args.book else default_book_dir()
    if book_dir is None:
        raise ConfigError(f"No book directory given; pass one or set {BOOK_ROOT_ENV}.")
    return load_config(book_dir, **overrides)


def _toc_tree(label: str, entries: Sequence[TOCEntry]) -> Tree:
    tree = Tree(escape(label))

    def _add(node: Tree, children: Sequence[TOCEntry]) -> None:
        for entry in children:
            text = f"[bold]{escape(entry.title)}[/bold]"
            if entry.path:
                text += f" [dim]{escape(entry.path)}[/dim]"
            _add(node.add(text), entry.children)

    _add(tree, entries)
    return tree


def _run_toc(args: argparse.Namespace, console: Console) -> int:
    config = _resolve_config(args)
    toc, first_chapter = parse_summary(config.summary_path, chapter_suffix=config.chapter_suffix)
    if args.json:
        payload = {
            "toc": [entry.to_payload() for entry in toc],
            "firstChapter": first_chapter,
        }
        console.print_json(json.dumps(payload, ensure_ascii=False))
        return 0
    console.print(_toc_tree(config.title or config.summary_path.as_posix(), toc))
    if first_chapter:
        console.print(f"First chapter: {escape(first_chapter)}")
    else:
        console.print(f"First chapter: none (default {escape(config.default_chapter)})")
    return 0


def _run_chapter(args: argparse.Namespace, console: Console) -> int:
    config = _resolve_config(args)
    console.out(read_chapter(config.book_root, args.path), highlight=False)
    return 0


def _run_serve(args: argparse.Namespace, console: Console) -> int:
    config = _resolve_config(args, host=args.host, port=args.port)
    app = create_app(config)
    label = config.title or config.book_root.name
    console.print(f"Serving {escape(label)} from {escape(str(config.book_root))}")
    console.print(f"API URL: http://{config.host}:{config.port}/api/book")
    console.print("Press Ctrl+C to stop.\n")
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_config=build_uvicorn_log_config(args.debug),
    )
    return 0


_RUNNERS = {
    "toc": (build_toc_parser, _run_toc),
    "chapter": (build_chapter_parser, _run_chapter),
    "serve": (build_serve_parser, _run_serve),
}


def main(argv: list[str] | None = None, console: Console | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    console = console or Console()

    if not argv or argv[0] not in _RUNNERS:
        parser = build_parser()
        if argv and not argv[0].startswith("-"):
            parser.error(f"unknown command: {argv[0]} (choose from {', '.join(COMMANDS)})")
        parser.parse_args(argv)
        parser.print_help()
        return 0

    build, run = _RUNNERS[argv[0]]
    args = build().parse_args(argv[1:])
    configure_logging(args.debug)
    try:
        return run(args, console)
    except (SummaryError, ChapterError, ConfigError) as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
