from __future__ import annotations

import logging
from pathlib import Path

import pytest

from mdreader.summary import (
    MAX_LINE_LENGTH,
    SummaryError,
    SummaryNotFoundError,
    SummaryReadError,
    SummaryScanError,
    TOCEntry,
    find_first_chapter,
    iter_entries,
    parse_summary,
    parse_summary_lines,
)

SAMPLE_SUMMARY = """# Summary

[Introduction](README.md)

- [Getting Started](./getting-started.md)
  - [Installation](./getting-started/install.md)
  - [Configuration](getting-started/config.md)
    - [Advanced](getting-started/advanced.md)
- [Reference]()
  * [API](reference/api.md)
- [Appendix](appendix.md)
"""


def _write_summary(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "SUMMARY.md"
    path.write_text(text, encoding="utf-8")
    return path


def _titles(entries) -> list[str]:
    return [entry.title for entry in entries]


def test_parse_summary_builds_nested_toc(tmp_path: Path) -> None:
    toc, first_chapter = parse_summary(_write_summary(tmp_path, SAMPLE_SUMMARY))

    assert _titles(toc) == ["Getting Started", "Reference", "Appendix"]
    started = toc[0]
    assert started.path == "getting-started.md"
    assert started.level == 0
    assert _titles(started.children) == ["Installation", "Configuration"]
    assert started.children[0].path == "getting-started/install.md"
    config = started.children[1]
    assert config.level == 1
    assert _titles(config.children) == ["Advanced"]
    assert config.children[0].level == 2
    reference = toc[1]
    assert reference.path == ""
    assert not reference.is_chapter
    assert _titles(reference.children) == ["API"]
    assert toc[2].children == ()
    assert first_chapter == "getting-started.md"


def test_root_entries_match_level_zero_lines_in_order() -> None:
    lines = SAMPLE_SUMMARY.splitlines()
    level_zero = [line for line in lines if line.startswith(("- [", "* ["))]
    toc, _ = parse_summary_lines(lines)
    assert len(toc) == len(level_zero)
    assert _titles(toc) == ["Getting Started", "Reference", "Appendix"]


def test_parsing_twice_yields_identical_trees(tmp_path: Path) -> None:
    path = _write_summary(tmp_path, SAMPLE_SUMMARY)
    assert parse_summary(path) == parse_summary(path)


def test_first_chapter_follows_file_order() -> None:
    lines = [
        "- [Intro]()",
        "  - [Ch1](ch1.md)",
        "- [Ch2](ch2.md)",
    ]
    toc, first_chapter = parse_summary_lines(lines)
    assert _titles(toc) == ["Intro", "Ch2"]
    assert _titles(toc[0].children) == ["Ch1"]
    assert first_chapter == "ch1.md"


def test_first_chapter_ignores_non_markdown_paths() -> None:
    lines = [
        "- [Cover](images/cover.png)",
        "- [Chapter](CHAPTER.MD)",
    ]
    _, first_chapter = parse_summary_lines(lines)
    assert first_chapter == "CHAPTER.MD"


def test_first_chapter_respects_custom_suffix() -> None:
    lines = ["- [One](one.md)", "- [Two](two.markdown)"]
    _, first_chapter = parse_summary_lines(lines, chapter_suffix=".markdown")
    assert first_chapter == "two.markdown"


def test_child_nested_under_top_with_normalized_path() -> None:
    toc, _ = parse_summary_lines(["- [Top](top.md)", "  - [Sub](./a.md)"])
    assert len(toc) == 1
    top = toc[0]
    assert top.title == "Top"
    assert len(top.children) == 1
    assert top.children[0].title == "Sub"
    assert top.children[0].path == "a.md"


def test_path_normalization_only_strips_leading_dot_slash() -> None:
    toc, _ = parse_summary_lines(
        [
            "- [A](./a/b.md)",
            "- [B](a/b.md)",
            "- [C](../c.md)",
            "- [D](  ./d.md  )",
        ]
    )
    assert [entry.path for entry in toc] == ["a/b.md", "a/b.md", "../c.md", "d.md"]


def test_titles_are_trimmed() -> None:
    toc, _ = parse_summary_lines(["- [  Spaced Title  ](x.md)"])
    assert toc[0].title == "Spaced Title"


def test_dedent_reparents_to_matching_ancestor() -> None:
    toc, _ = parse_summary_lines(
        [
            "- [A](a.md)",
            "  - [B](b.md)",
            "    - [C](c.md)",
            "  - [D](d.md)",
            "- [E](e.md)",
        ]
    )
    assert _titles(toc) == ["A", "E"]
    assert _titles(toc[0].children) == ["B", "D"]
    assert _titles(toc[0].children[0].children) == ["C"]


def test_dedent_by_several_levels_never_pops_root() -> None:
    toc, _ = parse_summary_lines(
        [
            "- [A](a.md)",
            "  - [B](b.md)",
            "    - [C](c.md)",
            "      - [D](d.md)",
            "- [E](e.md)",
            "- [F](f.md)",
        ]
    )
    assert _titles(toc) == ["A", "E", "F"]


def test_indentation_jump_nests_once_without_error() -> None:
    toc, _ = parse_summary_lines(
        [
            "- [A](a.md)",
            "    - [Deep](deep.md)",
            "- [B](b.md)",
        ]
    )
    assert _titles(toc) == ["A", "B"]
    deep = toc[0].children[0]
    assert deep.title == "Deep"
    assert deep.level == 2


def test_indented_first_entry_stays_at_top_level() -> None:
    toc, _ = parse_summary_lines(
        [
            "  - [Indented](indented.md)",
            "- [Top](top.md)",
            "  - [Child](child.md)",
        ]
    )
    assert _titles(toc) == ["Indented", "Top"]
    assert toc[0].level == 1
    assert _titles(toc[1].children) == ["Child"]


def test_every_two_whitespace_characters_is_one_level() -> None:
    toc, _ = parse_summary_lines(["- [A](a.md)", "   - [B](b.md)", "\t- [C](c.md)"])
    assert toc[0].children[0].level == 1
    assert toc[0].children[0].title == "B"
    assert toc[1].title == "C"
    assert toc[1].level == 0


def test_non_list_lines_are_ignored() -> None:
    toc, first_chapter = parse_summary_lines(
        [
            "# Summary",
            "",
            "Some prose about the book.",
            "[Prefix](prefix.md)",
            "-[NoSpace](nospace.md)",
            "---",
        ]
    )
    assert toc == ()
    assert first_chapter == ""


def test_unmatched_list_items_are_logged_and_skipped(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="mdreader.summary"):
        toc, _ = parse_summary_lines(
            [
                "- [Good](good.md)",
                "- Plain section title",
                "- [](empty-title.md)",
                "- [After](after.md)",
            ],
            source="SUMMARY.md",
        )
    assert _titles(toc) == ["Good", "After"]
    skipped = [record.getMessage() for record in caplog.records]
    assert any("line 2 in SUMMARY.md" in message for message in skipped)
    assert any("line 3 in SUMMARY.md" in message for message in skipped)


def test_trailing_text_after_link_is_ignored() -> None:
    toc, _ = parse_summary_lines(["* [Star](star.md) <!-- draft -->"])
    assert toc[0] == TOCEntry(title="Star", path="star.md", level=0)


def test_manifest_without_entries_is_empty(tmp_path: Path) -> None:
    path = _write_summary(tmp_path, "# Summary\n\nNothing here yet.\n")
    toc, first_chapter = parse_summary(path)
    assert toc == ()
    assert first_chapter == ""


def test_missing_manifest_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(SummaryNotFoundError) as excinfo:
        parse_summary(tmp_path / "SUMMARY.md")
    assert isinstance(excinfo.value, FileNotFoundError)
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)


def test_unopenable_manifest_raises_read_error(tmp_path: Path) -> None:
    with pytest.raises(SummaryReadError) as excinfo:
        parse_summary(tmp_path)
    assert isinstance(excinfo.value, SummaryError)
    assert isinstance(excinfo.value, OSError)


def test_read_failure_mid_stream_raises_scan_error() -> None:
    def _lines():
        yield "- [A](a.md)"
        yield "- [B](b.md)"
        raise OSError("device went away")

    with pytest.raises(SummaryScanError) as excinfo:
        parse_summary_lines(_lines(), source="SUMMARY.md")
    assert "after line 2" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, OSError)


def test_undecodable_prose_line_keeps_the_toc(tmp_path: Path) -> None:
    path = tmp_path / "SUMMARY.md"
    path.write_bytes(b"# Summary caf\xe9\n- [A](a.md)\n")
    toc, first_chapter = parse_summary(path)
    assert _titles(toc) == ["A"]
    assert first_chapter == "a.md"


def test_undecodable_bytes_only_affect_their_own_line(tmp_path: Path) -> None:
    path = tmp_path / "SUMMARY.md"
    path.write_bytes(b"- [A](a.md)\n- [Caf\xe9](cafe.md)\n- [B](b.md)\n")
    toc, _ = parse_summary(path)
    assert _titles(toc) == ["A", "Caf\ufffd", "B"]
    assert toc[1].path == "cafe.md"


def test_overlong_line_raises_scan_error() -> None:
    line = "- [Long](" + "a" * MAX_LINE_LENGTH + ".md)"
    with pytest.raises(SummaryScanError):
        parse_summary_lines(["- [A](a.md)", line])


def test_line_limit_counts_utf8_bytes() -> None:
    line = "- [" + "あ" * 30000 + "](a.md)"
    assert len(line) < MAX_LINE_LENGTH
    with pytest.raises(SummaryScanError):
        parse_summary_lines([line])


def test_line_of_exactly_the_limit_is_rejected() -> None:
    prefix = "- [A]("
    suffix = ".md)"
    line = prefix + "a" * (MAX_LINE_LENGTH - len(prefix) - len(suffix)) + suffix
    assert len(line.encode("utf-8")) == MAX_LINE_LENGTH
    with pytest.raises(SummaryScanError):
        parse_summary_lines([line])
    toc, _ = parse_summary_lines([line[:-5] + ".md)"])
    assert len(toc) == 1


def test_lone_carriage_return_does_not_split_lines(tmp_path: Path) -> None:
    path = tmp_path / "SUMMARY.md"
    path.write_bytes(b"- [A](a.md)\r- [B](b.md)\n- [C](c.md)\n")
    toc, _ = parse_summary(path)
    assert _titles(toc) == ["A", "C"]


def test_only_ascii_whitespace_counts_as_indentation() -> None:
    toc, _ = parse_summary_lines(
        [
            "- [A](a.md)",
            "\u3000\u3000- [Ideographic](ideographic.md)",
            "\u00a0\u00a0- [NoBreak](nobreak.md)",
            "\f - [Feed](feed.md)",
        ]
    )
    assert _titles(toc) == ["A"]
    assert _titles(toc[0].children) == ["Feed"]


def test_windows_line_endings(tmp_path: Path) -> None:
    path = tmp_path / "SUMMARY.md"
    path.write_bytes(b"- [A](a.md)\r\n  - [B](b.md)\r\n")
    toc, first_chapter = parse_summary(path)
    assert _titles(toc) == ["A"]
    assert toc[0].children[0].path == "b.md"
    assert first_chapter == "a.md"


def test_find_first_chapter_walks_depth_first() -> None:
    toc = (
        TOCEntry(
            title="Part",
            children=(
                TOCEntry(title="Art", path="art.png", level=1),
                TOCEntry(
                    title="Section",
                    level=1,
                    children=(TOCEntry(title="Deep", path="deep.md", level=2),),
                ),
            ),
        ),
        TOCEntry(title="Later", path="later.md"),
    )
    assert find_first_chapter(toc) == "deep.md"
    assert find_first_chapter(toc[1:]) == "later.md"
    assert find_first_chapter(()) == ""
    assert [entry.title for entry in iter_entries(toc)] == [
        "Part",
        "Art",
        "Section",
        "Deep",
        "Later",
    ]


def test_to_payload_omits_empty_path_and_children() -> None:
    toc, _ = parse_summary_lines(["- [Part]()", "  - [One](one.md)"])
    assert toc[0].to_payload() == {
        "title": "Part",
        "level": 0,
        "children": [{"title": "One", "path": "one.md", "level": 1}],
    }
