"""
Text cleanup as an ordered list of pure ``str -> str`` passes.

Each pass does one thing and can be tested on its own. Pipelines are plain
tuples of passes and ``run`` folds a text through them in order.
"""

from __future__ import annotations

import html
import re
from typing import Callable, Iterable, Sequence

from .rules import DEFAULT_ENGINE

Pass = Callable[[str], str]

_SCRIPT_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_LINE_BREAK_TAGS = re.compile(r"<br\s*/?>|</(?:tr|li|p|div|h[1-6]|dt|dd)\s*>", re.IGNORECASE)
_CELL_OPEN = re.compile(r"<td\b[^>]*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]+>")
_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_BLANK_RUNS = re.compile(r"\n{2,}")
_CELL_EDGES = re.compile(r"^(?:[^\S\n]*\|)+[^\S\n]*|(?:[^\S\n]*\|)+[^\S\n]*$", re.MULTILINE)
_DOT_LEADER = re.compile(r"\s*(?:\.{3,}|…+)\s*")
_LEADING_HEADING = re.compile(r"^\s*(?:table of contents|목차|차례|contents|index)\s*(?:\n|$)", re.IGNORECASE)
_NUMBERED = re.compile(r"^(\d+)[.)\s]")

MAX_LINES = 100


def run(text: str, passes: Iterable[Pass]) -> str:
    for step in passes:
        text = step(text)
    return text


def _map_lines(text: str, fn: Callable[[list[str]], list[str]]) -> str:
    return "\n".join(fn(text.split("\n")))


# --- HTML to text ---


def strip_scripts(text: str) -> str:
    return _SCRIPT_STYLE.sub("", text)


def breaks_to_newlines(text: str) -> str:
    text = _LINE_BREAK_TAGS.sub("\n", text)
    return _CELL_OPEN.sub(" | ", text)


def strip_tags(text: str) -> str:
    return _ANY_TAG.sub(" ", text)


def decode_entities(text: str) -> str:
    return html.unescape(text).replace("\xa0", " ")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of spaces and tabs but keep line structure."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _HORIZONTAL_WS.sub(" ", text)


def strip_cell_edges(text: str) -> str:
    """Drop cell separators left at the start or end of a line."""
    return _CELL_EDGES.sub("", text)


def trim_lines(text: str) -> str:
    lines = [line.strip() for line in text.split("\n")]
    return _BLANK_RUNS.sub("\n", "\n".join(lines)).strip()


# --- Line filters ---


def drop_noise_lines(text: str) -> str:
    """Remove headings, bare page numbers, separators and over-long prose lines."""

    def keep(line: str) -> bool:
        if len(line) < 3 or len(line) > 150:
            return False
        return not DEFAULT_ENGINE.line_matches(line, "line_drop")

    return _map_lines(text, lambda lines: [line for line in lines if keep(line)])


def keep_toc_lines(text: str) -> str:
    """Keep only lines shaped like contents entries, capped at ``MAX_LINES``."""
    return _map_lines(
        text,
        lambda lines: [line for line in lines if DEFAULT_ENGINE.line_matches(line, "line_keep")][:MAX_LINES],
    )


def dedupe_lines(text: str) -> str:
    return _map_lines(text, lambda lines: list(dict.fromkeys(lines)))


def sort_numbered_lines(text: str) -> str:
    """Restore numeric order of a flat numbered list.

    Only applies when every line carries a distinct leading number; mixed or
    nested outlines are returned unchanged.
    """
    lines = [line for line in text.split("\n") if line]
    numbers = []
    for line in lines:
        match = _NUMBERED.match(line)
        if match is None:
            return text
        numbers.append(int(match.group(1)))
    if len(set(numbers)) != len(numbers):
        return text
    return "\n".join(line for _, line in sorted(zip(numbers, lines)))


# --- Scraped page text ---


def strip_leading_heading(text: str) -> str:
    return _LEADING_HEADING.sub("", text.lstrip(), count=1)


def normalize_dot_leaders(text: str) -> str:
    return _map_lines(text, lambda lines: [_DOT_LEADER.sub(" ... ", line) for line in lines])


def drop_short_lines(text: str) -> str:
    return _map_lines(text, lambda lines: [line for line in lines if len(line.strip()) > 2])


def drop_lines_containing(terms: Sequence[str]) -> Pass:
    """Build a pass that removes lines containing any of ``terms`` (UI widget labels)."""
    frozen = tuple(terms)

    def _drop(text: str) -> str:
        return _map_lines(text, lambda lines: [line for line in lines if not any(t in line for t in frozen)])

    _drop.__name__ = "drop_lines_containing"
    return _drop


# --- Pipelines ---

HTML_TO_TEXT: tuple[Pass, ...] = (
    strip_scripts,
    breaks_to_newlines,
    strip_tags,
    decode_entities,
    collapse_whitespace,
    strip_cell_edges,
    trim_lines,
)

TOC_CLEANUP: tuple[Pass, ...] = HTML_TO_TEXT + (drop_noise_lines, dedupe_lines, sort_numbered_lines)

TOC_LINES: tuple[Pass, ...] = HTML_TO_TEXT + (drop_noise_lines, keep_toc_lines)

SCRAPED_TEXT: tuple[Pass, ...] = (
    decode_entities,
    collapse_whitespace,
    trim_lines,
    strip_leading_heading,
    normalize_dot_leaders,
    drop_short_lines,
    trim_lines,
)


def html_to_text(markup: str) -> str:
    return run(markup, HTML_TO_TEXT)


def clean_toc(markup: str) -> str:
    """Turn a contents fragment (HTML or text) into one entry per line."""
    return run(markup, TOC_CLEANUP)


def parse_toc_lines(markup: str) -> str:
    """Like ``clean_toc`` but keeps only lines that look like contents entries."""
    return run(markup, TOC_LINES)


def clean_scraped(text: str, extra: Sequence[Pass] = ()) -> str:
    """Clean element text pulled from a bookstore page."""
    return run(text, SCRAPED_TEXT + tuple(extra)).strip()
