"""
Data-driven heuristics for recognising tables of contents.

Every regex the validator, scorer and text cleanup rely on lives in
``RULES`` as a (pattern, weight, category) entry. ``RuleEngine`` is the
only code that evaluates them, so changing which patterns win is a data
change. The field-alias tables used to search untyped JSON payloads live
here too, next to the single lookup function that consumes them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Literal, Mapping, Sequence

Category = Literal["blacklist", "strong", "scoring", "line_keep", "line_drop"]
Scope = Literal["text", "line"]


@dataclass(frozen=True, slots=True)
class Rule:
    name: str
    pattern: re.Pattern[str]
    weight: float
    category: Category
    # "text" rules run once against the whole text, "line" rules against each line.
    scope: Scope = "text"

    def matches(self, text: str) -> bool:
        if self.scope == "text":
            return self.pattern.search(text) is not None
        return any(self.pattern.search(line) for line in text.splitlines())


def _rule(name: str, pattern: str, weight: float, category: Category, scope: Scope = "text", flags: int = 0) -> Rule:
    return Rule(name=name, pattern=re.compile(pattern, flags), weight=weight, category=category, scope=scope)


RULES: tuple[Rule, ...] = (
    # --- Blacklist: any hit rejects the candidate outright ---
    _rule("search_chrome", r"검색\s*결과|도서\s*목록|관련\s*도서", 1.0, "blacklist"),
    _rule("pagination", r"이전\s*페이지|다음\s*페이지|페이지\s*이동", 1.0, "blacklist"),
    _rule("site_footer", r"국립중앙도서관|저작권|copyright", 1.0, "blacklist", flags=re.IGNORECASE),
    _rule("holdings_info", r"자료실|소장처|청구기호", 1.0, "blacklist"),
    _rule("promo_lists", r"인기\s*검색어|검색\s*질의어|베스트셀러|신간\s*도서", 1.0, "blacklist"),
    _rule("status_messages", r"loading|로딩\s*중|not\s*available", 1.0, "blacklist", flags=re.IGNORECASE),
    _rule("book_blurb", r"이 책은|이번 책에서|저자는|책에서는", 1.0, "blacklist"),
    _rule("reader_address", r"독자들에게|우리에게|여러분에게", 1.0, "blacklist"),
    _rule("long_conjunction", r"하지만|그러나|그런데\s+[가-힣\s]{30,}", 1.0, "blacklist"),
    _rule("polite_prose", r"입니다\.|습니다\.|됩니다\.|했습니다\.", 1.0, "blacklist"),
    _rule("plain_prose", r"것이다\.|것입니다\.|것이며|한다\.", 1.0, "blacklist"),
    _rule("long_narrative", r"^[가-힣\s]{150,}$", 1.0, "blacklist"),
    _rule("search_hit_row", r"^\s*\d+\s*\|\s*[가-힣]{1,10}\s*$", 1.0, "blacklist"),
    _rule("digits_only", r"^[\d\s|\-=]+$", 1.0, "blacklist"),
    # --- Strong structural patterns: evidence the text is a table of contents ---
    _rule("numbered_division", r"(?:제\s*)?\d+\s*[장부절편권화]", 1.0, "strong"),
    _rule("english_division", r"\b(?:chapter|part|section)\s*\d+", 1.0, "strong", flags=re.IGNORECASE),
    _rule("dotted_number", r"\d+\.\s*[가-힣A-Za-z]", 1.0, "strong"),
    _rule("paren_number", r"\d+\)\s*[가-힣A-Za-z]", 1.0, "strong"),
    _rule("roman_numeral", r"^[IVX]+\.\s*[가-힣A-Za-z]", 1.0, "strong", flags=re.MULTILINE),
    _rule(
        "front_matter",
        r"서문|머리말|들어가는\s*[말글]|시작하며|프롤로그|\b(?:preface|foreword|introduction|prologue)\b",
        1.0,
        "strong",
        flags=re.IGNORECASE,
    ),
    _rule(
        "back_matter",
        r"부록|참고\s*문헌|찾아보기|색인|\b(?:appendix|bibliography|index|references)\b",
        1.0,
        "strong",
        flags=re.IGNORECASE,
    ),
    # --- Scoring classes: each distinct class matched adds its weight ---
    _rule("numbered", r"^\d+[.\s-]", 0.08, "scoring", scope="line"),
    _rule("chapter_word", r"^제\s*\d+\s*[장절]|^(?:chapter|part)\s*\d+", 0.08, "scoring", scope="line", flags=re.IGNORECASE),
    _rule("lettered", r"^[가-힣A-Za-z]\s*[.)]\s", 0.08, "scoring", scope="line"),
    _rule("page_trailer", r"(?:=|\.{2,}|…+|·{2,})\s*\d+\s*$", 0.08, "scoring", scope="line"),
    _rule(
        "preface_afterword",
        r"들어가는\s*[글말]|나가는\s*글|맺음말|에필로그|프롤로그|\b(?:preface|epilogue|afterword)\b",
        0.08,
        "scoring",
        scope="line",
        flags=re.IGNORECASE,
    ),
    # --- Line filters used by text cleanup ---
    _rule("toc_header", r"^(?:목차|차례|contents|table of contents|table|index)$", 1.0, "line_drop", flags=re.IGNORECASE),
    _rule("page_number_only", r"^(?:page|페이지)\b|^\d+\s*$", 1.0, "line_drop", flags=re.IGNORECASE),
    _rule("separator_only", r"^[|\-=\s]+$", 1.0, "line_drop"),
    _rule("keep_numbered", r"^\d+[.\s-]", 1.0, "line_keep"),
    _rule("keep_division", r"^제\s*\d+\s*[장절편부]|^\d+\s*장\s", 1.0, "line_keep"),
    _rule("keep_lettered", r"^[가-힣]\s*[.\s]", 1.0, "line_keep"),
    _rule("keep_roman", r"^[IVX]+[.\s]", 1.0, "line_keep", flags=re.IGNORECASE),
    _rule("keep_matter", r"^(?:부록|참고\s*문헌|색인|찾아보기)", 1.0, "line_keep"),
    _rule("keep_intro_outro", r"^(?:들어가는|나가는)\s*[글말]", 1.0, "line_keep"),
    _rule("keep_page_trailer", r"=\s*\d+\s*$", 1.0, "line_keep"),
    _rule("keep_decimal", r"^[\d.]+\s+[가-힣A-Za-z]", 1.0, "line_keep"),
    _rule("keep_english_division", r"^(?:chapter|part|section)\s*\d+", 1.0, "line_keep", flags=re.IGNORECASE),
)


class RuleEngine:
    """Evaluates one category of ``RULES`` against a text or a line."""

    def __init__(self, rules: Sequence[Rule] = RULES) -> None:
        self._by_category: dict[str, tuple[Rule, ...]] = {}
        for rule in rules:
            self._by_category[rule.category] = self._by_category.get(rule.category, ()) + (rule,)

    def rules(self, category: Category) -> tuple[Rule, ...]:
        return self._by_category.get(category, ())

    def matching(self, text: str, category: Category) -> list[Rule]:
        return [rule for rule in self.rules(category) if rule.matches(text)]

    def first_match(self, text: str, category: Category) -> Rule | None:
        for rule in self.rules(category):
            if rule.matches(text):
                return rule
        return None

    def weight(self, text: str, category: Category) -> float:
        return sum(rule.weight for rule in self.matching(text, category))

    def line_matches(self, line: str, category: Category) -> bool:
        """True if ``line`` as a whole matches any rule of ``category``."""
        return any(rule.pattern.search(line) for rule in self.rules(category))


DEFAULT_ENGINE = RuleEngine()


# ---------------------------------------------------------------------------
# Field aliases
# ---------------------------------------------------------------------------

# Ordered most to least specific. The first alias holding usable text wins.
TOC_FIELD_ALIASES: tuple[str, ...] = (
    "tableOfContents",
    "toc",
    "contents",
    "outline",
    "structure",
    "chapters",
    "sections",
    "summary",
    "description",
    "index",
)

SEARCH_HIT_TOC_ALIASES: tuple[str, ...] = (
    "tableOfContents",
    "toc",
    "TOC",
    "contents",
    "summary",
    "description",
    "detail",
    "outline",
    "structure",
)

SEARCH_HIT_TITLE_ALIASES: tuple[str, ...] = ("title_info", "TITLE", "title", "titleInfo")

SEARCH_HIT_LIST_ALIASES: tuple[str, ...] = ("result", "docs", "items", "documents")

TOC_URL_ALIASES: tuple[str, ...] = ("BOOK_TB_CNT_URL", "TOC_URL", "tocUrl")


def _as_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, list) and value and all(isinstance(item, str) for item in value):
        return "\n".join(value)
    return None


def lookup(record: Mapping[str, Any], aliases: Iterable[str]) -> str | None:
    """Return the first alias of ``record`` holding usable text."""
    for alias in aliases:
        text = _as_text(record.get(alias))
        if text is not None:
            return text
    return None


def lookup_list(record: Mapping[str, Any], aliases: Iterable[str]) -> list[Any]:
    for alias in aliases:
        value = record.get(alias)
        if isinstance(value, list):
            return value
    return []


def iter_alias_values(data: Any, aliases: Sequence[str], max_depth: int = 5) -> Iterator[str]:
    """Yield alias values from a JSON tree, depth first, parents before children."""

    def walk(node: Any, depth: int) -> Iterator[str]:
        if depth > max_depth:
            return
        if isinstance(node, Mapping):
            for alias in aliases:
                text = _as_text(node.get(alias))
                if text is not None:
                    yield text
            children: Iterable[Any] = node.values()
        elif isinstance(node, list):
            children = node
        else:
            return
        for child in children:
            if isinstance(child, (Mapping, list)):
                yield from walk(child, depth + 1)

    yield from walk(data, 0)


def find_in_tree(
    data: Any,
    aliases: Sequence[str],
    accept: Callable[[str], str | None],
    max_depth: int = 5,
) -> str | None:
    """Return the first alias value in ``data`` that ``accept`` turns into text."""
    for value in iter_alias_values(data, aliases, max_depth):
        result = accept(value)
        if result:
            return result
    return None
