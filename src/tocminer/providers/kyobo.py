"""Kyobo Book Centre."""

from __future__ import annotations

from .base import SiteProfile, SiteScraper

KYOBO = SiteProfile(
    name="kyobo",
    base_url="https://search.kyobobook.co.kr",
    search_url="https://search.kyobobook.co.kr/web/search?vPstrKeyWord={query}",
    link_selectors=(
        ".prod_info .title a",
        ".list_search_result .title a",
        ".search_list .prod_area .title a",
        ".prod_item .title a",
        "a.prod_info",
    ),
    toc_selectors=(
        "#tabContent2",
        ".tab_contents .book_contents",
        ".book_contents_item",
        ".book_index",
        ".table_of_contents",
        ".contents_wrap",
        '[data-tab="contents"]',
    ),
)


class KyoboScraper(SiteScraper):
    name = "kyobo"
    profile = KYOBO
