"""Aladin."""

from __future__ import annotations

from typing import Optional

from selectolax.lexbor import LexborHTMLParser

from .base import SiteProfile, SiteScraper

ALADIN = SiteProfile(
    name="aladin",
    base_url="https://www.aladin.co.kr",
    search_url="https://www.aladin.co.kr/search/wsearchresult.aspx?SearchWord={query}&SearchTarget=All",
    link_selectors=(
        ".ss_book_box .ss_book_list .bo3",
        ".ss_book_box .ss_book_list .bo3 a",
        ".book_list .book_item a",
        ".itemS3-title a",
        ".item_info .bo3 a",
    ),
    toc_selectors=(
        "#ContentAreaDiv .contents_WrapDiv",
        ".Ere_prod_article_wrap .Ere_prod_article_index",
        ".tabContents3",
        ".book_info_inner .book_contents",
        ".prod_detail .contents",
        "#div_ContentList",
        ".bookInfoContents",
    ),
    widget_labels=("접기", "펼치기", "더보기"),
)


class AladinScraper(SiteScraper):
    name = "aladin"
    profile = ALADIN

    def fallback_toc(self, tree: LexborHTMLParser) -> Optional[str]:
        # The contents tab is sometimes rendered into a separate panel.
        if tree.css_first('a[href*="tab=3"], a[href*="ContentTab=3"]') is None:
            return None
        for selector in ("#pnlContent3", "#ContentArea3"):
            node = tree.css_first(selector)
            if node is not None:
                text = self.clean(node.text(separator="\n"))
                if len(text) > self.min_length:
                    return text
        return None
