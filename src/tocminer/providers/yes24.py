"""YES24."""

from __future__ import annotations

from typing import Optional

from selectolax.lexbor import LexborHTMLParser

from .base import SiteProfile, SiteScraper

YES24 = SiteProfile(
    name="yes24",
    base_url="http://www.yes24.com",
    search_url="http://www.yes24.com/searchCorner/Search?domain=ALL&query={query}",
    link_selectors=(
        "#yesSchList .goodsList .goods_info .goods_name a",
        "#yesSchList .gd_name",
        ".goodsList .item .gd_name a",
        ".searchResult .goods_info .goods_name a",
        ".schGoods .gd_name a",
    ),
    toc_selectors=(
        "#infoset_toc .infoSetCont_wrap",
        ".infoset_tab_content_text",
        "#infoset_toc",
        ".infoset_contents",
        ".book_info .toc",
        ".gd_infoTbl .toc",
        "#tab03 .infoset_text",
    ),
    detail_url_markers=("Goods/", "goods_id="),
    widget_labels=("더보기", "접기", "펼쳐보기", "닫기", "상품정보"),
)


class Yes24Scraper(SiteScraper):
    name = "yes24"
    profile = YES24

    def fallback_toc(self, tree: LexborHTMLParser) -> Optional[str]:
        # Some titles only publish the contents as an image with a long alt text.
        for node in tree.css("#infoset_toc img"):
            alt = node.attributes.get("alt") or ""
            if ("목차" in alt or "차례" in alt) and len(alt) > self.min_length:
                return self.clean(alt)
        return None
