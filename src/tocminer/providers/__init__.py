"""
Bookstore providers and the multi-source aggregator that runs them.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from tocminer.config.config import AggregatorConfig, FetchConfig
from tocminer.net.http_client import Fetcher

from .aggregator import MultiSourceAggregator
from .aladin import AladinScraper
from .base import SiteProfile, SiteScraper
from .cache import TTLCache
from .kyobo import KyoboScraper
from .yes24 import Yes24Scraper

PROVIDER_CLASSES: Dict[str, type[SiteScraper]] = {
    cls.name: cls for cls in (KyoboScraper, AladinScraper, Yes24Scraper)
}


def build_providers(
    fetcher: Fetcher,
    config: AggregatorConfig,
    fetch_config: Optional[FetchConfig] = None,
) -> List[SiteScraper]:
    """Instantiate the configured providers in listed order."""
    unknown = [name for name in config.providers if name not in PROVIDER_CLASSES]
    if unknown:
        raise ValueError(f"Unknown providers {unknown}. Available providers: {list(PROVIDER_CLASSES)}")
    return [
        PROVIDER_CLASSES[name](
            fetcher,
            fetch_config=fetch_config,
            proxy_url=config.proxy_url,
            min_length=config.min_content_length,
        )
        for name in config.providers
    ]


__all__ = [
    "AladinScraper",
    "KyoboScraper",
    "MultiSourceAggregator",
    "PROVIDER_CLASSES",
    "SiteProfile",
    "SiteScraper",
    "TTLCache",
    "Yes24Scraper",
    "build_providers",
]
