"""Built-in extraction strategies."""

from .api import DirectApiStrategy, SearchResultsStrategy
from .base import BaseStrategy, NoCandidate
from .html import TargetedHtmlStrategy, UrlPatternsStrategy
from .session import SessionTocUrlStrategy, SessionTxtStrategy
from .structured import JsonLdStrategy, MetadataStrategy

__all__ = [
    "BaseStrategy",
    "DirectApiStrategy",
    "JsonLdStrategy",
    "MetadataStrategy",
    "NoCandidate",
    "SearchResultsStrategy",
    "SessionTocUrlStrategy",
    "SessionTxtStrategy",
    "TargetedHtmlStrategy",
    "UrlPatternsStrategy",
]
