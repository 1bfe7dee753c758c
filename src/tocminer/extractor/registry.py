"""
The fixed, priority-ordered list of extraction strategies.

Order is policy: cheap strategies reading structured data run first and
the expensive, least reliable URL scan runs last. Changing it changes both
average latency and success rate, so it comes from configuration
(``ExtractionSettings.strategy_order``) and is never implied by import order.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence

import structlog

from tocminer.config.config import ExtractionSettings, LibraryConfig
from tocminer.net.http_client import Fetcher
from tocminer.session.context import SessionContext

from .protocols import Extractor
from .strategies import (
    BaseStrategy,
    DirectApiStrategy,
    JsonLdStrategy,
    MetadataStrategy,
    SearchResultsStrategy,
    SessionTocUrlStrategy,
    SessionTxtStrategy,
    TargetedHtmlStrategy,
    UrlPatternsStrategy,
)
from .strategies.session import SessionStrategy
from .validator import Validator

logger = structlog.get_logger(__name__)

STRATEGY_CLASSES: Dict[str, type[BaseStrategy]] = {
    cls.name: cls
    for cls in (
        JsonLdStrategy,
        DirectApiStrategy,
        MetadataStrategy,
        TargetedHtmlStrategy,
        SearchResultsStrategy,
        SessionTocUrlStrategy,
        SessionTxtStrategy,
        UrlPatternsStrategy,
    )
}


class StrategyRegistry:
    """An immutable, ordered collection of extractors."""

    def __init__(self, extractors: Sequence[Extractor]) -> None:
        names = [extractor.name for extractor in extractors]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate strategy names: {duplicates}")
        self._extractors: tuple[Extractor, ...] = tuple(extractors)

    @classmethod
    def from_settings(
        cls,
        fetcher: Fetcher,
        settings: ExtractionSettings,
        library: Optional[LibraryConfig] = None,
        *,
        session: Optional[SessionContext] = None,
        validator: Optional[Validator] = None,
    ) -> StrategyRegistry:
        """Instantiate the built-in strategies in configured order, skipping disabled ones."""
        library = library if library is not None else LibraryConfig()
        for name in settings.strategy_order:
            if name not in STRATEGY_CLASSES:
                raise ValueError(
                    f"Invalid strategy '{name}' in strategy_order. Available strategies: {list(STRATEGY_CLASSES)}"
                )

        # Session strategies share one replayed session.
        if session is None and any(
            issubclass(STRATEGY_CLASSES[name], SessionStrategy) for name in settings.strategy_order
        ):
            session = SessionContext(fetcher, library.base_url)

        extractors: List[Extractor] = []
        for name in settings.strategy_order:
            if not settings.is_enabled(name):
                logger.debug("Strategy disabled", strategy=name)
                continue
            strategy_cls = STRATEGY_CLASSES[name]
            if issubclass(strategy_cls, SessionStrategy):
                extractors.append(strategy_cls(fetcher, library, validator, session=session))
            else:
                extractors.append(strategy_cls(fetcher, library, validator))
        return cls(extractors)

    def __iter__(self) -> Iterator[Extractor]:
        return iter(self._extractors)

    def __len__(self) -> int:
        return len(self._extractors)

    def names(self) -> List[str]:
        return [extractor.name for extractor in self._extractors]

    def get(self, name: str) -> Optional[Extractor]:
        for extractor in self._extractors:
            if extractor.name == name:
                return extractor
        return None

    def sessions(self) -> List[SessionContext]:
        """Distinct sessions used by the session strategies, in strategy order."""
        found: List[SessionContext] = []
        for extractor in self._extractors:
            if isinstance(extractor, SessionStrategy) and all(s is not extractor.session for s in found):
                found.append(extractor.session)
        return found

    def prepare_run(self) -> None:
        """Give each session one fresh handshake attempt for the coming run."""
        for session in self.sessions():
            session.clear_failure()
