"""
Application facade wiring configuration into a ready-to-use lookup service.
"""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import Optional, Type
from uuid import uuid4

import structlog
from structlog.contextvars import bound_contextvars

from tocminer.config.config import Config
from tocminer.extractor.confidence_scorer import ConfidenceScorer
from tocminer.extractor.models import BookTarget, ExtractionResult
from tocminer.extractor.orchestrator import ExtractionOrchestrator
from tocminer.extractor.registry import StrategyRegistry
from tocminer.extractor.validator import Validator
from tocminer.monitoring.performance import PerformanceMetrics, PerformanceMonitor
from tocminer.net.http_client import Fetcher, HttpFetcher
from tocminer.providers import MultiSourceAggregator, TTLCache, build_providers
from tocminer.session.context import SessionContext

logger = structlog.get_logger(__name__)


class TocService:
    """
    Table-of-contents lookups for one configuration.

    Owns the HTTP fetcher (unless one is injected), a shared replay session,
    the strategy cascade, the multi-source aggregator with its result cache,
    and the performance monitor that both of them report to.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        fetcher: Optional[Fetcher] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ) -> None:
        self.config = config if config is not None else Config()
        self._owns_fetcher = fetcher is None
        self.fetcher: Fetcher = fetcher if fetcher is not None else HttpFetcher(self.config.fetch)
        self.monitor = monitor if monitor is not None else PerformanceMonitor(self.config.monitoring.recent_results_limit)

        validator = Validator()
        scorer = ConfidenceScorer()
        self.session = SessionContext(self.fetcher, self.config.library.base_url, self.config.fetch)
        self.registry = StrategyRegistry.from_settings(
            self.fetcher,
            self.config.extraction,
            self.config.library,
            session=self.session,
            validator=validator,
        )
        self.orchestrator = ExtractionOrchestrator(
            self.registry,
            self.config.extraction,
            validator=validator,
            scorer=scorer,
            monitor=self.monitor,
        )

        aggregator_config = self.config.aggregator
        self.aggregator: Optional[MultiSourceAggregator] = None
        if aggregator_config.enabled:
            self.aggregator = MultiSourceAggregator(
                build_providers(self.fetcher, aggregator_config, self.config.fetch),
                TTLCache(aggregator_config.cache_ttl_seconds),
                aggregator_config,
                validator=validator,
                scorer=scorer,
                monitor=self.monitor,
            )
        self.logger = logger.bind(component="TocService")

    @property
    def snapshot_path(self) -> Optional[Path]:
        path = self.config.monitoring.snapshot_path
        return Path(path) if path else None

    async def initialize(self) -> None:
        if self._owns_fetcher and isinstance(self.fetcher, HttpFetcher):
            await self.fetcher.initialize()
        if self.snapshot_path is not None and self.monitor.load(self.snapshot_path):
            self.logger.info("Restored performance statistics", path=str(self.snapshot_path))

    async def close(self) -> None:
        if self.snapshot_path is not None:
            self.monitor.save(self.snapshot_path)
            self.logger.debug("Saved performance statistics", path=str(self.snapshot_path))
        if self._owns_fetcher and isinstance(self.fetcher, HttpFetcher):
            await self.fetcher.close()

    async def __aenter__(self) -> TocService:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    # --- lookups ---

    async def extract(self, target: BookTarget) -> ExtractionResult:
        """Run the ordered strategy cascade against the library catalogue."""
        with bound_contextvars(lookup_id=uuid4().hex[:12]):
            return await self.orchestrator.extract(target)

    async def scrape_multi_source(self, target: BookTarget) -> Optional[ExtractionResult]:
        """Best bookstore result, or ``None`` when disabled or nothing qualified."""
        if self.aggregator is None:
            return None
        with bound_contextvars(lookup_id=uuid4().hex[:12]):
            return await self.aggregator.scrape(target)

    async def scrape_all(self, target: BookTarget) -> list[ExtractionResult]:
        if self.aggregator is None:
            return []
        with bound_contextvars(lookup_id=uuid4().hex[:12]):
            return await self.aggregator.scrape_all(target)

    async def find(self, target: BookTarget) -> ExtractionResult:
        """Bookstores first, then the catalogue cascade."""
        with bound_contextvars(lookup_id=uuid4().hex[:12]):
            if self.aggregator is not None:
                result = await self.aggregator.scrape(target)
                if result is not None:
                    return result
                self.logger.info("No bookstore result, falling back to catalogue strategies", target=target.label)
            return await self.orchestrator.extract(target)

    # --- statistics ---

    def get_statistics(self) -> PerformanceMetrics:
        return self.monitor.get_statistics()

    def export_snapshot(self) -> bytes:
        return self.monitor.export_snapshot()

    def import_snapshot(self, data: bytes) -> bool:
        return self.monitor.import_snapshot(data)
