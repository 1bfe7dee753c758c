"""
Tests for the TocService facade.
"""

import json

import pytest
import pytest_asyncio
from tests.helpers import FakeExtractor, FakeFetcher
from tocminer import TocService
from tocminer.config.config import Config
from tocminer.net.http_client import HttpFetcher
from tocminer.providers.aggregator import CACHE_METHOD

DETAIL = "https://lib.example.test/NL/contents/detail.do?viewKey=CNTS-001"


def json_ld_page(toc: str) -> str:
    payload = json.dumps({"@type": "Book", "tableOfContents": toc}, ensure_ascii=False)
    return f'<html><script type="application/ld+json">{payload}</script></html>'


@pytest.fixture
def routed_fetcher(korean_toc) -> FakeFetcher:
    fetcher = FakeFetcher()
    fetcher.add_html(DETAIL, json_ld_page(korean_toc))
    return fetcher


@pytest_asyncio.fixture
async def service(test_config, routed_fetcher):
    async with TocService(test_config, fetcher=routed_fetcher) as svc:
        yield svc


@pytest.mark.unit
class TestTocService:
    @pytest.mark.asyncio
    async def test_extract(self, service, target, korean_toc):
        result = await service.extract(target)
        assert result.success
        assert result.method == "json_ld"
        assert result.content == korean_toc
        assert service.get_statistics().method_breakdown["json_ld"].successes == 1

    @pytest.mark.asyncio
    async def test_find_falls_back_to_catalogue(self, service, target):
        result = await service.find(target)

        assert result.method == "json_ld"
        breakdown = service.get_statistics().method_breakdown
        assert {"kyobo", "aladin", "yes24", "json_ld"} <= set(breakdown)
        assert breakdown["kyobo"].successes == 0

    @pytest.mark.asyncio
    async def test_find_prefers_bookstores_and_caches(self, service, target, english_toc):
        service.aggregator.providers = (FakeExtractor("kyobo", english_toc),)

        first = await service.find(target)
        second = await service.find(target)

        assert first.method == "kyobo"
        assert second.method == CACHE_METHOD
        assert second.content == english_toc

    @pytest.mark.asyncio
    async def test_scrape_all(self, service, target, english_toc, korean_toc):
        service.aggregator.providers = (FakeExtractor("kyobo", english_toc), FakeExtractor("yes24", korean_toc))
        results = await service.scrape_all(target)
        assert {r.method for r in results} == {"kyobo", "yes24"}

    @pytest.mark.asyncio
    async def test_aggregator_disabled(self, test_config, routed_fetcher, target):
        config = Config.model_validate({**test_config.model_dump(), "aggregator": {"enabled": False}})
        async with TocService(config, fetcher=routed_fetcher) as svc:
            assert svc.aggregator is None
            assert await svc.scrape_multi_source(target) is None
            assert await svc.scrape_all(target) == []
            assert (await svc.find(target)).method == "json_ld"
        assert not any(url.startswith("https://search.kyobobook") for url, _ in routed_fetcher.calls)

    def test_unknown_provider(self, test_config):
        config = Config.model_validate({**test_config.model_dump(), "aggregator": {"providers": ["nowhere"]}})
        with pytest.raises(ValueError, match="Unknown providers"):
            TocService(config, fetcher=FakeFetcher())

    @pytest.mark.asyncio
    async def test_statistics_survive_restart(self, test_config, routed_fetcher, target):
        async with TocService(test_config, fetcher=routed_fetcher) as svc:
            await svc.extract(target)
            before = svc.get_statistics()

        assert svc.snapshot_path.exists()
        async with TocService(test_config, fetcher=routed_fetcher) as restarted:
            assert restarted.get_statistics() == before

    @pytest.mark.asyncio
    async def test_snapshot_export_import(self, service, target, test_config):
        await service.extract(target)
        other = TocService(test_config, fetcher=FakeFetcher())
        assert other.import_snapshot(service.export_snapshot())
        assert other.get_statistics().total_attempts == service.get_statistics().total_attempts
        assert other.import_snapshot(b"{}") is True
        assert other.import_snapshot(b"[]") is False

    @pytest.mark.asyncio
    async def test_owns_default_fetcher(self, test_config):
        svc = TocService(test_config)
        assert isinstance(svc.fetcher, HttpFetcher)
        await svc.initialize()
        assert svc.fetcher.session is not None
        await svc.close()
        assert svc.fetcher.session is None

    @pytest.mark.asyncio
    async def test_shared_session_context(self, service):
        assert service.registry.get("session_txt").session is service.session
        assert service.registry.get("session_toc_url").session is service.session
