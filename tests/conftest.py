"""
Shared fixtures for tocminer tests.

Network access is never needed: strategies and providers run against
``FakeFetcher`` URL tables, and ``HttpFetcher`` tests use aioresponses.
"""

# Standard library imports
import asyncio
from typing import AsyncGenerator

# Third-party imports
import pytest
import pytest_asyncio

# Local imports
from tests.helpers import FakeFetcher
from tocminer.config.config import Config, ExtractionSettings, LibraryConfig
from tocminer.extractor.models import BookTarget
from tocminer.monitoring.performance import PerformanceMonitor

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel any asyncio task a test leaves behind."""
    tasks_before = asyncio.all_tasks()
    yield
    new_tasks = asyncio.all_tasks() - tasks_before

    for task in new_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


# ============================================================================
# Sample Data
# ============================================================================

KOREAN_TOC = "\n".join(
    [
        "들어가는 글",
        "제1장 데이터 과학이란 무엇인가",
        "제2장 파이썬으로 시작하는 분석",
        "제3장 통계적 사고의 기초 다지기",
        "제4장 머신러닝 모델 만들어 보기",
        "제5장 딥러닝과 신경망의 구조 이해",
        "나가는 글",
        "부록 A 개발 환경 설정하기",
        "찾아보기",
    ]
)

ENGLISH_TOC = "\n".join(
    [
        "Preface",
        "Chapter 1 Getting started with the toolkit",
        "Chapter 2 Reading and cleaning raw data",
        "Chapter 3 Building the first pipeline",
        "Chapter 4 Testing and deployment",
        "Appendix A Configuration reference",
    ]
)


@pytest.fixture
def korean_toc() -> str:
    return KOREAN_TOC


@pytest.fixture
def english_toc() -> str:
    return ENGLISH_TOC


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def library_config() -> LibraryConfig:
    return LibraryConfig(base_url="https://lib.example.test", api_key="test-key")


@pytest.fixture
def fast_settings() -> ExtractionSettings:
    """Cascade settings with a short per-strategy timeout."""
    return ExtractionSettings(strategy_timeout=0.2)


@pytest.fixture
def test_config(tmp_path, library_config) -> Config:
    """Configuration pointing every file at ``tmp_path``."""
    return Config.model_validate(
        {
            "library": library_config.model_dump(),
            "fetch": {"timeout": 1.0},
            "extraction": {"strategy_timeout": 0.5},
            "aggregator": {"provider_timeout": 0.5},
            "monitoring": {"snapshot_path": str(tmp_path / "stats" / "snapshot.json")},
        }
    )


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def monitor() -> PerformanceMonitor:
    return PerformanceMonitor()


@pytest.fixture
def target() -> BookTarget:
    return BookTarget(title="데이터 과학 입문", author="홍길동", isbn="978-89-1234-567-8", control_no="CNTS-001")
