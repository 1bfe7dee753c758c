from .fakes import FakeExtractor, FakeFetcher, FixedScorer, fetch_failure, html_response, json_response
from .metric_delta import get_histogram_count, histogram_observes, metric_delta

__all__ = [
    "FakeExtractor",
    "FakeFetcher",
    "FixedScorer",
    "fetch_failure",
    "get_histogram_count",
    "histogram_observes",
    "html_response",
    "json_response",
    "metric_delta",
]
