"""
Tests for result models and error types.
"""

import pytest
from tocminer.errors import AllStrategiesExhausted, FetchError, SessionError, failure_summary
from tocminer.extractor.models import ACCEPTED, ERROR, NO_CANDIDATE, BookTarget, ExtractionResult, StrategyAttempt

ATTEMPTS = (
    StrategyAttempt("json_ld", NO_CANDIDATE, "no structured data on detail page", elapsed_ms=12),
    StrategyAttempt("direct_api", ERROR, "HTTP 500 (https://lib.example.test/api)", elapsed_ms=40),
)


@pytest.mark.unit
class TestBookTarget:
    @pytest.mark.parametrize(
        "isbn, expected",
        [("978-89-1234-567-8", "9788912345678"), ("89-7914-063-x", "897914063X"), ("", None), ("--", None)],
    )
    def test_normalized_isbn(self, isbn, expected):
        assert BookTarget(isbn=isbn).normalized_isbn == expected

    def test_cache_key_prefers_isbn(self):
        assert BookTarget(title="A", isbn="978 89 1234 567 8").cache_key() == "isbn:9788912345678"

    def test_cache_key_normalizes_title(self):
        a = BookTarget(title="데이터 과학: 입문!").cache_key()
        b = BookTarget(title="데이터과학 입문").cache_key()
        assert a == b == "title:데이터과학입문"

    @pytest.mark.parametrize(
        "first, second",
        [("C++ Primer", "C Primer"), ("C# in Depth", "C in Depth"), ("R & D 입문", "RD 입문")],
    )
    def test_cache_key_keeps_distinguishing_symbols(self, first, second):
        assert BookTarget(title=first).cache_key() != BookTarget(title=second).cache_key()

    def test_cache_key_folds_case_and_width(self):
        assert BookTarget(title="Ｐｙｔｈｏｎ 입문").cache_key() == BookTarget(title="python입문").cache_key()

    def test_label(self):
        assert BookTarget(title="제목").label == "제목"
        assert BookTarget(isbn="978-1").label == "9781"
        assert BookTarget(control_no="CN1").label == "CN1"
        assert BookTarget().label == "<unknown>"


@pytest.mark.unit
class TestExtractionResult:
    def test_confidence_range(self):
        with pytest.raises(ValueError):
            ExtractionResult(success=True, method="m", confidence=1.2, response_time_ms=1, content="x")

    def test_success_needs_content(self):
        with pytest.raises(ValueError):
            ExtractionResult(success=True, method="m", confidence=0.5, response_time_ms=1)

    def test_all_failed(self):
        result = ExtractionResult.all_failed(ATTEMPTS, 52)
        assert not result.success
        assert result.method == "all-failed"
        assert "json_ld: no structured data on detail page" in result.error
        assert result.failure_reasons == [
            "json_ld: no structured data on detail page",
            "direct_api: HTTP 500 (https://lib.example.test/api)",
        ]

    def test_all_failed_without_attempts(self):
        assert ExtractionResult.all_failed((), 0).error == "No extraction strategies ran"

    def test_raise_for_failure(self):
        with pytest.raises(AllStrategiesExhausted) as exc_info:
            ExtractionResult.all_failed(ATTEMPTS, 52).raise_for_failure()
        assert len(exc_info.value.reasons) == 2

        ok = ExtractionResult(success=True, method="m", confidence=0.9, response_time_ms=1, content="x")
        assert ok.raise_for_failure() is ok

    def test_to_dict(self):
        attempts = ATTEMPTS + (StrategyAttempt("metadata", ACCEPTED, confidence=0.7, elapsed_ms=5),)
        result = ExtractionResult(
            success=True, method="metadata", confidence=0.7, response_time_ms=60, content="x", attempts=attempts
        )
        data = result.to_dict()
        assert data["method"] == "metadata"
        assert [a["outcome"] for a in data["attempts"]] == [NO_CANDIDATE, ERROR, ACCEPTED]


@pytest.mark.unit
class TestErrors:
    def test_fetch_error(self):
        error = FetchError("https://x.test", "HTTP 404", status=404)
        assert str(error) == "HTTP 404 (https://x.test)"
        assert error.status == 404

    def test_session_error(self):
        error = SessionError("https://x.test", "HTTP 503")
        assert str(error) == "Session handshake with https://x.test failed: HTTP 503"

    def test_failure_summary_lists_attempts(self):
        text = failure_summary("데이터 과학", ExtractionResult.all_failed(ATTEMPTS, 52))
        lines = text.split("\n")
        assert lines[0] == 'No table of contents found for "데이터 과학".'
        assert "  1. json_ld (no_candidate, 12 ms): no structured data on detail page" in lines
        assert lines[-1] == "Total time: 52 ms"

    def test_failure_summary_with_error_only(self):
        result = ExtractionResult(success=False, method="x", confidence=0.0, response_time_ms=3, error="boom")
        assert "Reason: boom" in failure_summary("t", result)
