"""Tests for the ResultStore search / add-company state transitions."""

from unittest.mock import MagicMock

import pytest

from fin_compete.errors import MalformedResponseError, ServiceUnavailableError
from fin_compete.models import AnalysisResult, LLMUsage, LoadingState, MetricRecord, SourceCitation
from fin_compete.result_store import ADD_FAILED_MESSAGE, AddStatus, ResultStore


def _record(name, ticker):
    return MetricRecord(name=name, ticker=ticker, price="$10.00")


def _sources(*uris):
    return [SourceCitation(title=u, uri=u) for u in uris]


def _usage(calls=1):
    u = LLMUsage()
    for _ in range(calls):
        u.add(100, 50, 1.0, 1.0)
    return u


def _base_result():
    return AnalysisResult(
        companies=[_record("Walmart Inc.", "WMT"), _record("Target Corporation", "TGT"), _record("Costco", "COST")],
        sources=_sources("https://a.com", "https://b.com"),
        query="Walmart",
        llm_usage=_usage(),
    )


def _engine_returning(record, sources=(), calls=1):
    engine = MagicMock()
    fetched = AnalysisResult(companies=[record], sources=list(sources), llm_usage=_usage(calls))
    engine.analyze_single_company.return_value = (record, list(sources), fetched)
    return engine


@pytest.fixture
def store():
    s = ResultStore(merged_source_limit=12)
    s.apply_fresh_search(_base_result())
    return s


class TestSearch:
    def test_success_replaces_result(self):
        s = ResultStore()
        s.apply_fresh_search(_base_result())
        engine = MagicMock()
        fresh = AnalysisResult(companies=[_record("Apple", "AAPL")], query="Apple")
        engine.analyze_competitors.return_value = fresh

        state = s.search("Apple", engine)

        assert state is LoadingState.SUCCESS
        assert s.result is fresh
        assert [c.ticker for c in s.result.companies] == ["AAPL"]
        assert s.error_message is None

    def test_failure_sets_error_state(self):
        s = ResultStore()
        s.apply_fresh_search(_base_result())
        engine = MagicMock()
        engine.analyze_competitors.side_effect = ServiceUnavailableError("503 x3")

        state = s.search("Apple", engine)

        assert state is LoadingState.ERROR
        assert s.result is None
        assert "server is busy" in s.error_message
        assert "503" not in s.error_message

    def test_malformed_reply_message(self):
        s = ResultStore()
        engine = MagicMock()
        engine.analyze_competitors.side_effect = MalformedResponseError("no JSON array")

        s.search("Apple", engine)

        assert s.error_message == "Failed to parse financial data from API response."

    def test_unexpected_error_is_generic(self):
        s = ResultStore()
        engine = MagicMock()
        engine.analyze_competitors.side_effect = KeyError("boom")

        assert s.search("Apple", engine) is LoadingState.ERROR
        assert s.error_message == "An unexpected error occurred."

    def test_empty_result_rejected(self):
        s = ResultStore()
        with pytest.raises(ValueError):
            s.apply_fresh_search(AnalysisResult())
        assert s.state is LoadingState.IDLE


class TestAddCompanyPreCheck:
    @pytest.mark.parametrize("query", ["tgt", "  TGT ", "target corporation", "WMT"])
    def test_duplicate_query_never_calls_engine(self, store, query):
        engine = MagicMock()
        before = store.result

        outcome = store.add_company(query, engine)

        assert outcome.status is AddStatus.DUPLICATE
        assert "already in the list" in outcome.message
        engine.analyze_single_company.assert_not_called()
        assert store.result is before

    def test_message_names_existing_company(self, store):
        outcome = store.add_company("cost", MagicMock())
        assert outcome.message == 'The company "Costco" (COST) is already in the list.'

    def test_without_result_fails(self):
        engine = MagicMock()
        outcome = ResultStore().add_company("AAPL", engine)
        assert outcome.status is AddStatus.FAILED
        engine.analyze_single_company.assert_not_called()


class TestAddCompanyPostCheck:
    def test_resolved_ticker_already_present(self, store):
        engine = _engine_returning(_record("Target Corp", "tgt"), _sources("https://new.com"))
        before = store.result

        outcome = store.add_company("Target", engine)

        assert outcome.status is AddStatus.DUPLICATE
        assert outcome.message == 'The company "Target Corp" (tgt) is already in the list.'
        assert outcome.record.name == "Target Corp"
        engine.analyze_single_company.assert_called_once_with("Target")
        assert store.result is before
        assert len(store.result.sources) == 2


class TestAddCompanySuccess:
    def test_appends_and_keeps_target_first(self, store):
        engine = _engine_returning(_record("Kroger", "KR"), _sources("https://b.com", "https://c.com"))

        outcome = store.add_company("KR", engine)

        assert outcome.added
        assert [c.ticker for c in store.result.companies] == ["WMT", "TGT", "COST", "KR"]
        assert [s.uri for s in store.result.sources] == ["https://a.com", "https://b.com", "https://c.com"]
        assert store.result.query == "Walmart"
        assert store.result.llm_usage.call_count == 2
        assert store.state is LoadingState.SUCCESS
        assert store.adding is False

    def test_sources_capped_at_twelve(self, store):
        new = _sources(*(f"https://n{i}.com" for i in range(15)))
        engine = _engine_returning(_record("Kroger", "KR"), new)

        store.add_company("KR", engine)

        uris = [s.uri for s in store.result.sources]
        assert len(uris) == 12
        assert len(set(uris)) == 12
        assert uris[:2] == ["https://a.com", "https://b.com"]

    def test_engine_failure_leaves_state_unchanged(self, store):
        engine = MagicMock()
        engine.analyze_single_company.side_effect = ServiceUnavailableError("down")
        before = store.result

        outcome = store.add_company("KR", engine)

        assert outcome.status is AddStatus.FAILED
        assert outcome.message == ADD_FAILED_MESSAGE
        assert store.result is before
        assert store.adding is False


class TestPendingRequests:
    def test_search_request_marks_searching_until_run(self):
        s = ResultStore()
        engine = MagicMock()
        engine.analyze_competitors.return_value = _base_result()

        assert s.request_search("  Walmart ") is True
        assert s.searching
        assert s.pending_search == "Walmart"
        engine.analyze_competitors.assert_not_called()

        assert s.run_pending_search(engine) is LoadingState.SUCCESS
        engine.analyze_competitors.assert_called_once_with("Walmart")
        assert not s.searching

    def test_second_search_ignored_while_pending(self):
        s = ResultStore()
        s.request_search("Walmart")
        assert s.request_search("Target") is False
        assert s.pending_search == "Walmart"

    def test_blank_search_not_queued(self):
        s = ResultStore()
        assert s.request_search("   ") is False
        assert not s.searching

    def test_failed_search_clears_pending(self):
        s = ResultStore()
        engine = MagicMock()
        engine.analyze_competitors.side_effect = ServiceUnavailableError("down")
        s.request_search("Walmart")

        assert s.run_pending_search(engine) is LoadingState.ERROR
        assert not s.searching

    def test_add_request_marks_adding_until_run(self, store):
        engine = _engine_returning(_record("Kroger", "KR"))

        assert store.request_add("KR") is True
        assert store.adding
        assert store.request_add("MSFT") is False
        engine.analyze_single_company.assert_not_called()

        outcome = store.run_pending_add(engine)

        assert outcome.added
        engine.analyze_single_company.assert_called_once_with("KR")
        assert not store.adding

    def test_failed_add_clears_pending(self, store):
        engine = MagicMock()
        engine.analyze_single_company.side_effect = RuntimeError("boom")
        store.request_add("KR")

        outcome = store.run_pending_add(engine)

        assert outcome.status is AddStatus.FAILED
        assert not store.adding

    def test_add_without_result_not_queued(self):
        s = ResultStore()
        assert s.request_add("KR") is False
        assert s.run_pending_add(MagicMock()) is None
