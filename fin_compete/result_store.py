# fin_compete/result_store.py
"""
ResultStore: the single owner of the current comparison set.

All writes go through ``search`` / ``apply_fresh_search`` / ``add_company``.
Each builds a complete new AnalysisResult before swapping it in, so a failed
operation never leaves a half-merged state behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fin_compete.config import settings
from fin_compete.errors import FinCompeteError
from fin_compete.models import AnalysisResult, LLMUsage, LoadingState, MetricRecord
from fin_compete.query_engine import QueryEngine, dedupe_sources

logger = logging.getLogger(__name__)

ADD_FAILED_MESSAGE = "Could not add company. Please try again."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred."


def _normalize(value: str) -> str:
    return (value or "").strip().upper()


def duplicate_message(record: MetricRecord) -> str:
    return f'The company "{record.name}" ({record.ticker}) is already in the list.'


class AddStatus(str, Enum):
    ADDED = "added"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class AddCompanyOutcome:
    """What happened to one add-company request. Shown to the user as-is."""

    status: AddStatus
    message: str = ""
    record: Optional[MetricRecord] = None

    @property
    def added(self) -> bool:
        return self.status is AddStatus.ADDED


class ResultStore:
    """
    In-memory state for one browser session.

    Attributes
    ----------
    result : AnalysisResult or None
        Current comparison set; ``companies[0]`` is always the searched target.
    state : LoadingState
        Lifecycle of the main search slot.
    error_message : str or None
        User-facing message for the last failed search.
    pending_search, pending_add : str or None
        Query accepted from the page but not yet run. The page draws the
        matching control disabled while one is set.
    """

    def __init__(self, merged_source_limit: Optional[int] = None) -> None:
        self.result: Optional[AnalysisResult] = None
        self.state: LoadingState = LoadingState.IDLE
        self.error_message: Optional[str] = None
        self.pending_search: Optional[str] = None
        self.pending_add: Optional[str] = None
        self._merged_source_limit = merged_source_limit or settings.source_cap_merged

    @property
    def searching(self) -> bool:
        return self.pending_search is not None

    @property
    def adding(self) -> bool:
        return self.pending_add is not None

    # ------------------------------------------------------------------
    # In-flight requests
    # ------------------------------------------------------------------

    def request_search(self, query: str) -> bool:
        """Queue a search; ignored while empty or while another search is pending."""
        query = (query or "").strip()
        if not query or self.searching:
            return False
        self.pending_search = query
        return True

    def request_add(self, query: str) -> bool:
        """Queue an add-company request; ignored while empty or already adding."""
        query = (query or "").strip()
        if not query or self.adding or self.result is None:
            return False
        self.pending_add = query
        return True

    def run_pending_search(self, engine: QueryEngine) -> LoadingState:
        if self.pending_search is None:
            return self.state
        try:
            return self.search(self.pending_search, engine)
        finally:
            self.pending_search = None

    def run_pending_add(self, engine: QueryEngine) -> Optional[AddCompanyOutcome]:
        if self.pending_add is None:
            return None
        try:
            return self.add_company(self.pending_add, engine)
        finally:
            self.pending_add = None

    # ------------------------------------------------------------------
    # Fresh search
    # ------------------------------------------------------------------

    def apply_fresh_search(self, result: AnalysisResult) -> None:
        """Replace the whole comparison set; nothing is merged with prior state."""
        if not result.companies:
            raise ValueError("a successful search must contain at least one company")
        self.result = result
        self.state = LoadingState.SUCCESS
        self.error_message = None

    def search(self, query: str, engine: QueryEngine) -> LoadingState:
        """Run a competitor search and record SUCCESS or ERROR."""
        self.state = LoadingState.LOADING
        self.error_message = None
        self.result = None

        try:
            result = engine.analyze_competitors(query)
        except FinCompeteError as exc:
            logger.error("Search for %r failed: %s", query, exc)
            self._fail(exc.user_message)
        except Exception as exc:
            logger.exception("Search for %r failed unexpectedly: %s", query, exc)
            self._fail(UNEXPECTED_ERROR_MESSAGE)
        else:
            self.apply_fresh_search(result)
        return self.state

    def _fail(self, message: str) -> None:
        self.result = None
        self.state = LoadingState.ERROR
        self.error_message = message

    # ------------------------------------------------------------------
    # Add company
    # ------------------------------------------------------------------

    def find_duplicate(self, query: str) -> Optional[MetricRecord]:
        """Existing record whose ticker or name equals ``query`` (trimmed, case-folded)."""
        if self.result is None:
            return None
        wanted = _normalize(query)
        for company in self.result.companies:
            if _normalize(company.ticker) == wanted or _normalize(company.name) == wanted:
                return company
        return None

    def add_company(self, query: str, engine: QueryEngine) -> AddCompanyOutcome:
        """
        Append one company to the current result.

        1. Pre-check the raw query against existing tickers/names (no call).
        2. Query the engine for the single company.
        3. Post-check the resolved ticker against existing tickers.
        4. Append the record and merge sources (de-duplicated, capped).
        """
        if self.result is None:
            return AddCompanyOutcome(AddStatus.FAILED, ADD_FAILED_MESSAGE)

        existing = self.find_duplicate(query)
        if existing is not None:
            logger.info("Add company %r rejected before query: duplicate of %s", query, existing.ticker)
            return AddCompanyOutcome(AddStatus.DUPLICATE, duplicate_message(existing), existing)

        try:
            record, sources, fetched = engine.analyze_single_company(query)
        except Exception as exc:
            logger.error("Add company %r failed: %s", query, exc)
            return AddCompanyOutcome(AddStatus.FAILED, ADD_FAILED_MESSAGE)

        current = self.result
        if any(c.ticker_key == record.ticker_key for c in current.companies):
            logger.info("Add company %r resolved to existing ticker %s", query, record.ticker)
            return AddCompanyOutcome(AddStatus.DUPLICATE, duplicate_message(record), record)

        usage = LLMUsage()
        usage.merge(current.llm_usage)
        usage.merge(fetched.llm_usage)

        self.result = current.model_copy(update={
            "companies": [*current.companies, record],
            "sources": dedupe_sources(
                [*current.sources, *sources], self._merged_source_limit
            ),
            "llm_usage": usage,
        })
        logger.info("Added %s (%s) to comparison set", record.name, record.ticker)
        return AddCompanyOutcome(AddStatus.ADDED, f"Added {record.name} ({record.ticker}).", record)
