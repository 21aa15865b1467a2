# fin_compete/query_engine.py
"""
QueryEngine: asks the web-search grounded LLM for a company's financial
snapshot (and its top competitors), then decodes the reply.

Flow per request:
  1. Build a prompt (competitor comparison or single company).
  2. Call the LLM with web search enabled, retrying transient 5xx failures
     with exponential backoff.
  3. Strip code fences, cut out the outermost [...] and decode it into
     MetricRecord objects.
  4. Collect grounding citations from the reply annotations, de-duplicated
     by URI.
"""

from __future__ import annotations

import itertools
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from fin_compete.config import settings
from fin_compete.errors import (
    MalformedResponseError,
    QueryError,
    ServiceUnavailableError,
    TransientServiceError,
)
from fin_compete.llm_client import LLMClient
from fin_compete.models import AnalysisResult, MetricRecord, SourceCitation

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_METRICS_LIST = """\
- Name
- Ticker
- Price
- Market Cap
- ROE
- ROIC
- EV/EBIT
- PER
- FCF per Share (Check Fiscal.ai/TIKR. If missing, calc: (Op. Cash Flow - CapEx) / Shares).
- Beta
- Ke (Cost of Equity)
- Kd (Cost of Debt)
- WACC
"""

_JSON_FORMAT_INSTRUCTION = """\
Format: JSON Array of objects.
Keys: "name", "ticker", "price", "marketCap", "roe", "roic", "evEbit", "per", "fcfPerShare", "beta", "ke", "kd", "wacc".
Values: Strings (e.g. "15.4%", "$145.20"). Use "-" if not found.
"""

_COMPETITOR_PROMPT_TEMPLATE = """\
Analyze "{query}" and its top 5 public competitors.

Task:
1. Identify the 5 most relevant public competitors.
2. Search for the latest financial data for the main company and these 5 competitors.

Prioritize sources like Yahoo Finance, TIKR, and Fiscal.ai.
For "FCF per Share", you MUST check Fiscal.ai or TIKR, or calculate it manually if the direct figure is missing.

Metrics to find:
{metrics}
{json_format}
Return ONLY valid JSON. The first object must be "{query}" itself.
"""

_SINGLE_COMPANY_PROMPT_TEMPLATE = """\
Analyze the company: "{query}".

Task: Search for the latest financial data for this specific company.

Prioritize sources like Yahoo Finance, TIKR, and Fiscal.ai.
For "FCF per Share", you MUST check Fiscal.ai or TIKR, or calculate it manually.

Metrics to find:
{metrics}
{json_format}
Return ONLY a JSON array containing a single object.
"""


def build_competitor_prompt(query: str) -> str:
    return _COMPETITOR_PROMPT_TEMPLATE.format(
        query=query.strip(),
        metrics=_METRICS_LIST,
        json_format=_JSON_FORMAT_INSTRUCTION,
    )


def build_single_company_prompt(query: str) -> str:
    return _SINGLE_COMPANY_PROMPT_TEMPLATE.format(
        query=query.strip(),
        metrics=_METRICS_LIST,
        json_format=_JSON_FORMAT_INSTRUCTION,
    )


# ---------------------------------------------------------------------------
# Reply decoding
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


@dataclass
class DecodeResult:
    """Outcome of decoding one reply: records on success, a reason otherwise."""

    records: list[MetricRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def decode_records(text: str) -> DecodeResult:
    """
    Cut the payload between the first '[' and the last ']' and decode it.

    All shape checks on the untyped reply live here; callers only see a list
    of MetricRecord or an error string.
    """
    cleaned = strip_code_fences(text)
    start = cleaned.find("[")
    end = cleaned.rfind("]")
    if start == -1 or end == -1 or end < start:
        return DecodeResult(error="no JSON array found in reply")

    try:
        payload = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as exc:
        return DecodeResult(error=f"invalid JSON: {exc}")

    if not isinstance(payload, list):
        return DecodeResult(error="payload is not a JSON array")
    if not payload:
        return DecodeResult(error="reply contained no companies")

    records: list[MetricRecord] = []
    for i, item in enumerate(payload):
        if not isinstance(item, dict):
            return DecodeResult(error=f"item {i} is not an object")
        try:
            records.append(MetricRecord.model_validate(item))
        except ValidationError as exc:
            return DecodeResult(error=f"item {i} failed validation: {exc}")
    return DecodeResult(records=records)


def _as_dict(obj: Any) -> dict:
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "model_dump"):
        dumped = obj.model_dump()
        return dumped if isinstance(dumped, dict) else {}
    return {}


def dedupe_sources(
    sources: Iterable[SourceCitation],
    limit: Optional[int] = None,
) -> list[SourceCitation]:
    """Drop repeated URIs (first occurrence wins, order kept), then cap."""
    seen: set[str] = set()
    out: list[SourceCitation] = []
    for s in sources:
        if s.uri in seen:
            continue
        seen.add(s.uri)
        out.append(s)
    return out if limit is None else out[:limit]


def extract_citations(
    annotations: Iterable[Any],
    limit: Optional[int] = None,
) -> list[SourceCitation]:
    """
    Build SourceCitation objects from reply annotations.

    Only entries carrying a web-source sub-object are kept: OpenRouter's
    ``url_citation`` ({url, title}) or a grounding-chunk style ``web``
    ({uri, title}).
    """
    found: list[SourceCitation] = []
    for raw in annotations or []:
        entry = _as_dict(raw)
        web = entry.get("url_citation") or entry.get("web")
        web = _as_dict(web) if web is not None else None
        if not web:
            continue
        found.append(SourceCitation(
            title=web.get("title") or "Source",
            uri=web.get("url") or web.get("uri") or "#",
        ))
    return dedupe_sources(found, limit)


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------

_TRANSIENT_STATUS = (500, 503)


def is_transient(exc: BaseException) -> bool:
    """HTTP 500/503 or an 'Internal error' message; worth another attempt."""
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status in _TRANSIENT_STATUS:
        return True
    return "Internal error" in str(exc)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 2.0  # seconds
    factor: float = 2.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay_seconds,
        )

    def plan(self, attempt: int, previous_delay: Optional[float]) -> tuple[float, bool]:
        """
        After failed attempt number ``attempt`` (1-based), return
        (delay before the next attempt, whether to retry at all).
        """
        delay = self.initial_delay if previous_delay is None else previous_delay * self.factor
        return delay, attempt < self.max_attempts


# ---------------------------------------------------------------------------
# QueryEngine
# ---------------------------------------------------------------------------

class QueryEngine:
    """
    Builds prompts, calls the LLM and turns replies into AnalysisResult objects.

    Parameters
    ----------
    llm_client : LLMClient, optional
        Provide your own client (useful for testing / dependency injection).
    retry_policy : RetryPolicy, optional
        Defaults to the policy configured in settings (3 attempts, 2s doubling).
    sleep : callable
        Used for backoff waits; tests pass a recorder instead of ``time.sleep``.
    source_limit : int, optional
        Citation cap per reply (default: settings.source_cap_search).
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        source_limit: Optional[int] = None,
    ) -> None:
        self._llm = llm_client or LLMClient()
        self._policy = retry_policy or RetryPolicy.from_settings()
        self._sleep = sleep
        self._source_limit = source_limit or settings.source_cap_search

    @property
    def model(self) -> str:
        return self._llm.model

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze_competitors(self, query: str) -> AnalysisResult:
        """Target company plus its top 5 public competitors."""
        logger.info("QueryEngine: analyzing competitors for %r", query)
        result = self.execute_request(build_competitor_prompt(query))
        result.query = query.strip()
        return result

    def analyze_single_company(
        self, query: str
    ) -> tuple[MetricRecord, list[SourceCitation], AnalysisResult]:
        """
        Snapshot for one company.

        Returns (record, sources, full_result); full_result carries usage.
        """
        logger.info("QueryEngine: analyzing single company %r", query)
        result = self.execute_request(build_single_company_prompt(query))
        result.query = query.strip()
        return result.companies[0], result.sources, result

    def execute_request(self, prompt: str) -> AnalysisResult:
        """
        Run one prompt through the retry loop.

        Raises
        ------
        ServiceUnavailableError
            Transient failures on every attempt.
        MalformedResponseError
            The reply had no decodable JSON array (never retried).
        QueryError
            Any other failure (never retried).
        """
        delay: Optional[float] = None
        for attempt in itertools.count(1):
            try:
                return self._attempt(prompt)
            except TransientServiceError as exc:
                delay, should_retry = self._policy.plan(attempt, delay)
                if not should_retry:
                    logger.error(
                        "QueryEngine: giving up after %d attempts: %s", attempt, exc
                    )
                    raise ServiceUnavailableError(str(exc)) from exc
                logger.warning(
                    "QueryEngine: attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt, self._policy.max_attempts, exc, delay,
                )
                self._sleep(delay)
            except QueryError:
                raise
            except Exception as exc:
                logger.error("QueryEngine: request failed on attempt %d: %s", attempt, exc)
                raise QueryError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _attempt(self, prompt: str) -> AnalysisResult:
        try:
            reply = self._llm.grounded_completion(prompt)
        except Exception as exc:
            if is_transient(exc):
                raise TransientServiceError(
                    str(exc), status_code=getattr(exc, "status_code", None)
                ) from exc
            raise

        decoded = decode_records(reply.content)
        if not decoded.ok:
            logger.error(
                "QueryEngine: malformed reply (%s) | raw: %s",
                decoded.error, reply.content[:500],
            )
            raise MalformedResponseError(decoded.error)

        return AnalysisResult(
            companies=decoded.records,
            sources=extract_citations(reply.annotations, self._source_limit),
            llm_usage=reply.usage,
            model_used=self._llm.model,
        )
