# fin_compete/models.py
"""
Pydantic data models for FinCompete.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MISSING = "-"


# ---------------------------------------------------------------------------
# Query lifecycle
# ---------------------------------------------------------------------------


class LoadingState(str, Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


# ---------------------------------------------------------------------------
# Records returned by the AI service
# ---------------------------------------------------------------------------


class MetricRecord(BaseModel):
    """
    One company's financial snapshot.

    Values are display strings exactly as the model returned them
    (e.g. "15.4%", "$145.20") or "-" when unavailable. Attribute names are
    snake_case; the JSON keys the model is asked for are the camelCase aliases.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = MISSING
    ticker: str = MISSING
    price: str = MISSING
    market_cap: str = Field(MISSING, alias="marketCap")
    roe: str = MISSING
    roic: str = MISSING
    ev_ebit: str = Field(MISSING, alias="evEbit")
    per: str = MISSING
    fcf_per_share: str = Field(MISSING, alias="fcfPerShare")
    beta: str = MISSING
    ke: str = MISSING  # Cost of Equity
    kd: str = MISSING  # Cost of Debt
    wacc: str = MISSING  # Weighted Average Cost of Capital

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_display_string(cls, v: Any) -> str:
        # Models occasionally emit bare numbers or nulls
        if v is None:
            return MISSING
        if isinstance(v, bool):
            return str(v).lower()
        if isinstance(v, (int, float, str)):
            return str(v)
        raise ValueError(f"expected a display string, got {type(v).__name__}")

    @property
    def ticker_key(self) -> str:
        """Case-insensitive identity used for de-duplication."""
        return self.ticker.strip().upper()


class SourceCitation(BaseModel):
    """A web source the AI service consulted (grounding citation)."""

    model_config = ConfigDict(frozen=True)

    title: str = "Source"
    uri: str = "#"


# ---------------------------------------------------------------------------
# Usage tracking
# ---------------------------------------------------------------------------


class LLMUsage(BaseModel):
    """Tracks token consumption and estimated costs across all LLM calls."""

    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    call_count: int = 0

    def add(
        self,
        prompt_tokens: int,
        completion_tokens: int,
        input_price_per_m: float,
        output_price_per_m: float,
    ) -> None:
        """Accumulate tokens and cost from one LLM call."""
        self.total_prompt_tokens += prompt_tokens
        self.total_completion_tokens += completion_tokens
        self.total_tokens += prompt_tokens + completion_tokens
        self.estimated_cost_usd += (
            prompt_tokens / 1_000_000 * input_price_per_m
            + completion_tokens / 1_000_000 * output_price_per_m
        )
        self.call_count += 1

    def merge(self, other: "LLMUsage") -> None:
        """Add another usage record into this one in-place."""
        self.total_prompt_tokens += other.total_prompt_tokens
        self.total_completion_tokens += other.total_completion_tokens
        self.total_tokens += other.total_tokens
        self.estimated_cost_usd += other.estimated_cost_usd
        self.call_count += other.call_count


# ---------------------------------------------------------------------------
# Output models
# ---------------------------------------------------------------------------


class AnalysisResult(BaseModel):
    """The current comparison set: target company first, then competitors."""

    companies: list[MetricRecord] = Field(default_factory=list)
    sources: list[SourceCitation] = Field(default_factory=list)
    query: str = ""
    llm_usage: LLMUsage = Field(default_factory=LLMUsage)
    model_used: str = ""
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @property
    def target(self) -> MetricRecord | None:
        return self.companies[0] if self.companies else None
