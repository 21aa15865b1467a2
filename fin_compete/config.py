# fin_compete/config.py
"""
Configuration and settings loaded from environment variables / .env file,
or from Streamlit Cloud secrets when deployed on Streamlit Community Cloud.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=_env_path, override=False)


def _get_secret(key: str, default: str = "") -> str:
    """
    Read a config value — checks in priority order:
      1. Environment variable (covers .env via load_dotenv above)
      2. Streamlit secrets (st.secrets) — available on Streamlit Community Cloud
      3. Provided default
    """
    val = os.environ.get(key)
    if val:
        return val
    try:
        import streamlit as st  # noqa: PLC0415
        return st.secrets.get(key, default)
    except Exception:
        return default


def _get_float(key: str, default: float) -> float:
    raw = _get_secret(key, "")
    if not raw:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric %s=%r, using %s", key, raw, default)
        return default


def _get_int(key: str, default: int) -> int:
    return int(_get_float(key, float(default)))


@dataclass
class Settings:
    openrouter_api_key: str = field(
        default_factory=lambda: _get_secret("OPENROUTER_API_KEY", "")
    )
    openrouter_base_url: str = field(
        default_factory=lambda: _get_secret(
            "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"
        )
    )
    default_model: str = field(
        default_factory=lambda: _get_secret(
            "DEFAULT_MODEL", "google/gemini-2.5-flash"
        )
    )
    # Near-deterministic sampling for financial lookups
    temperature: float = field(
        default_factory=lambda: _get_float("LLM_TEMPERATURE", 0.1)
    )

    # Retry policy for transient (5xx) failures
    retry_max_attempts: int = field(
        default_factory=lambda: _get_int("RETRY_MAX_ATTEMPTS", 3)
    )
    retry_initial_delay_seconds: float = field(
        default_factory=lambda: _get_float("RETRY_INITIAL_DELAY_SECONDS", 2.0)
    )

    # Citation caps: fresh search vs. after an add-company merge
    source_cap_search: int = field(
        default_factory=lambda: _get_int("SOURCE_CAP_SEARCH", 8)
    )
    source_cap_merged: int = field(
        default_factory=lambda: _get_int("SOURCE_CAP_MERGED", 12)
    )

    # OpenRouter model pricing (per 1M tokens) — used for cost estimation.
    # Keys match model IDs; values are (input_price_usd, output_price_usd).
    # These are approximate; check https://openrouter.ai/models for current rates.
    MODEL_PRICING: dict[str, tuple[float, float]] = field(
        default_factory=lambda: {
            "google/gemini-2.5-flash": (0.30, 2.50),
            "google/gemini-2.5-pro": (1.25, 10.00),
            "google/gemini-2.0-flash-001": (0.10, 0.40),
            "openai/gpt-4o-mini": (0.15, 0.60),
            "openai/gpt-4o": (2.50, 10.00),
            "anthropic/claude-3.5-sonnet": (3.00, 15.00),
        }
    )

    def get_model_pricing(self, model: str) -> tuple[float, float]:
        """Return (input_$/1M, output_$/1M) for the given model.
        Falls back to a safe conservative estimate if unknown."""
        return self.MODEL_PRICING.get(model, (1.00, 3.00))


# Singleton — import this anywhere
settings = Settings()


def check_settings(s: Settings | None = None) -> bool:
    """Log a startup error when the API key is missing. Never blocks startup."""
    s = s or settings
    if not s.openrouter_api_key:
        logger.error(
            "OPENROUTER_API_KEY is missing from the environment. "
            "Queries will fail until it is set in .env or Streamlit secrets."
        )
        return False
    return True
