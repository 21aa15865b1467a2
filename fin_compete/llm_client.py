# fin_compete/llm_client.py
"""
Thin wrapper around the OpenAI-compatible OpenRouter API.
Provides web-search grounded completions and automatic token / cost tracking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from openai import OpenAI

from fin_compete.config import settings
from fin_compete.errors import MissingConfigurationError
from fin_compete.models import LLMUsage

logger = logging.getLogger(__name__)

# OpenRouter web-search plugin; results come back as url_citation annotations
WEB_SEARCH_PLUGIN: dict[str, Any] = {"id": "web"}


@dataclass
class LLMReply:
    """Raw reply from one completion: text, citation annotations and usage."""

    content: str = ""
    annotations: list[Any] = field(default_factory=list)
    usage: LLMUsage = field(default_factory=LLMUsage)


class LLMClient:
    """
    Wraps OpenRouter via the openai SDK.

    The API key is only checked when a request is made, so a missing key
    surfaces as a failed query rather than a failed page load.

    Usage::

        client = LLMClient()
        reply = client.grounded_completion("Analyze AAPL ...")
        print(reply.content, reply.annotations)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key or settings.openrouter_api_key
        self.base_url = base_url or settings.openrouter_base_url
        self.model = model or settings.default_model
        self._http_client = http_client
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise MissingConfigurationError(
                    "OPENROUTER_API_KEY is not set. "
                    "Add it to your .env file or pass api_key= to LLMClient()."
                )
            # Retries belong to QueryEngine's RetryPolicy; the SDK must not add its own
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                max_retries=0,
                http_client=self._http_client,
            )
        return self._client

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    def grounded_completion(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        web_search: bool = True,
    ) -> LLMReply:
        """
        Send one user prompt with the web-search plugin enabled.

        Returns an LLMReply whose usage covers THIS single call only.
        Errors from the SDK (``openai.APIStatusError`` etc.) propagate.
        """
        model = model or self.model
        temperature = settings.temperature if temperature is None else temperature
        kwargs: dict[str, Any] = dict(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
        )
        if web_search:
            kwargs["extra_body"] = {"plugins": [WEB_SEARCH_PLUGIN]}

        logger.debug("LLM call → model=%s, web_search=%s", model, web_search)
        response = self.client.chat.completions.create(**kwargs)

        reply = LLMReply()
        if response.choices:
            message = response.choices[0].message
            reply.content = message.content or ""
            reply.annotations = list(getattr(message, "annotations", None) or [])

        if response.usage:
            in_price, out_price = settings.get_model_pricing(model)
            reply.usage.add(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                input_price_per_m=in_price,
                output_price_per_m=out_price,
            )
        else:
            # OpenRouter may not always return usage
            logger.warning("No usage data returned for model %s", model)

        return reply
