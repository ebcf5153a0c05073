"""
OpenAI-compatible chat client shared by the vision and explanation services.

Both providers are reached through the `openai` SDK: OpenAI directly, Gemini via
its OpenAI-compatible endpoint (GEMINI_BASE_URL).
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, List, Optional, Union

import httpx
from openai import APIConnectionError, APITimeoutError, OpenAI, OpenAIError
from pydantic import BaseModel, Field
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mcq_study.models.schemas import AIProvider
from mcq_study.utils.errors import LLMServiceError, LLMTimeoutError, MissingApiKeyError
from mcq_study.utils.observability import log_llm_usage
from mcq_study.utils.settings import Settings, get_settings

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (APIConnectionError, APITimeoutError, httpx.ReadTimeout, httpx.ConnectTimeout)

# Module-level so tests can swap in `wait_none()`.
RETRY_WAIT = wait_exponential(multiplier=1, min=2, max=10)


def _log_retry(op: str, provider: str, model: str, retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying %s (provider=%s, model=%s), attempt=%s, exception=%s",
        op,
        provider,
        model,
        retry_state.attempt_number,
        exc,
    )


class LLMResult(BaseModel):
    text: str = ""
    usage: Optional[Dict[str, int]] = Field(default=None)


class OpenAICompatClient:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.timeout_seconds = int(self.settings.llm_client_timeout_seconds)
        self.max_attempts = max(1, int(self.settings.llm_max_retries))

    def _base_url(self, provider: AIProvider) -> str:
        if provider == AIProvider.GEMINI:
            return self.settings.gemini_base_url
        return self.settings.openai_base_url

    def _configured_key(self, provider: AIProvider) -> Optional[str]:
        if provider == AIProvider.GEMINI:
            return self.settings.gemini_api_key
        return self.settings.openai_api_key

    def _get_client(self, provider: Union[AIProvider, str], api_key: Optional[str] = None) -> OpenAI:
        """OpenAI SDK client for `provider`; an explicit `api_key` wins over the configured one."""
        try:
            provider = AIProvider(provider)
        except ValueError:
            raise ValueError(f"Unsupported provider: {provider}") from None
        key = str(api_key or "").strip() or self._configured_key(provider)
        if not key:
            raise MissingApiKeyError(f"{provider.value.upper()}_API_KEY not configured")
        return OpenAI(
            base_url=self._base_url(provider),
            api_key=key,
            timeout=float(self.timeout_seconds),
        )

    def complete(
        self,
        *,
        op: str,
        provider: Union[AIProvider, str],
        model: str,
        messages: List[Dict[str, Any]],
        max_tokens: int,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
    ) -> LLMResult:
        """
        One chat completion, retried on connection errors and timeouts.

        Raises:
            MissingApiKeyError: no key for the provider.
            LLMTimeoutError: retryable failures outlasted every attempt.
            LLMServiceError: any other provider failure.
        """
        client = self._get_client(provider, api_key)
        provider_name = AIProvider(provider).value
        kwargs: Dict[str, Any] = {"model": model, "messages": messages, "max_tokens": int(max_tokens)}
        if temperature is not None:
            kwargs["temperature"] = temperature

        retrying = Retrying(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            wait=RETRY_WAIT,
            stop=stop_after_attempt(self.max_attempts),
            before_sleep=partial(_log_retry, op, provider_name, model),
            reraise=True,
        )
        try:
            response = retrying(client.chat.completions.create, **kwargs)
        except RETRYABLE_ERRORS as e:
            raise LLMTimeoutError(
                f"{op} failed after {self.max_attempts} attempts: {e}",
                details={"provider": provider_name, "model": model},
            ) from e
        except (OpenAIError, httpx.HTTPError) as e:
            logger.error("%s failed (provider=%s, model=%s): %s", op, provider_name, model, e)
            raise LLMServiceError(
                str(e) or f"{op} failed",
                details={"provider": provider_name, "model": model},
            ) from e

        choices = getattr(response, "choices", None) or []
        text = ""
        if choices:
            text = getattr(choices[0].message, "content", None) or ""
        raw_usage = getattr(response, "usage", None)
        usage = None
        if raw_usage is not None:
            usage = {
                "prompt_tokens": getattr(raw_usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(raw_usage, "completion_tokens", 0) or 0,
                "total_tokens": getattr(raw_usage, "total_tokens", 0) or 0,
            }
            log_llm_usage(logger, op=op, provider=provider_name, model=model, usage=usage)
        return LLMResult(text=text, usage=usage)
