from __future__ import annotations

import logging
from typing import Optional, Sequence

from mcq_study.core.prompts import EXPLANATION_SYSTEM_PROMPT, format_explanation_prompt
from mcq_study.models.schemas import AIProvider, ApiKeys, Question
from mcq_study.services.llm import OpenAICompatClient
from mcq_study.utils.errors import MissingApiKeyError
from mcq_study.utils.observability import log_event, trace_span

logger = logging.getLogger(__name__)

NO_EXPLANATION = "No explanation returned."

_PROVIDER_LABELS = {AIProvider.OPENAI: "OpenAI", AIProvider.GEMINI: "Gemini"}


class ExplanationClient(OpenAICompatClient):
    """Per-option tutor explanations, using the caller's own provider key."""

    def _model_for(self, provider: AIProvider) -> str:
        if provider == AIProvider.GEMINI:
            return self.settings.model_explanation_gemini
        return self.settings.model_explanation_openai

    @trace_span("explanations.generate")
    def generate(
        self,
        question: str,
        options: Sequence[str],
        correct_answer: str,
        keys: ApiKeys,
    ) -> str:
        if not str(question or "").strip() or not options or not str(correct_answer or "").strip():
            raise ValueError("Missing required fields")

        provider = keys.ai_provider
        key = keys.key_for(provider).strip()
        if not key:
            raise MissingApiKeyError(f"{_PROVIDER_LABELS[provider]} API key not provided")

        model = self._model_for(provider)
        result = self.complete(
            op="generate_explanation",
            provider=provider,
            model=model,
            messages=[
                {"role": "system", "content": EXPLANATION_SYSTEM_PROMPT},
                {"role": "user", "content": format_explanation_prompt(question, options, correct_answer)},
            ],
            max_tokens=int(self.settings.explanation_max_tokens),
            api_key=key,
        )
        text = result.text.strip() or NO_EXPLANATION
        log_event(
            logger,
            "explanation_generated",
            provider=provider.value,
            model=model,
            chars=len(text),
            empty=text == NO_EXPLANATION,
        )
        return text


def explain_question(
    question: Question, keys: ApiKeys, client: Optional[ExplanationClient] = None
) -> str:
    client = client or ExplanationClient()
    return client.generate(question.question, question.options, question.correct_answer, keys)
