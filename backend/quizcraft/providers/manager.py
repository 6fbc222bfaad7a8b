from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Optional

from quizcraft.config import Settings
from quizcraft.errors import AIConfigurationError, AIServiceError

from .base import LLMCallInput, LLMError, LLMProvider
from .gemini import GeminiProvider

logger = logging.getLogger(__name__)


@dataclass
class LLMExecutionResult:
    provider: str
    raw_text: str


class LLMManager:
    """Single entry point for calls to the generative text service.

    Exactly one outbound call per invocation; failures propagate to the
    caller, which decides what the end user sees.
    """

    def __init__(self, settings: Settings, provider: Optional[LLMProvider] = None) -> None:
        self.settings = settings
        self.provider: LLMProvider = provider or GeminiProvider(
            name="gemini",
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            timeout_ms=settings.llm_timeout_ms,
        )

    def is_configured(self) -> bool:
        return self.provider.is_configured()

    def complete_text(
        self,
        task: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
    ) -> LLMExecutionResult:
        if not self.provider.is_configured():
            raise AIConfigurationError()

        model = self.settings.gemini_model
        started_at = perf_counter()
        logger.info("LLM call task=%s provider=%s model=%s", task, self.provider.name, model)
        try:
            output = self.provider.generate_text(
                LLMCallInput(
                    task=task,
                    model=model,
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    temperature=temperature,
                )
            )
        except LLMError as exc:
            logger.error(
                "LLM call failed task=%s category=%s duration_ms=%d: %s",
                task,
                exc.category,
                int((perf_counter() - started_at) * 1000),
                exc,
            )
            raise AIServiceError(str(exc), category=exc.category) from exc
        except Exception as exc:
            logger.exception("Unexpected provider error task=%s", task)
            raise AIServiceError(f"Unexpected provider error: {exc}") from exc

        logger.info(
            "LLM call succeeded task=%s chars=%d duration_ms=%d",
            task,
            len(output.text),
            int((perf_counter() - started_at) * 1000),
        )
        return LLMExecutionResult(provider=self.provider.name, raw_text=output.text)
