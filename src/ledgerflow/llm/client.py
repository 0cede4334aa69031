"""Completion-service client using the google-genai SDK."""
from typing import Optional, Protocol

from google import genai
from google.genai import errors, types

from ledgerflow.config.settings import AppSettings
from ledgerflow.utils.exceptions import LLMError, RetryableLLMError
from ledgerflow.utils.logger import get_logger
from ledgerflow.utils.retry import retry_with_backoff

logger = get_logger()


class CompletionClient(Protocol):
    """Anything that turns a system + user prompt into response text."""

    def complete(self, system_prompt: str, user_prompt: str, *,
                 temperature: float = 0.0, max_tokens: int = 4000) -> str:
        ...


class GeminiCompletionClient:
    """CompletionClient backed by Gemini."""

    def __init__(self, api_key: str, model_name: str = "gemini-2.5-flash-lite",
                 max_retries: int = 3, initial_delay: float = 2, backoff_factor: float = 2):
        if not api_key:
            raise LLMError("Gemini API key is not configured (set GEMINI_API_KEY)")

        self.client = genai.Client(api_key=api_key)
        self.model_name = model_name
        self._complete = retry_with_backoff(
            max_retries=max_retries,
            initial_delay=initial_delay,
            backoff_factor=backoff_factor,
        )(self._generate)

        logger.info(f"Completion client initialized with {self.model_name}")

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "GeminiCompletionClient":
        return cls(
            api_key=settings.gemini_api_key,
            model_name=settings.llm_model_name,
            max_retries=settings.llm_max_retries,
            initial_delay=settings.llm_initial_delay_seconds,
            backoff_factor=settings.llm_backoff_factor,
        )

    def complete(self, system_prompt: str, user_prompt: str, *,
                 temperature: float = 0.0, max_tokens: int = 4000) -> str:
        """
        Run one completion.

        Raises:
            LLMError: On client errors, exhausted retries or an empty response
        """
        try:
            return self._complete(system_prompt, user_prompt, temperature, max_tokens)
        except (ConnectionError, TimeoutError, RetryableLLMError) as e:
            raise LLMError(f"Completion service unreachable after retries: {e}") from e

    def _generate(self, system_prompt: str, user_prompt: str,
                  temperature: float, max_tokens: int) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=user_prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                ),
            )
        except errors.ServerError as e:
            raise RetryableLLMError(f"Completion service unavailable: {e}")
        except errors.APIError as e:
            raise LLMError(f"Completion request rejected: {e}")

        text: Optional[str] = response.text
        if not text or not text.strip():
            raise LLMError("Completion service returned empty response")
        return text.strip()
