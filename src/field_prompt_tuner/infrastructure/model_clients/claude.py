"""
Anthropic Claude model client
"""

import os
import time

from anthropic import Anthropic, APIConnectionError, RateLimitError, APIStatusError

from field_prompt_tuner.domain.value_objects import ModelResponse
from field_prompt_tuner.infrastructure.model_clients.base import ModelClient, RetryMixin


class ClaudeClient(RetryMixin, ModelClient):
    """Claude client using the Anthropic API"""

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        timeout_seconds: int = 30,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        max_tokens: int = 2048,
    ):
        """
        Args:
            model_name: Model name (e.g. claude-sonnet-4-5-20250929)
            api_key: Anthropic API key (falls back to environment variable if not specified)
            timeout_seconds: Request timeout in seconds (default: 30)
            max_retries: Maximum number of attempts (default: 3)
            retry_delay_seconds: Base delay for exponential backoff (default: 1.0)
            max_tokens: Maximum number of output tokens (default: 2048)
        """
        self.model_name = model_name
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.max_tokens = max_tokens

        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")

        # SDK-level retries are disabled; RetryMixin owns the backoff
        self.client = Anthropic(api_key=self.api_key, timeout=timeout_seconds, max_retries=0)

    def generate(self, prompt: str) -> ModelResponse:
        """
        Send a prompt and retrieve the response

        Args:
            prompt: Input prompt

        Returns:
            ModelResponse: The model's response

        Raises:
            Exception: If the maximum number of retries is exceeded
        """
        def _call():
            start_time = time.time()
            response = self.client.messages.create(
                model=self.model_name,
                max_tokens=self.max_tokens,
                temperature=0.0,
                messages=[{"role": "user", "content": prompt}]
            )
            latency_ms = int((time.time() - start_time) * 1000)

            text_blocks = [
                block.text for block in response.content if getattr(block, "type", "text") == "text"
            ]
            output = "".join(text_blocks).strip()

            input_tokens = getattr(response.usage, "input_tokens", 0) or 0
            output_tokens = getattr(response.usage, "output_tokens", 0) or 0

            return ModelResponse(
                output=output,
                latency_ms=latency_ms,
                model_name=self.model_name,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )

        return self._with_retry(
            _call,
            retryable_exceptions=(APIConnectionError, RateLimitError, APIStatusError),
        )
