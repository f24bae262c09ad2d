"""
Model client base class and retry mixin

Defines the abstract base class inherited by all model clients
and the RetryMixin that consolidates shared retry logic.
"""

import logging
import time
from abc import ABC, abstractmethod

from field_prompt_tuner.domain.value_objects import ModelResponse

logger = logging.getLogger(__name__)


class RetryMixin:
    """Exponential backoff retry. Subclasses set self.max_retries and self.retry_delay_seconds."""

    max_retries: int = 3
    retry_delay_seconds: float = 1.0

    def _with_retry(self, fn, retryable_exceptions=(Exception,)):
        """
        Execute with exponential backoff retry.

        The wait before attempt n+1 is retry_delay_seconds * 2**n.

        Args:
            fn: The function to retry (a callable with no arguments)
            retryable_exceptions: Tuple of exception types eligible for retry

        Returns:
            The return value of fn()

        Raises:
            ValueError: If max_retries is less than 1
            Exception: The last exception if max retries are exceeded
        """
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1.")

        last_exception: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                return fn()
            except retryable_exceptions as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay_seconds * 2 ** attempt
                    logger.debug(
                        "Attempt %d/%d failed (%s), retrying in %.1fs",
                        attempt + 1, self.max_retries, e, delay,
                    )
                    time.sleep(delay)

        assert last_exception is not None
        raise last_exception


class ModelClient(ABC):
    """Abstract base class for model clients"""

    model_name: str

    @abstractmethod
    def generate(self, prompt: str) -> ModelResponse:
        """Send a prompt and retrieve the response"""
        pass
