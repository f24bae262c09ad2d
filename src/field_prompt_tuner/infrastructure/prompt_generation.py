"""
Prompt generation

The prompt-generation collaborator turns a structured request into a new
field prompt. Repair requests are handled by the same call.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from field_prompt_tuner.domain.value_objects import GeneratedPrompt
from field_prompt_tuner.infrastructure.model_clients.base import ModelClient
from field_prompt_tuner.prompts.generation_request import PromptGenerationRequest, build_generation_prompt
from field_prompt_tuner.prompts.response_parser import parse_prompt_response

logger = logging.getLogger(__name__)


class PromptGenerator(ABC):
    """Writes a new extraction prompt for a field"""

    @abstractmethod
    def generate(self, request: PromptGenerationRequest) -> GeneratedPrompt:
        pass


class LLMPromptGenerator(PromptGenerator):
    """Prompt generator backed by a model client"""

    def __init__(self, client: ModelClient):
        self.client = client

    def generate(self, request: PromptGenerationRequest) -> GeneratedPrompt:
        """
        Request a new prompt and parse the answer

        Raises:
            ValueError: If the model returned an empty prompt
            Exception: Propagated from the model client after its retries
        """
        response = self.client.generate(build_generation_prompt(request))
        logger.debug("Raw prompt generator response: %s", response.output[:500])

        generated = parse_prompt_response(response.output)
        if not generated.new_prompt:
            raise ValueError(f"Prompt generator returned an empty prompt for '{request.field_name}'.")

        logger.info(
            "Generated %s prompt for '%s' (%d chars)",
            "repaired" if request.is_repair else "new",
            request.field_name,
            len(generated.new_prompt),
        )
        return generated
