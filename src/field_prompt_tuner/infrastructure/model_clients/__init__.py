"""
Model client package

Provides a unified interface to the LLM providers used for extraction,
prompt generation and semantic judging.
"""

from field_prompt_tuner.infrastructure.model_clients.base import ModelClient
from field_prompt_tuner.infrastructure.model_clients.factory import create_client
from field_prompt_tuner.domain.value_objects import ModelResponse

__all__ = ["ModelClient", "ModelResponse", "create_client"]
