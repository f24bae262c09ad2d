"""
Model client factory

Creates the appropriate client instance based on the model name.
"""

from __future__ import annotations

from field_prompt_tuner.optimizer_config import OptimizerConfig, load_config
from field_prompt_tuner.infrastructure.model_clients.base import ModelClient
from field_prompt_tuner.infrastructure.model_clients.vertex_ai import VertexAIClient
from field_prompt_tuner.infrastructure.model_clients.claude import ClaudeClient
from field_prompt_tuner.infrastructure.model_clients.lmstudio import LMStudioClient


def create_client(model_name: str, config: OptimizerConfig | None = None) -> ModelClient:
    """
    Create the appropriate client based on the model name

    Routing: "lmstudio/..." goes to LMStudio, "claude..." to Anthropic,
    anything else to Vertex AI.

    Args:
        model_name: Model name
        config: OptimizerConfig (loads from env if not provided)

    Returns:
        ModelClient: The appropriate client instance
    """
    if config is None:
        config = load_config()

    isolation = config.isolation
    common = {
        "timeout_seconds": isolation.timeout_seconds,
        "max_retries": isolation.max_retries,
        "retry_delay_seconds": isolation.retry_delay_seconds,
    }

    if model_name.startswith("lmstudio/"):
        return LMStudioClient(
            model_name,
            base_url=config.lmstudio.base_url,
            api_key=config.lmstudio.api_key,
            **common,
        )
    elif model_name.startswith("claude"):
        return ClaudeClient(model_name, **common)
    else:
        return VertexAIClient(model_name, **common)
