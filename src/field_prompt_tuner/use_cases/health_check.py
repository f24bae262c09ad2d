"""
Health Check

Pings the models used for extraction, prompt generation and judging before
a run starts, so a misconfigured provider fails fast.
"""

from __future__ import annotations

import logging
from typing import Callable

from field_prompt_tuner.domain.entities import HealthCheckResult
from field_prompt_tuner.infrastructure.model_clients.base import ModelClient

logger = logging.getLogger(__name__)

HEALTH_CHECK_PROMPT = "Reply with only 'OK' if you can read this message."


def health_check_model(
    model_name: str,
    create_client_fn: Callable[[str], ModelClient],
) -> HealthCheckResult:
    """
    Send a trivial prompt to one model.

    An empty answer counts as a failure.

    Args:
        model_name: Name of the model to check
        create_client_fn: Function to create a model client

    Returns:
        HealthCheckResult
    """
    try:
        client = create_client_fn(model_name)
        response = client.generate(HEALTH_CHECK_PROMPT)
    except Exception as e:
        logger.warning("Health check failed for %s: %s", model_name, e)
        return HealthCheckResult(model_name=model_name, success=False, latency_ms=None, error=str(e))

    if not response.output:
        return HealthCheckResult(
            model_name=model_name,
            success=False,
            latency_ms=response.latency_ms,
            error="Empty response",
        )
    return HealthCheckResult(model_name=model_name, success=True, latency_ms=response.latency_ms, error=None)


def health_check_all_models(
    models: list[str],
    create_client_fn: Callable[[str], ModelClient],
) -> tuple[list[str], list[HealthCheckResult]]:
    """
    Check every distinct model once, printing progress.

    Args:
        models: Model names (duplicates are checked once)
        create_client_fn: Function to create a model client

    Returns:
        tuple: (available model names, all check results)
    """
    print("=== Model Health Check ===\n")
    results = []
    available_models = []

    for model_name in dict.fromkeys(models):
        print(f"  {model_name}... ", end="", flush=True)
        result = health_check_model(model_name, create_client_fn)
        results.append(result)

        if result.success:
            print(f"OK ({result.latency_ms}ms)")
            available_models.append(model_name)
        else:
            error_short = result.error[:100] if result.error else "Unknown error"
            print("FAILED")
            print(f"    Error: {error_short}")

    print()
    return available_models, results


def run_health_check(
    models: list[str],
    create_client_fn: Callable[[str], ModelClient] | None = None,
) -> tuple[list[str], list[HealthCheckResult]]:
    """
    Check models, creating clients with the default factory when none is given.

    Args:
        models: Model names to check
        create_client_fn: Function to create a model client (optional)

    Returns:
        tuple: (available model names, all check results)
    """
    if create_client_fn is None:
        from field_prompt_tuner.infrastructure.model_clients import create_client
        create_client_fn = create_client

    return health_check_all_models(models, create_client_fn)
