"""
Tests for the model health check
"""

from unittest.mock import MagicMock, patch

from field_prompt_tuner.domain.value_objects import ModelResponse
from field_prompt_tuner.use_cases.health_check import (
    HEALTH_CHECK_PROMPT,
    health_check_all_models,
    health_check_model,
    run_health_check,
)


def _ok_client(output="OK", latency_ms=42):
    client = MagicMock()
    client.generate.return_value = ModelResponse(output=output, latency_ms=latency_ms, model_name="m")
    return client


class TestHealthCheckModel:
    def test_success(self):
        client = _ok_client()

        result = health_check_model("gemini-2.5-flash", lambda name: client)

        assert result.success is True
        assert result.latency_ms == 42
        assert result.error is None
        client.generate.assert_called_once_with(HEALTH_CHECK_PROMPT)

    def test_empty_answer_is_failure(self):
        result = health_check_model("gemini-2.5-flash", lambda name: _ok_client(output=""))

        assert result.success is False
        assert result.error == "Empty response"

    def test_client_creation_error(self):
        def fail(name):
            raise ValueError("GCP_PROJECT_ID is not set")

        result = health_check_model("gemini-2.5-flash", fail)

        assert result.success is False
        assert result.latency_ms is None
        assert "GCP_PROJECT_ID" in result.error

    def test_generate_error(self):
        client = MagicMock()
        client.generate.side_effect = RuntimeError("401 Unauthorized")

        result = health_check_model("claude-haiku", lambda name: client)

        assert result.success is False
        assert result.error == "401 Unauthorized"


class TestHealthCheckAllModels:
    def test_duplicates_checked_once(self, capsys):
        factory = MagicMock(return_value=_ok_client())

        available, results = health_check_all_models(["gemini-2.5-flash", "claude-x", "gemini-2.5-flash"], factory)

        assert available == ["gemini-2.5-flash", "claude-x"]
        assert len(results) == 2
        assert factory.call_count == 2
        assert "Model Health Check" in capsys.readouterr().out

    def test_failed_models_excluded(self, capsys):
        clients = {"good": _ok_client(), "bad": _ok_client(output="")}

        available, results = health_check_all_models(["good", "bad"], clients.__getitem__)

        assert available == ["good"]
        assert [r.success for r in results] == [True, False]
        assert "FAILED" in capsys.readouterr().out


class TestRunHealthCheck:
    def test_uses_given_factory(self):
        factory = MagicMock(return_value=_ok_client())

        available, _ = run_health_check(["m1"], factory)

        assert available == ["m1"]
        factory.assert_called_once_with("m1")

    @patch("field_prompt_tuner.infrastructure.model_clients.create_client")
    def test_default_factory(self, mock_create):
        mock_create.return_value = _ok_client()

        available, _ = run_health_check(["m1"])

        assert available == ["m1"]
        mock_create.assert_called_once_with("m1")
