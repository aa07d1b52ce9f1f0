from __future__ import annotations

import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch

from google.genai.errors import ClientError

from src.app.domain.models import GenerationConfig
from src.services.errors import GenerationAPIError, GenerationConfigurationError
from src.services.gemini_client import GeminiClient, GeminiPromptError


@pytest.fixture
def genai_client():
    with patch("src.services.gemini_client.genai.Client") as client_cls:
        yield client_cls.return_value


class TestGeminiClient:
    def test_missing_key(self) -> None:
        with pytest.raises(GenerationConfigurationError):
            GeminiClient(api_key="")

    def test_bundled_system_prompt_loads(self, genai_client) -> None:
        prompt = GeminiClient(api_key="key").load_system_prompt()

        assert prompt.strip()

    def test_missing_prompt_file(self, genai_client, tmp_path: Path) -> None:
        with pytest.raises(GeminiPromptError):
            GeminiClient(api_key="key").load_system_prompt(tmp_path / "absent.txt")

    def test_generate_sends_config_and_returns_wire_shape(self, genai_client) -> None:
        response = MagicMock()
        response.model_dump.return_value = {"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}
        genai_client.models.generate_content.return_value = response

        result = GeminiClient(api_key="key", model_name="gemini-test").generate(
            "hello",
            system_instruction="be brief",
            config=GenerationConfig(temperature=0.2),
        )

        assert result == {"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}
        kwargs = genai_client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["config"].system_instruction == "be brief"
        assert kwargs["config"].temperature == 0.2
        assert kwargs["config"].max_output_tokens == 2048
        assert kwargs["contents"][0].parts[0].text == "hello"

    def test_api_error_is_mapped(self, genai_client) -> None:
        error = ClientError(429, {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}})
        genai_client.models.generate_content.side_effect = error

        with pytest.raises(GenerationAPIError) as exc_info:
            GeminiClient(api_key="key").generate("hello")

        assert exc_info.value.status_code == 429
        assert "RESOURCE_EXHAUSTED" in exc_info.value.message
        assert exc_info.value.details["message"] == "Quota exceeded"
