from __future__ import annotations

from pathlib import Path
from typing import Any

from google import genai
from google.genai import types
from google.genai.errors import APIError

from src.app.domain.models import GenerationConfig
from src.services.errors import GenerationAPIError, GenerationConfigurationError, ServiceError

SYSTEM_PROMPT = Path(__file__).with_name("prompts") / "SYSTEM_PROMPT.txt"

# SDK bookkeeping fields that are not part of the REST response body
_SDK_ONLY_FIELDS = {"sdk_http_response", "automatic_function_calling_history", "parsed"}


class GeminiPromptError(ServiceError):
    pass


class GeminiClient:
    def __init__(self, api_key: str, model_name: str = "gemini-1.5-flash-latest") -> None:
        self.api_key = api_key
        self.model_name = model_name
        self._client = self._configure_api()

    def _configure_api(self) -> genai.Client:
        if not self.api_key:
            raise GenerationConfigurationError("Missing Gemini API key.")
        return genai.Client(api_key=self.api_key)

    def load_system_prompt(self, file_path: Path = SYSTEM_PROMPT) -> str:
        try:
            return file_path.read_text(encoding="utf-8")
        except FileNotFoundError as not_found_error:
            raise GeminiPromptError(f"Prompt file not found: {file_path}") from not_found_error
        except OSError as io_error:
            raise GeminiPromptError(f"Unable to read prompt file: {io_error}") from io_error

    def generate(
        self,
        prompt_text: str,
        system_instruction: str | None = None,
        config: GenerationConfig = GenerationConfig(),
    ) -> dict[str, Any]:
        """
        Send one user prompt and return the response in the REST wire shape
        (`candidates[].content.parts[].text`, `promptFeedback`, ...).
        """
        request_config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
            top_p=config.top_p,
            top_k=config.top_k,
        )

        try:
            response = self._client.models.generate_content(
                model=self.model_name,
                contents=[types.Content(role="user", parts=[types.Part(text=prompt_text)])],
                config=request_config,
            )
        except APIError as err:
            details = err.details.get("error", err.details) if isinstance(err.details, dict) else err.details
            raise GenerationAPIError(
                status_code=err.code or 500,
                message=f"Gemini API request failed: {err.status or err.message}",
                details=details,
            ) from err

        return response.model_dump(mode="json", by_alias=True, exclude_none=True, exclude=_SDK_ONLY_FIELDS)
