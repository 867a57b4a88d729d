from typing import Optional

from app.ai.providers.openai_provider import OpenAIProvider

# Gemini exposes an OpenAI-compatible chat completions endpoint.
GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class GeminiProvider(OpenAIProvider):
    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: Optional[str] = None,
        timeout_s: float = 30.0,
        max_retries: int = 1,
    ):
        super().__init__(
            model=model,
            api_key=api_key,
            base_url=base_url or GEMINI_OPENAI_BASE_URL,
            timeout_s=timeout_s,
            max_retries=max_retries,
        )
