from __future__ import annotations

from typing import Optional, Sequence

from openai import AsyncOpenAI

from app.ai.types import ChatMessage


class OpenAIProvider:
    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: Optional[str] = None,
        timeout_s: float = 30.0,
        max_retries: int = 1,
        temperature: float = 0.2,
        max_output_tokens: int = 1200,
    ):
        if not api_key:
            raise RuntimeError("LLM API key is missing")
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_s,
            max_retries=max_retries,
        )

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self, messages: Sequence[ChatMessage], *, json_mode: bool = False
    ) -> str:
        payload = [{"role": m.role, "content": m.content} for m in messages]

        create_kwargs = {
            "model": self._model,
            "messages": payload,
            "temperature": self._temperature,
            "max_tokens": self._max_output_tokens,
        }
        if json_mode:
            create_kwargs["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(**create_kwargs)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def aclose(self) -> None:
        await self._client.close()
