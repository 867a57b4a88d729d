import os
from dataclasses import dataclass

_DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "gemini": "gemini-2.5-flash",
}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _looks_like_placeholder(value: str) -> bool:
    lower = value.strip().lower()
    return lower.startswith("your_") or lower.startswith("replace_") or lower in {"changeme", "todo"}


@dataclass(frozen=True)
class AIConfig:
    provider: str
    model: str
    api_key: str
    base_url: str | None
    timeout_s: float
    max_retries: int
    enabled: bool

    @property
    def usable(self) -> bool:
        return self.enabled and bool(self.api_key) and not _looks_like_placeholder(self.api_key)


def load_ai_config() -> AIConfig:
    provider = os.getenv("AI_PROVIDER", "gemini").strip().lower()
    model = (os.getenv("AI_MODEL") or _DEFAULT_MODELS.get(provider, "")).strip()
    if provider == "gemini":
        api_key = (os.getenv("GEMINI_API_KEY") or os.getenv("LLM_API_KEY") or "").strip()
        base_url = (os.getenv("GEMINI_BASE_URL") or "").strip() or None
    else:
        api_key = (os.getenv("OPENAI_API_KEY") or os.getenv("LLM_API_KEY") or "").strip()
        base_url = (os.getenv("OPENAI_BASE_URL") or "").strip() or None
    return AIConfig(
        provider=provider,
        model=model,
        api_key=api_key,
        base_url=base_url,
        timeout_s=float(os.getenv("SCORING_LLM_TIMEOUT_S", "30")),
        max_retries=int(os.getenv("SCORING_LLM_MAX_RETRIES", "1")),
        enabled=_env_bool("SCORING_LLM_ENABLED", True),
    )
