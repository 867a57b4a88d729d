import logging

from app.ai.config import AIConfig, load_ai_config
from app.ai.types import AIClient

from app.ai.providers.openai_provider import OpenAIProvider
from app.ai.providers.gemini_provider import GeminiProvider

logger = logging.getLogger(__name__)


def get_ai_client(cfg: AIConfig | None = None) -> AIClient | None:
    """Build the scoring LLM client, or None when scoring must use the fallback."""
    cfg = cfg or load_ai_config()

    if not cfg.usable:
        logger.warning("scoring_llm_disabled provider=%s", cfg.provider)
        return None

    if cfg.provider == "openai":
        return OpenAIProvider(
            model=cfg.model,
            api_key=cfg.api_key,
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
            max_retries=cfg.max_retries,
        )

    if cfg.provider == "gemini":
        return GeminiProvider(
            model=cfg.model,
            api_key=cfg.api_key,
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
            max_retries=cfg.max_retries,
        )

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")
