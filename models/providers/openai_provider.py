import os
import logging
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI

from .base_model_provider import BaseModelProvider

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseModelProvider):
    """OpenAI chat completions provider (any OpenAI-compatible base URL works)."""

    def __init__(self, system_config: "SystemConfig", client: Any | None = None):
        super().__init__(system_config)

        if client is not None:
            self._client = client
            return

        # Get API key from config or environment
        api_key = system_config.openai.api_key or os.getenv("OPENAI_API_KEY")

        if not api_key:
            logger.warning(
                "No OpenAI API key found. Set OPENAI_API_KEY or configure in system settings."
            )
            self._client = None
        else:
            self._client = AsyncOpenAI(
                base_url=system_config.openai.base_url,
                api_key=api_key,
                timeout=system_config.openai.timeout,
                max_retries=system_config.openai.max_retries,
            )

    @property
    def provider_name(self) -> str:
        return "openai"

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        """Generate a response using the chat completions API."""
        if not self._client:
            raise RuntimeError("OpenAI client not initialized - check API key")

        try:
            response = await self._client.chat.completions.create(
                model=model_config.name,
                messages=messages,
                max_tokens=overrides.get("max_tokens", model_config.max_tokens),
                temperature=overrides.get("temperature", model_config.temperature),
            )
        except Exception as e:
            logger.error(f"OpenAI generation failed for {model_config.name}: {e}")
            raise

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        if not content.strip():
            logger.warning(f"OpenAI model {model_config.name} returned empty content")
        else:
            logger.debug(f"Generated {len(content)} chars from OpenAI model {model_config.name}")

        return content.strip()

    def validate_model_config(self, model_config: "ModelConfig") -> bool:
        """Validate OpenAI model configuration."""
        return model_config.provider == "openai"
