import os
import asyncio
import time
from typing import TYPE_CHECKING, ClassVar
import logging
import httpx

from .base_model_provider import BaseModelProvider

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class OpenRouterProvider(BaseModelProvider):
    """OpenRouter model provider implementation."""

    # Class-level rate limiting to prevent 429 errors
    _last_request_time: ClassVar[float | None] = None
    _request_lock: ClassVar[asyncio.Lock | None] = None
    _min_request_interval: ClassVar[float] = 1.0

    def __init__(
        self,
        system_config: "SystemConfig",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(system_config)
        self._transport = transport

        # Get API key from config or environment
        self._api_key = system_config.openrouter.api_key or os.getenv("OPENROUTER_API_KEY")

        if not self._api_key:
            logger.warning(
                "No OpenRouter API key found. Set OPENROUTER_API_KEY or configure in system settings."
            )
            self._client = None
        else:
            # httpx clients are opened per request; this only marks the provider usable
            self._client = True

    @property
    def provider_name(self) -> str:
        return "openrouter"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self.system_config.openrouter.site_url:
            headers["HTTP-Referer"] = self.system_config.openrouter.site_url
        if self.system_config.openrouter.app_name:
            headers["X-Title"] = self.system_config.openrouter.app_name
        return headers

    async def _rate_limit_request(self) -> None:
        """Ensure minimum time between requests to avoid 429 errors."""
        if OpenRouterProvider._request_lock is None:
            OpenRouterProvider._request_lock = asyncio.Lock()

        async with OpenRouterProvider._request_lock:
            current_time = time.time()

            if self._last_request_time is not None:
                time_since_last = current_time - self._last_request_time
                if time_since_last < self._min_request_interval:
                    sleep_time = self._min_request_interval - time_since_last
                    logger.debug(
                        f"Rate limiting: waiting {sleep_time:.2f}s before next OpenRouter request"
                    )
                    await asyncio.sleep(sleep_time)

            OpenRouterProvider._last_request_time = time.time()

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        """Generate a response using OpenRouter."""
        if not self._client:
            raise RuntimeError("OpenRouter client not initialized - check API key")

        payload = {
            "model": model_config.name,
            "messages": messages,
            "max_tokens": overrides.get("max_tokens", model_config.max_tokens),
            "temperature": overrides.get("temperature", model_config.temperature),
            "reasoning": {"exclude": True},
        }

        try:
            await self._rate_limit_request()

            async with httpx.AsyncClient(transport=self._transport) as client:
                http_response = await client.post(
                    f"{self.system_config.openrouter.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                    timeout=self.system_config.openrouter.timeout,
                )
                http_response.raise_for_status()
                response_data = http_response.json()

            content = response_data["choices"][0]["message"]["content"] or ""

            if not content.strip():
                logger.warning(
                    f"OpenRouter model {model_config.name} returned empty content. "
                    f"Response data: {response_data}"
                )
            else:
                logger.debug(
                    f"Generated {len(content)} chars from OpenRouter model {model_config.name}"
                )

            return content.strip()

        except Exception as e:
            logger.error(f"OpenRouter generation failed for {model_config.name}: {e}")
            raise

    def validate_model_config(self, model_config: "ModelConfig") -> bool:
        """Validate OpenRouter model configuration."""
        return model_config.provider == "openrouter"
