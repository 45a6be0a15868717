"""Model providers package."""

from .providers import ProviderFactory
from .openai_provider import OpenAIProvider
from .open_router_provider import OpenRouterProvider
from .base_model_provider import BaseModelProvider

__all__ = [
    "ProviderFactory",
    "OpenAIProvider",
    "OpenRouterProvider",
    "BaseModelProvider",
]
