"""LLM provider clients."""

from llm.base import LLMClient
from llm.maia import MaiaClient
from llm.openrouter import OpenRouterClient

__all__ = ["LLMClient", "OpenRouterClient", "MaiaClient", "PROVIDER_MODELS", "create_client"]

# (fast model, reasoning model) per provider. The two gateways name the same
# Gemini models differently.
PROVIDER_MODELS: dict[str, tuple[str, str]] = {
    "openrouter": ("google/gemini-2.5-flash", "google/gemini-2.5-pro"),
    "maia": ("maia/gemini-2.5-flash", "maia/gemini-3-pro-preview"),
}


def create_client(provider: str) -> LLMClient:
    """Build the client for a provider name.

    Raises:
        ValueError: If the provider is unknown.
        KeyError: If the provider's API key is not set.
    """
    if provider not in PROVIDER_MODELS:
        raise ValueError(f"Unknown LLM provider '{provider}'. Expected one of {sorted(PROVIDER_MODELS)}.")
    fast_model, _ = PROVIDER_MODELS[provider]
    if provider == "maia":
        return MaiaClient(fast_model)
    return OpenRouterClient(fast_model)
