"""Language model module for pivoice.

Provides the interchangeable inference providers walked by the
switch-model button: Ollama (local), Claude (Anthropic) and any
OpenAI-compatible chat completions API (OpenRouter, Fireworks, OpenAI).
"""

import logging
from typing import TYPE_CHECKING

from .mock import MockLanguageModel, UnavailableLanguageModel
from .model import LanguageModel, LLMResponse, Message

if TYPE_CHECKING:
    from ..config import LLMConfig, ProviderConfig

logger = logging.getLogger(__name__)


def create_language_model(
    name: str,
    provider: "ProviderConfig",
    timeout: float = 30.0,
) -> LanguageModel:
    """Create the client for one provider.

    Args:
        name: Provider name from the cycle (used in logs)
        provider: Provider settings
        timeout: Request timeout in seconds

    Returns:
        LanguageModel implementation

    Raises:
        RuntimeError: If the client library or credentials are missing
        ValueError: If the provider kind is unknown
    """
    if provider.kind == "ollama":
        from .ollama import DEFAULT_HOST, OllamaLanguageModel

        return OllamaLanguageModel(
            model=provider.model,
            host=provider.host or DEFAULT_HOST,
            timeout=timeout,
        )

    if provider.kind == "claude":
        import os

        from .claude import ClaudeLanguageModel

        api_key = os.environ.get(provider.api_key_env) if provider.api_key_env else None
        return ClaudeLanguageModel(model=provider.model, api_key=api_key, timeout=timeout)

    if provider.kind == "openai_compatible":
        from .openai_compat import OpenAICompatibleModel

        if not provider.host:
            raise ValueError(f"Provider '{name}' needs a host (API base URL)")
        return OpenAICompatibleModel(
            model=provider.model,
            base_url=provider.host,
            api_key_env=provider.api_key_env,
            timeout=timeout,
        )

    if provider.kind == "mock":
        return MockLanguageModel(model=provider.model)

    raise ValueError(f"Unknown provider kind '{provider.kind}' for '{name}'")


def create_providers(
    config: "LLMConfig | None" = None,
    use_mock: bool = False,
) -> dict[str, LanguageModel]:
    """Create a client for every provider in the switch cycle.

    A provider that cannot be constructed stays in the cycle as an
    UnavailableLanguageModel, so selecting it fails at inference time
    with its identity rather than silently skipping it.

    Args:
        config: LLM configuration
        use_mock: If True, every provider is a MockLanguageModel

    Returns:
        Mapping of provider name to client, in cycle order
    """
    from ..config import LLMConfig

    if config is None:
        config = LLMConfig()

    providers: dict[str, LanguageModel] = {}
    for name in config.cycle:
        settings = config.providers[name]
        if use_mock:
            providers[name] = MockLanguageModel(model=f"mock-{name}")
            continue
        try:
            providers[name] = create_language_model(name, settings, timeout=config.timeout_s)
        except (RuntimeError, ValueError) as e:
            logger.warning(f"LLM provider '{name}' unavailable: {e}")
            providers[name] = UnavailableLanguageModel(settings.model, str(e))

    return providers


__all__ = [
    "LLMResponse",
    "LanguageModel",
    "Message",
    "MockLanguageModel",
    "UnavailableLanguageModel",
    "create_language_model",
    "create_providers",
]
