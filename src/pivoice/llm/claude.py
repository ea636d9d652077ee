"""Claude language model using the Anthropic API."""

import os
import time

from .model import LLMResponse, Message

try:
    import anthropic

    ANTHROPIC_AVAILABLE = True
except ImportError:
    anthropic = None
    ANTHROPIC_AVAILABLE = False


class ClaudeLanguageModel:
    """Cloud language model using the Claude Messages API.

    Implements the LanguageModel protocol. System entries of the message
    list are passed through the API's separate ``system`` field.
    """

    def __init__(
        self,
        model: str = "claude-3-haiku-20240307",
        api_key: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the Claude language model.

        Args:
            model: Claude model identifier
            api_key: API key (defaults to ANTHROPIC_API_KEY env var)
            timeout: Request timeout in seconds

        Raises:
            RuntimeError: If the SDK is missing or no API key is set
        """
        if not ANTHROPIC_AVAILABLE:
            raise RuntimeError("Anthropic SDK not installed. Run: pip install anthropic")

        api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise RuntimeError("ANTHROPIC_API_KEY is not set")

        self._model = model
        self._client = anthropic.Anthropic(api_key=api_key, timeout=timeout)

    @property
    def model(self) -> str:
        return self._model

    def chat(
        self,
        messages: list[Message],
        max_tokens: int = 250,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate a reply using the cloud API.

        Raises:
            RuntimeError: If the API call fails
        """
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        kwargs = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [m for m in messages if m["role"] != "system"],
        }
        if system:
            kwargs["system"] = system

        start_time = time.time()
        try:
            response = self._client.messages.create(**kwargs)
        except Exception as e:
            raise RuntimeError(f"Claude request failed: {e}") from e
        latency_ms = int((time.time() - start_time) * 1000)

        text = "".join(block.text for block in response.content if block.type == "text")
        tokens = response.usage.input_tokens + response.usage.output_tokens

        return LLMResponse(
            text=text,
            tokens_used=tokens,
            model=self._model,
            latency_ms=latency_ms,
        )


__all__ = ["ANTHROPIC_AVAILABLE", "ClaudeLanguageModel"]
