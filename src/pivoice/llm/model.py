"""Language model protocol and data classes.

Defines the interface for language model inference.
"""

from dataclasses import dataclass
from typing import Protocol

# {"role": "system" | "user" | "assistant", "content": str}
Message = dict[str, str]


@dataclass
class LLMResponse:
    """Response from language model.

    Attributes:
        text: Generated response text
        tokens_used: Number of tokens consumed
        model: Model identifier
        latency_ms: Response latency in milliseconds
    """

    text: str
    tokens_used: int
    model: str
    latency_ms: int


class LanguageModel(Protocol):
    """Interface for language model inference.

    Implementations are stateless: the caller passes the full message list
    (system prompt, prior turns, current user turn) on every call.
    """

    def chat(
        self,
        messages: list[Message],
        max_tokens: int = 250,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate the assistant reply for ``messages``.

        Args:
            messages: Ordered conversation, last entry is the user turn
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0-2.0)

        Returns:
            LLMResponse with generated text

        Raises:
            RuntimeError: If generation fails
        """
        ...

    @property
    def model(self) -> str:
        """Model identifier."""
        ...


__all__ = ["LLMResponse", "LanguageModel", "Message"]
