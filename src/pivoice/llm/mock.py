"""Mock language models for testing.

Provides a controllable mock implementation for unit and integration
testing, and a stand-in for providers that could not be constructed.
"""

import threading
import time

from .model import LLMResponse, Message


class MockLanguageModel:
    """Mock language model for testing.

    Allows setting predetermined responses for predictable testing and
    records the message list of every call.
    """

    def __init__(self, model: str = "mock-model") -> None:
        """Initialize mock language model."""
        self._model = model
        self._response_text: str = "This is a mock response."
        self._error_message: str | None = None
        self._latency_ms: int = 0
        self._calls: list[list[Message]] = []
        self._lock = threading.Lock()

    def set_response(self, text: str) -> None:
        """Set the response to return.

        Args:
            text: Text to return
        """
        self._response_text = text
        self._error_message = None

    def set_error(self, message: str) -> None:
        """Set an error to raise on generation.

        Args:
            message: Error message
        """
        self._error_message = message

    def set_latency(self, latency_ms: int) -> None:
        """Set simulated latency."""
        self._latency_ms = latency_ms

    def chat(
        self,
        messages: list[Message],
        max_tokens: int = 250,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Return preset response."""
        with self._lock:
            self._calls.append([dict(m) for m in messages])

        if self._latency_ms:
            time.sleep(self._latency_ms / 1000)

        if self._error_message:
            raise RuntimeError(self._error_message)

        return LLMResponse(
            text=self._response_text,
            tokens_used=len(self._response_text.split()),
            model=self._model,
            latency_ms=self._latency_ms,
        )

    @property
    def model(self) -> str:
        return self._model

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._calls)

    @property
    def calls(self) -> list[list[Message]]:
        """Message lists received, oldest first."""
        with self._lock:
            return [list(call) for call in self._calls]

    @property
    def last_messages(self) -> list[Message] | None:
        with self._lock:
            return list(self._calls[-1]) if self._calls else None

    def clear(self) -> None:
        """Reset mock state."""
        self._response_text = "This is a mock response."
        self._error_message = None
        with self._lock:
            self._calls.clear()


class UnavailableLanguageModel:
    """Placeholder for a provider whose client could not be created.

    Keeps the provider in the switch cycle; every call fails with the
    reason it could not be constructed.
    """

    def __init__(self, model: str, reason: str) -> None:
        self._model = model
        self.reason = reason

    @property
    def model(self) -> str:
        return self._model

    def chat(
        self,
        messages: list[Message],  # noqa: ARG002
        max_tokens: int = 250,  # noqa: ARG002
        temperature: float = 0.7,  # noqa: ARG002
    ) -> LLMResponse:
        raise RuntimeError(f"Provider unavailable: {self.reason}")


__all__ = ["MockLanguageModel", "UnavailableLanguageModel"]
