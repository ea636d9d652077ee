"""Local inference through an Ollama server.

The server normally runs on the Pi itself or on a machine on the same LAN.
Small models (llama3.2:3b, qwen2.5:1.5b) answer within a few seconds on a
Pi 5; the first request after idle also pays for loading the model, which
``keep_alive`` avoids between presses.
"""

import logging
import time

from .model import LLMResponse, Message

try:
    import ollama

    OLLAMA_AVAILABLE = True
except ImportError:
    OLLAMA_AVAILABLE = False
    ollama = None  # type: ignore

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:11434"
DEFAULT_KEEP_ALIVE = "10m"


class OllamaLanguageModel:
    """Language model served by Ollama.

    Implements the LanguageModel protocol.
    """

    def __init__(
        self,
        model: str = "llama3.2:3b",
        host: str = DEFAULT_HOST,
        timeout: float = 30.0,
        keep_alive: str = DEFAULT_KEEP_ALIVE,
    ) -> None:
        """Create the client. No request is made until the first ``chat``.

        Args:
            model: Model tag as listed by ``ollama list``
            host: Server URL
            timeout: Request timeout in seconds
            keep_alive: How long the server keeps the model loaded after a reply

        Raises:
            RuntimeError: If the ollama package is not installed
        """
        if not OLLAMA_AVAILABLE:
            raise RuntimeError("Ollama client not available. Install with: pip install ollama")

        self._model = model
        self._keep_alive = keep_alive
        self._client = ollama.Client(host=host, timeout=timeout)
        logger.info(f"Ollama client for {model} at {host}")

    @property
    def model(self) -> str:
        return self._model

    def chat(
        self,
        messages: list[Message],
        max_tokens: int = 250,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate the reply for ``messages``.

        Raises:
            RuntimeError: If the server is unreachable, rejects the request
                or returns no text
        """
        started = time.monotonic()
        try:
            reply = self._client.chat(
                model=self._model,
                messages=messages,
                options={"num_predict": max_tokens, "temperature": temperature},
                keep_alive=self._keep_alive,
            )
        except Exception as e:
            raise RuntimeError(f"Ollama request to {self._model} failed: {e}") from e

        text = (reply["message"]["content"] or "").strip()
        if not text:
            raise RuntimeError(f"Ollama model {self._model} returned an empty reply")

        latency_ms = int((time.monotonic() - started) * 1000)
        prompt_tokens = reply.get("prompt_eval_count") or 0
        reply_tokens = reply.get("eval_count") or len(text.split())
        logger.debug(f"{self._model}: {reply_tokens} tokens in {latency_ms}ms")

        return LLMResponse(
            text=text,
            tokens_used=prompt_tokens + reply_tokens,
            model=self._model,
            latency_ms=latency_ms,
        )


__all__ = ["OLLAMA_AVAILABLE", "OllamaLanguageModel"]
