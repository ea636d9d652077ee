"""OpenAI-compatible chat completions client.

Serves any provider exposing ``POST {base_url}/chat/completions`` with the
OpenAI request and response shape: OpenRouter, Fireworks, OpenAI itself.
"""

import logging
import os
import time

import httpx

from .model import LLMResponse, Message

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class OpenAICompatibleModel:
    """Language model behind an OpenAI-compatible HTTP API.

    API docs: https://platform.openai.com/docs/api-reference/chat/create
    """

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: str | None = None,
        api_key_env: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            model: Model identifier as the provider names it
            base_url: API root, e.g. "https://openrouter.ai/api/v1"
            api_key: API key (takes precedence over ``api_key_env``)
            api_key_env: Environment variable holding the API key
            timeout: Request timeout in seconds

        Raises:
            RuntimeError: If no API key is available
        """
        self._api_key = api_key or (os.environ.get(api_key_env) if api_key_env else None)
        if not self._api_key:
            raise RuntimeError(f"{api_key_env or 'API key'} is not set")

        self._model = model
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._timeout = timeout
        logger.info(f"Chat completions client initialized: {model} at {base_url}")

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
            RuntimeError: On transport errors, HTTP errors or an empty reply
        """
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        start_time = time.time()
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(self._url, headers=headers, json=payload)
                response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise RuntimeError(f"Request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise RuntimeError(
                f"HTTP error {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise RuntimeError(f"Request failed: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)

        choices = data.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""
        text = text.strip()
        if not text:
            raise RuntimeError("Provider returned an empty reply")

        usage = data.get("usage") or {}
        return LLMResponse(
            text=text,
            tokens_used=usage.get("total_tokens", len(text.split())),
            model=data.get("model", self._model),
            latency_ms=latency_ms,
        )


__all__ = ["OpenAICompatibleModel"]
