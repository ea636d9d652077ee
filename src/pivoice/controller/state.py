"""Controller state, conversation memory and provider selection.

Also defines the events posted to the controller's queue by button
watchers and worker threads.
"""

import threading
import uuid
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from ..llm import Message

if TYPE_CHECKING:
    from ..audio.session import CaptureResult
    from ..pipeline import PipelineOutcome


class InteractionState(Enum):
    """Controller state machine."""

    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    ANNOUNCING = "announcing"


@dataclass
class InteractionSession:
    """One record-to-speak cycle.

    The captured audio belongs to the session until it is taken for the
    pipeline; ``release_audio`` drops it on every other exit path.
    """

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    state: InteractionState = InteractionState.RECORDING
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    captured_audio: bytes | None = None
    transcript: str | None = None
    reply_text: str | None = None
    stop_reason: str | None = None
    outcome: str | None = None
    error: str | None = None

    def take_audio(self) -> bytes:
        """Hand the captured audio over and drop the session's reference."""
        audio, self.captured_audio = self.captured_audio, None
        return audio or b""

    def release_audio(self) -> None:
        self.captured_audio = None

    @property
    def short_id(self) -> str:
        return str(self.id)[:8]


class ConversationHistory:
    """Ordered user/assistant turns, capped FIFO.

    All mutations hold a lock, so an exchange is appended as one unit and a
    reader never observes the user turn without its reply.
    """

    def __init__(self, max_entries: int = 10) -> None:
        if max_entries < 2:
            raise ValueError("max_entries must allow at least one exchange")
        self._entries: deque[Message] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen or 0

    def append_exchange(self, user: str, assistant: str) -> None:
        """Append a user turn and its reply as one pair."""
        with self._lock:
            self._entries.append({"role": "user", "content": user})
            self._entries.append({"role": "assistant", "content": assistant})

    def messages(self) -> list[Message]:
        """Snapshot of the entries, oldest first."""
        with self._lock:
            return [dict(entry) for entry in self._entries]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass(frozen=True)
class ProviderSelection:
    """Current position in the provider cycle and the voice cycle.

    Immutable: a switch produces a new selection, so a reader always sees a
    consistent provider and voice pair.
    """

    providers: tuple[str, ...]
    voices: tuple[str, ...]
    provider_index: int = 0
    voice_index: int = 0

    def __post_init__(self) -> None:
        if not self.providers:
            raise ValueError("Provider cycle is empty")
        if not self.voices:
            raise ValueError("Voice cycle is empty")

    @classmethod
    def create(
        cls,
        providers: list[str],
        voices: list[str],
        default_provider: str | None = None,
    ) -> "ProviderSelection":
        index = providers.index(default_provider) if default_provider in providers else 0
        return cls(tuple(providers), tuple(voices), provider_index=index)

    @property
    def provider(self) -> str:
        return self.providers[self.provider_index]

    @property
    def voice(self) -> str:
        return self.voices[self.voice_index]

    def next_provider(self) -> "ProviderSelection":
        return replace(self, provider_index=(self.provider_index + 1) % len(self.providers))

    def next_voice(self) -> "ProviderSelection":
        return replace(self, voice_index=(self.voice_index + 1) % len(self.voices))


# Events consumed by the controller's actor thread


@dataclass(frozen=True)
class RecordPressed:
    timestamp_s: float = 0.0


@dataclass(frozen=True)
class SwitchProviderPressed:
    timestamp_s: float = 0.0


@dataclass(frozen=True)
class SwitchVoicePressed:
    timestamp_s: float = 0.0


@dataclass(frozen=True)
class CaptureFinished:
    token: uuid.UUID
    result: "CaptureResult | None" = None
    error: Exception | None = None


@dataclass(frozen=True)
class PipelineFinished:
    token: uuid.UUID
    outcome: "PipelineOutcome"


@dataclass(frozen=True)
class AnnouncementFinished:
    token: uuid.UUID


@dataclass(frozen=True)
class Shutdown:
    pass


__all__ = [
    "AnnouncementFinished",
    "CaptureFinished",
    "ConversationHistory",
    "InteractionSession",
    "InteractionState",
    "PipelineFinished",
    "ProviderSelection",
    "RecordPressed",
    "Shutdown",
    "SwitchProviderPressed",
    "SwitchVoicePressed",
]
