"""Configuration module for pivoice.

This module provides configuration loading and profile management.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol


@dataclass
class AudioConfig:
    """Audio input/output configuration."""

    input_device: str = "default"
    output_device: str = "default"
    sample_rate: int = 16000
    channels: int = 1
    chunk_size: int = 1024


@dataclass
class RecordingConfig:
    """Capture session limits and silence policy."""

    max_duration_s: float = 5.0
    silence_threshold_rms: float = 500.0
    silence_duration_s: float = 1.5
    spool_to_disk: bool = True
    scratch_dir: str | None = None


@dataclass
class GPIOConfig:
    """GPIO line configuration (BCM numbering)."""

    enabled: bool = True
    chip: str | None = None
    record_pin: int = 17
    switch_model_pin: int = 27
    switch_voice_pin: int = 24
    status_led_pin: int = 22
    active_led_pin: int = 23
    debounce_ms: int = 200
    active_low: bool = True


@dataclass
class STTConfig:
    """Speech-to-text configuration."""

    model: str = "base"
    device: str = "cpu"
    compute_type: str = "int8"
    beam_size: int = 1
    vad_filter: bool = True
    language: str = "en"


@dataclass
class ProviderConfig:
    """Settings for a single language model provider."""

    kind: str = "ollama"
    model: str = "llama3.2:3b"
    host: str | None = None
    api_key_env: str | None = None


def _default_providers() -> dict[str, ProviderConfig]:
    return {
        "ollama": ProviderConfig(kind="ollama", model="llama3.2:3b", host="http://localhost:11434"),
        "claude": ProviderConfig(
            kind="claude", model="claude-3-haiku-20240307", api_key_env="ANTHROPIC_API_KEY"
        ),
        "openrouter": ProviderConfig(
            kind="openai_compatible",
            model="qwen/qwen-2-7b-instruct",
            host="https://openrouter.ai/api/v1",
            api_key_env="OPENROUTER_API_KEY",
        ),
    }


@dataclass
class LLMConfig:
    """Language model configuration.

    ``cycle`` is the ordered provider set walked by the switch-model button.
    """

    cycle: list[str] = field(default_factory=lambda: ["ollama", "claude", "openrouter"])
    default_provider: str | None = None
    providers: dict[str, ProviderConfig] = field(default_factory=_default_providers)
    max_tokens: int = 250
    temperature: float = 0.7
    timeout_s: float = 30.0
    system_prompt: str = (
        "You are a helpful voice assistant. Keep your responses natural, "
        "conversational, and concise. Never use markdown, lists, or formatting."
    )


@dataclass
class TTSConfig:
    """Text-to-speech configuration."""

    engine: str = "piper"
    voices: list[str] = field(
        default_factory=lambda: [
            "en_US-lessac-medium",
            "en_US-amy-medium",
            "en_GB-alan-medium",
        ]
    )
    language: str = "en"
    announcement_voice: str | None = None
    announcement_language: str = "en"
    speed: float = 1.0
    models_dir: str = "models/piper"
    output_format: str | None = None


@dataclass
class ConversationConfig:
    """Conversation memory and fixed utterances."""

    max_history: int = 10
    apology_text: str = "Sorry, I could not process that."
    no_speech_text: str = "I did not catch that, please try again."
    welcome_enabled: bool = True


@dataclass
class PlaybackConfig:
    """Playback of encoded (non-PCM) audio through an external player."""

    player_command: list[str] = field(default_factory=lambda: ["mpg123", "-q"])
    timeout_s: float = 60.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"


@dataclass
class FeedbackConfig:
    """Audio feedback configuration."""

    audio_enabled: bool = True
    sounds_dir: str | None = None
    sounds: dict[str, str] = field(
        default_factory=lambda: {
            "record_start": "start.wav",
            "record_end": "end.wav",
            "error": "error.wav",
            "mode_change": "chime.wav",
        }
    )


@dataclass
class TestingConfig:
    """Testing configuration."""

    mock_audio_enabled: bool = False
    mock_gpio_enabled: bool = False
    mock_providers_enabled: bool = False


@dataclass
class PiVoiceConfig:
    """Main pivoice configuration."""

    audio: AudioConfig = field(default_factory=AudioConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    gpio: GPIOConfig = field(default_factory=GPIOConfig)
    stt: STTConfig = field(default_factory=STTConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    tts: TTSConfig = field(default_factory=TTSConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    feedback: FeedbackConfig = field(default_factory=FeedbackConfig)
    testing: TestingConfig = field(default_factory=TestingConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary (for --dry-run output)."""
        from dataclasses import asdict

        return asdict(self)


class ConfigLoader(Protocol):
    """Protocol for configuration loading."""

    def load(self, path: Path) -> PiVoiceConfig:
        """Load configuration from file path."""
        ...

    def load_profile(self, profile: str) -> PiVoiceConfig:
        """Load configuration by profile name (dev, prod, test)."""
        ...

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        ...


# Public API
__all__ = [
    "AudioConfig",
    "ConfigLoader",
    "ConversationConfig",
    "FeedbackConfig",
    "GPIOConfig",
    "LLMConfig",
    "LoggingConfig",
    "PiVoiceConfig",
    "PlaybackConfig",
    "ProviderConfig",
    "RecordingConfig",
    "STTConfig",
    "TTSConfig",
    "TestingConfig",
]
