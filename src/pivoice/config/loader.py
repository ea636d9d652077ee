"""YAML configuration loader with inheritance support.

Supports:
- Loading YAML config files
- Config inheritance via 'extends' key
- Deep merging of nested config
"""

from pathlib import Path
from typing import Any

import yaml

from . import (
    AudioConfig,
    ConversationConfig,
    FeedbackConfig,
    GPIOConfig,
    LLMConfig,
    LoggingConfig,
    PiVoiceConfig,
    PlaybackConfig,
    ProviderConfig,
    RecordingConfig,
    STTConfig,
    TestingConfig,
    TTSConfig,
)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Values from override take precedence. Nested dicts are merged recursively.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_with_inheritance(path: Path) -> dict[str, Any]:
    """Load YAML file with inheritance support.

    If the file contains an 'extends' key, the base config is loaded first
    and merged with the current config.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    if "extends" in config:
        base_name = config.pop("extends")
        base_path = path.parent / base_name
        base_config = load_yaml_with_inheritance(base_path)
        config = deep_merge(base_config, config)

    return config


def dict_to_config(data: dict[str, Any]) -> PiVoiceConfig:
    """Convert raw dict to typed PiVoiceConfig dataclass."""
    root = data.get("pivoice", {}) or {}

    # YAML sections may be present but empty (None)
    def safe_get(key: str) -> dict[str, Any]:
        value = root.get(key, {})
        return value if value is not None else {}

    return PiVoiceConfig(
        audio=AudioConfig(**safe_get("audio")),
        recording=RecordingConfig(**safe_get("recording")),
        gpio=GPIOConfig(**safe_get("gpio")),
        stt=STTConfig(**safe_get("stt")),
        llm=_parse_llm_config(safe_get("llm")),
        tts=TTSConfig(**safe_get("tts")),
        conversation=ConversationConfig(**safe_get("conversation")),
        playback=PlaybackConfig(**safe_get("playback")),
        logging=LoggingConfig(**safe_get("logging")),
        feedback=_parse_feedback_config(safe_get("feedback")),
        testing=TestingConfig(**safe_get("testing")),
    )


def _parse_llm_config(data: dict[str, Any]) -> LLMConfig:
    """Parse LLM config, merging provider entries over the defaults."""
    data = dict(data)
    raw_providers = data.pop("providers", None) or {}
    config = LLMConfig(**data)

    for name, settings in raw_providers.items():
        settings = settings or {}
        if name in config.providers:
            existing = config.providers[name]
            merged = deep_merge(
                {
                    "kind": existing.kind,
                    "model": existing.model,
                    "host": existing.host,
                    "api_key_env": existing.api_key_env,
                },
                settings,
            )
            config.providers[name] = ProviderConfig(**merged)
        else:
            config.providers[name] = ProviderConfig(**settings)

    unknown = [name for name in config.cycle if name not in config.providers]
    if unknown:
        raise ValueError(f"Providers in llm.cycle have no settings: {', '.join(unknown)}")
    if not config.cycle:
        raise ValueError("llm.cycle must name at least one provider")

    return config


def _parse_feedback_config(data: dict[str, Any]) -> FeedbackConfig:
    """Parse feedback config, handling nested sounds dict."""
    defaults = FeedbackConfig()
    sounds = dict(defaults.sounds)
    sounds.update(data.get("sounds") or {})
    return FeedbackConfig(
        audio_enabled=data.get("audio_enabled", True),
        sounds_dir=data.get("sounds_dir"),
        sounds=sounds,
    )


class YAMLConfigLoader:
    """YAML configuration loader implementation."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize loader with optional config directory.

        Args:
            config_dir: Directory containing config files.
                        Defaults to 'config' relative to project root.
        """
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent.parent / "config"
        self._config_dir = config_dir

    def load(self, path: Path) -> PiVoiceConfig:
        """Load configuration from file path.

        Args:
            path: Path to YAML config file

        Returns:
            Parsed PiVoiceConfig
        """
        raw_config = load_yaml_with_inheritance(path)
        return dict_to_config(raw_config)

    def load_profile(self, profile: str) -> PiVoiceConfig:
        """Load configuration by profile name.

        Args:
            profile: Profile name (e.g., 'dev', 'prod')

        Returns:
            Parsed PiVoiceConfig for the profile
        """
        config_path = self._config_dir / f"{profile}.yaml"
        return self.load(config_path)

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        return self._config_dir


def load_config(path: str | Path | None = None, profile: str | None = None) -> PiVoiceConfig:
    """Load pivoice configuration.

    Args:
        path: Direct path to config file (takes precedence)
        profile: Profile name ('dev', 'prod', 'test') if path not given

    Returns:
        Parsed PiVoiceConfig

    Examples:
        >>> config = load_config(profile="dev")
        >>> config = load_config(path="/path/to/config.yaml")
    """
    loader = YAMLConfigLoader()

    if path is not None:
        return loader.load(Path(path))
    elif profile is not None:
        return loader.load_profile(profile)
    else:
        return loader.load_profile("dev")


__all__ = [
    "YAMLConfigLoader",
    "deep_merge",
    "dict_to_config",
    "load_config",
    "load_yaml_with_inheritance",
]
