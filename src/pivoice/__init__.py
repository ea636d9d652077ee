"""pivoice - push-to-talk voice assistant controller for Raspberry Pi.

pivoice turns three buttons, two LEDs, a microphone and a speaker into a
conversational assistant:
- Record button: push to talk, push again to stop
- Switch-model button: cycle Ollama, Claude and OpenAI-compatible providers
- Switch-voice button: cycle the text-to-speech voices
- Speech-to-text (Whisper), text-to-speech (Piper or ElevenLabs)

Usage:
    python -m pivoice --profile prod
    python -m pivoice --profile dev --simulate
"""

__version__ = "0.1.0"

from .config import PiVoiceConfig
from .config.loader import load_config

__all__ = [
    "PiVoiceConfig",
    "__version__",
    "load_config",
]
