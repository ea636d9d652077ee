"""Feedback module for pivoice.

Provides audible cues for controller events: recording started and
ended, errors (including rejected button presses), and mode changes.
"""

from enum import Enum
from typing import Protocol


class FeedbackType(Enum):
    """Types of audio feedback events.

    Values match the keys of ``feedback.sounds`` in the configuration.
    """

    RECORD_START = "record_start"
    RECORD_END = "record_end"
    ERROR = "error"
    MODE_CHANGE = "mode_change"


class AudioFeedback(Protocol):
    """Interface for audio feedback sounds."""

    def play(self, feedback_type: FeedbackType, *, blocking: bool = False) -> None:
        """Play feedback sound for the given event type.

        Args:
            feedback_type: The type of event to provide feedback for
            blocking: If True, wait for playback to complete before returning
        """
        ...

    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable feedback sounds."""
        ...

    @property
    def is_enabled(self) -> bool:
        """Return True if feedback sounds are enabled."""
        ...


__all__ = [
    "AudioFeedback",
    "FeedbackType",
]
