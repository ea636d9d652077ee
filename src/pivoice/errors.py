"""Error types for the pivoice controller.

Hardware failures are absorbed where they occur; pipeline failures are
typed so the controller can tell which stage failed.
"""


class PiVoiceError(Exception):
    """Base exception for pivoice errors."""

    pass


class InputFailure(PiVoiceError):
    """Raised when a GPIO line cannot be acquired or read."""

    def __init__(self, message: str, pin: int | None = None) -> None:
        """Initialize input failure.

        Args:
            message: Error message.
            pin: GPIO line offset if known.
        """
        super().__init__(message)
        self.pin = pin


class CaptureError(PiVoiceError):
    """Raised when the capture device or stream fails."""

    pass


class AlreadyRecordingError(CaptureError):
    """Raised when start() is called on a session that is already recording."""

    pass


class PipelineError(PiVoiceError):
    """Base exception for response pipeline stage failures."""

    stage: str = "pipeline"


class TranscriptionError(PipelineError):
    """Raised when speech-to-text fails (distinct from an empty transcript)."""

    stage = "transcription"


class InferenceError(PipelineError):
    """Raised when the active language model provider fails."""

    stage = "inference"

    def __init__(self, message: str, provider: str) -> None:
        """Initialize inference error.

        Args:
            message: Error message.
            provider: Name of the provider that failed.
        """
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class SynthesisError(PipelineError):
    """Raised when text-to-speech fails."""

    stage = "synthesis"


class ConcurrentSessionRejected(PiVoiceError):
    """Raised when a second interaction session is attempted."""

    pass


__all__ = [
    "AlreadyRecordingError",
    "CaptureError",
    "ConcurrentSessionRejected",
    "InferenceError",
    "InputFailure",
    "PiVoiceError",
    "PipelineError",
    "SynthesisError",
    "TranscriptionError",
]
