"""Response pipeline: audio to transcript to reply to speech.

Each stage is callable on its own and raises its typed error; nothing is
retried and a failed provider never falls back to another one. ``run()``
chains the stages and reports a PipelineOutcome instead of raising.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .errors import InferenceError, PipelineError, SynthesisError, TranscriptionError
from .llm import LanguageModel, Message
from .stt import Transcriber
from .tts import SynthesisResult, Synthesizer

if TYPE_CHECKING:
    from .config import PiVoiceConfig

logger = logging.getLogger(__name__)


class OutcomeKind(Enum):
    """How a pipeline run ended."""

    REPLY = "reply"
    NO_SPEECH = "no_speech"
    FAILED = "failed"


@dataclass
class PipelineOutcome:
    """Result of one pipeline run.

    Attributes:
        kind: REPLY, NO_SPEECH or FAILED
        transcript: Recognized user text (empty for NO_SPEECH)
        reply_text: Assistant reply (REPLY only)
        speech: Synthesized reply audio (REPLY only)
        error: The stage failure (FAILED only)
        latency_ms: Wall time of the run
    """

    kind: OutcomeKind
    transcript: str = ""
    reply_text: str | None = None
    speech: SynthesisResult | None = None
    error: PipelineError | None = None
    latency_ms: int = 0

    @property
    def stage(self) -> str | None:
        """Name of the failed stage, if any."""
        return self.error.stage if self.error is not None else None

    @property
    def provider(self) -> str | None:
        """Provider that failed inference, if any."""
        return getattr(self.error, "provider", None)

    @classmethod
    def no_speech(cls) -> "PipelineOutcome":
        return cls(kind=OutcomeKind.NO_SPEECH)


class ResponsePipeline:
    """Stateless orchestration of transcription, inference and synthesis.

    The pipeline holds only the provider registry; the conversation history
    and the active provider and voice are passed in by the caller.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        providers: dict[str, LanguageModel],
        synthesizer: Synthesizer,
        system_prompt: str = "",
        max_tokens: int = 250,
        temperature: float = 0.7,
    ) -> None:
        """Initialize the pipeline.

        Args:
            transcriber: Speech-to-text engine
            providers: Language models by provider name
            synthesizer: Text-to-speech engine
            system_prompt: System message prepended to every inference
            max_tokens: Reply length limit
            temperature: Sampling temperature
        """
        self._transcriber = transcriber
        self._providers = dict(providers)
        self._synthesizer = synthesizer
        self._system_prompt = system_prompt
        self._max_tokens = max_tokens
        self._temperature = temperature

    @classmethod
    def from_config(cls, config: "PiVoiceConfig", use_mock: bool = False) -> "ResponsePipeline":
        """Build the pipeline and its providers from configuration."""
        from .llm import create_providers
        from .stt import create_transcriber
        from .tts import create_synthesizer

        return cls(
            transcriber=create_transcriber(config.stt, use_mock=use_mock),
            providers=create_providers(config.llm, use_mock=use_mock),
            synthesizer=create_synthesizer(config.tts, use_mock=use_mock),
            system_prompt=config.llm.system_prompt,
            max_tokens=config.llm.max_tokens,
            temperature=config.llm.temperature,
        )

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    @property
    def synthesizer(self) -> Synthesizer:
        return self._synthesizer

    def transcribe(self, audio: bytes, sample_rate: int, language: str | None = None) -> str:
        """Transcribe captured audio.

        Returns:
            The transcript, stripped (empty string means no speech)

        Raises:
            TranscriptionError: If the engine fails
        """
        try:
            result = self._transcriber.transcribe(audio, sample_rate, language=language)
        except Exception as e:
            raise TranscriptionError(str(e)) from e
        return result.text.strip()

    def build_messages(self, text: str, history: list[Message]) -> list[Message]:
        """System prompt, then prior turns, then the new user turn."""
        messages: list[Message] = []
        if self._system_prompt:
            messages.append({"role": "system", "content": self._system_prompt})
        messages.extend(history)
        messages.append({"role": "user", "content": text})
        return messages

    def infer(self, text: str, history: list[Message], provider: str) -> str:
        """Ask ``provider`` for a reply.

        Raises:
            InferenceError: If the provider is unknown, fails, or replies empty
        """
        model = self._providers.get(provider)
        if model is None:
            raise InferenceError("unknown provider", provider)

        try:
            response = model.chat(
                self.build_messages(text, history),
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except Exception as e:
            raise InferenceError(str(e), provider) from e

        reply = response.text.strip()
        if not reply:
            raise InferenceError("empty reply", provider)
        logger.debug(f"{provider} replied in {response.latency_ms}ms")
        return reply

    def synthesize(
        self,
        text: str,
        voice: str | None = None,
        language: str | None = None,
    ) -> SynthesisResult:
        """Synthesize ``text`` with ``voice``.

        Raises:
            SynthesisError: If the engine fails or returns no audio
        """
        try:
            result = self._synthesizer.synthesize(text, voice=voice, language=language)
        except Exception as e:
            raise SynthesisError(str(e)) from e
        if not result.audio:
            raise SynthesisError("no audio produced")
        return result

    def run(
        self,
        audio: bytes,
        sample_rate: int,
        history: list[Message],
        provider: str,
        voice: str | None = None,
        language: str | None = None,
        speech_language: str | None = None,
    ) -> PipelineOutcome:
        """Run all three stages in order.

        ``language`` hints transcription; ``speech_language`` (defaulting to
        ``language``) is passed to synthesis.

        An empty transcript stops after transcription with NO_SPEECH. A stage
        failure stops the run with FAILED and the typed error attached.
        """
        start = time.time()
        transcript = ""

        try:
            transcript = self.transcribe(audio, sample_rate, language)
            if not transcript:
                logger.info("No speech recognized")
                return PipelineOutcome(
                    kind=OutcomeKind.NO_SPEECH,
                    latency_ms=int((time.time() - start) * 1000),
                )

            logger.info(f"Transcript: {transcript}")
            reply = self.infer(transcript, history, provider)
            logger.info(f"Reply ({provider}): {reply[:80]}")
            speech = self.synthesize(reply, voice, speech_language or language)
        except PipelineError as e:
            logger.error(f"Pipeline failed at {e.stage}: {e}")
            return PipelineOutcome(
                kind=OutcomeKind.FAILED,
                transcript=transcript,
                error=e,
                latency_ms=int((time.time() - start) * 1000),
            )

        return PipelineOutcome(
            kind=OutcomeKind.REPLY,
            transcript=transcript,
            reply_text=reply,
            speech=speech,
            latency_ms=int((time.time() - start) * 1000),
        )


__all__ = ["OutcomeKind", "PipelineOutcome", "ResponsePipeline"]
