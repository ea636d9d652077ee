#!/usr/bin/env python3
"""Generate the feedback cue WAV files for pivoice.

Writes start.wav, end.wav, error.wav and chime.wav (the default names in
``feedback.sounds``) into the sounds directory.

Usage:
    python scripts/generate_sounds.py [OUTPUT_DIR]
"""

import sys
import wave
from pathlib import Path

import numpy as np

SAMPLE_RATE = 22050


def envelope(num_samples: int, attack_ms: float = 10, release_ms: float = 20) -> np.ndarray:
    """Linear attack and release ramps."""
    env = np.ones(num_samples)
    attack = min(num_samples, int(SAMPLE_RATE * attack_ms / 1000))
    release = min(num_samples, int(SAMPLE_RATE * release_ms / 1000))
    if attack:
        env[:attack] = np.linspace(0.0, 1.0, attack)
    if release:
        env[-release:] = np.minimum(env[-release:], np.linspace(1.0, 0.0, release))
    return env


def sweep(start_hz: float, end_hz: float, duration_ms: int, amplitude: float = 0.4) -> np.ndarray:
    """Sine sweep from ``start_hz`` to ``end_hz``."""
    num_samples = int(SAMPLE_RATE * duration_ms / 1000)
    freqs = np.linspace(start_hz, end_hz, num_samples)
    phase = 2 * np.pi * np.cumsum(freqs) / SAMPLE_RATE
    return amplitude * envelope(num_samples) * np.sin(phase)


def chime(duration_ms: int = 300) -> np.ndarray:
    """C major chord with per-harmonic exponential decay."""
    num_samples = int(SAMPLE_RATE * duration_ms / 1000)
    t = np.arange(num_samples) / SAMPLE_RATE
    length = duration_ms / 1000
    signal = np.zeros(num_samples)
    for j, freq in enumerate((523, 659, 784)):  # C5, E5, G5
        signal += np.exp(-(3 + j) * t / length) * np.sin(2 * np.pi * freq * t)
    return 0.25 * envelope(num_samples, attack_ms=5) * signal


def to_pcm(signal: np.ndarray) -> bytes:
    return (np.clip(signal, -1.0, 1.0) * 32767).astype(np.int16).tobytes()


def save_wav(audio_data: bytes, path: Path) -> None:
    """Save 16-bit mono audio as a WAV file."""
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(audio_data)


def main() -> None:
    """Generate all feedback cues."""
    output_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__).parent.parent / "sounds"
    output_dir.mkdir(parents=True, exist_ok=True)

    sounds = {
        "start.wav": sweep(660, 880, 120),  # rising: recording
        "end.wav": sweep(880, 523, 120),  # falling: recording closed
        "error.wav": sweep(400, 250, 300),
        "chime.wav": chime(300),
    }

    for filename, signal in sounds.items():
        path = output_dir / filename
        save_wav(to_pcm(signal), path)
        print(f"Created: {path}")


if __name__ == "__main__":
    main()
