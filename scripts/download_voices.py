#!/usr/bin/env python3
"""Download Piper voice models for pivoice.

Fetches ``<voice>.onnx`` and ``<voice>.onnx.json`` from the rhasspy
piper-voices repository for every voice in the configured voice cycle.

Usage:
    python scripts/download_voices.py [--profile prod] [--dest models/piper]
    python scripts/download_voices.py en_US-amy-medium en_GB-alan-medium
"""

import argparse
import sys
from pathlib import Path

import httpx

BASE_URL = "https://huggingface.co/rhasspy/piper-voices/resolve/main"


def voice_url(voice: str, suffix: str) -> str:
    """URL of a voice file, e.g. en/en_US/lessac/medium/en_US-lessac-medium.onnx."""
    locale, speaker, quality = voice.split("-", 2)
    language = locale.split("_")[0]
    return f"{BASE_URL}/{language}/{locale}/{speaker}/{quality}/{voice}{suffix}"


def download(client: httpx.Client, url: str, dest: Path) -> None:
    """Stream ``url`` into ``dest`` via a partial file."""
    partial = dest.with_suffix(dest.suffix + ".part")
    with client.stream("GET", url) as response:
        response.raise_for_status()
        with partial.open("wb") as f:
            for chunk in response.iter_bytes():
                f.write(chunk)
    partial.replace(dest)


def main() -> int:
    parser = argparse.ArgumentParser(description="Download Piper voices")
    parser.add_argument("voices", nargs="*", help="Voice names (default: configured cycle)")
    parser.add_argument("--profile", default="prod", help="Profile to read voices from")
    parser.add_argument("--dest", type=Path, help="Destination directory")
    args = parser.parse_args()

    from pivoice.config.loader import load_config

    config = load_config(profile=args.profile)
    voices = args.voices or config.tts.voices
    dest_dir = args.dest or Path(config.tts.models_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    failures = 0
    with httpx.Client(follow_redirects=True, timeout=60.0) as client:
        for voice in voices:
            for suffix in (".onnx", ".onnx.json"):
                target = dest_dir / f"{voice}{suffix}"
                if target.exists():
                    print(f"Exists:  {target}")
                    continue
                try:
                    download(client, voice_url(voice, suffix), target)
                    print(f"Fetched: {target}")
                except (httpx.HTTPError, ValueError) as e:
                    print(f"Failed:  {voice}{suffix}: {e}", file=sys.stderr)
                    failures += 1

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
