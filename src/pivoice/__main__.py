"""pivoice entry point.

Usage:
    python -m pivoice [OPTIONS]

Options:
    --config PATH      Path to YAML config file
    --profile NAME     Profile name (dev, prod, test)
    --mock-hardware    Use mock GPIO lines and audio devices
    --simulate         Drive the mock buttons from the keyboard
    --dry-run          Load config, print it and exit
    --version          Show version
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from . import __version__
from .config.loader import load_config
from .config.profiles import detect_profile

if TYPE_CHECKING:
    from .controller import InteractionController

# Keys accepted by --simulate
SIMULATOR_KEYS = {
    "r": "record",
    "m": "switch_model",
    "v": "switch_voice",
}


def load_environment() -> None:
    """Load .env from the project root, falling back to the working directory."""
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)
    else:
        load_dotenv()


def setup_logging(level: str) -> None:
    """Configure logging based on config."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="pivoice",
        description="pivoice - push-to-talk voice assistant for Raspberry Pi",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m pivoice                          # Run with auto-detected profile
  python -m pivoice --profile prod           # Run on the Pi
  python -m pivoice --profile dev --simulate # Keyboard buttons, mock lines
  python -m pivoice --config my.yaml         # Run with custom config file

Environment:
  PIVOICE_PROFILE      Set profile (dev, prod, test)
  ANTHROPIC_API_KEY    Claude provider
  OPENROUTER_API_KEY   OpenRouter provider
  ELEVENLABS_API_KEY   ElevenLabs voices
""",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML config file",
        metavar="PATH",
    )

    parser.add_argument(
        "--profile",
        choices=["dev", "prod", "test"],
        help="Configuration profile to use",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"pivoice v{__version__}",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Load config, print it and exit",
    )

    parser.add_argument(
        "--mock-hardware",
        action="store_true",
        help="Use mock GPIO lines and audio devices (no Pi required)",
    )

    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Read r/m/v/q from stdin to press the mock buttons (implies --mock-hardware)",
    )

    return parser.parse_args(argv)


def run_simulator(
    controller: "InteractionController",
    stop_event: threading.Event,
    logger: logging.Logger,
) -> None:
    """Press mock buttons from keyboard input until 'q' or end of input."""
    print("Keys: r = record, m = switch model, v = switch voice, q = quit")
    for line in sys.stdin:
        key = line.strip().lower()
        if key == "q":
            break
        button = SIMULATOR_KEYS.get(key)
        if button is None:
            print(f"Unknown key '{key}'")
            continue
        controller.ports.push(button)
        logger.debug(f"Simulated press: {button}")
    stop_event.set()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pivoice.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    load_environment()
    args = parse_args(argv)

    try:
        if args.config:
            config = load_config(path=args.config)
        elif args.profile:
            config = load_config(profile=args.profile)
        else:
            config = load_config(profile=detect_profile().value)
    except FileNotFoundError as e:
        print(f"Error: Config file not found: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging.level)
    logger = logging.getLogger("pivoice")

    logger.info(f"pivoice v{__version__}")
    logger.info(f"Profile: {args.profile or detect_profile().value}")

    if args.dry_run:
        import yaml

        print(yaml.safe_dump(config.to_dict(), sort_keys=False))
        return 0

    if args.mock_hardware or args.simulate:
        config.testing.mock_audio_enabled = True
        config.testing.mock_gpio_enabled = True

    print("\n" + "=" * 50)
    print("  pivoice")
    print("=" * 50)
    print(f"  Version: {__version__}")
    print(f"  STT: {config.stt.model} ({config.stt.device})")
    print(f"  Models: {', '.join(config.llm.cycle)}")
    print(f"  TTS: {config.tts.engine} ({', '.join(config.tts.voices)})")
    print(f"  Max recording: {config.recording.max_duration_s}s")
    print("=" * 50 + "\n")

    try:
        from .controller import InteractionController

        controller = InteractionController.from_config(config)
    except Exception as e:
        logger.error(f"Failed to initialize components: {e}")
        print(f"\nError: Failed to initialize pivoice: {e}")
        print("\nMake sure you have:")
        print("  1. Installed the Pi extras: pip install -e '.[pi]'")
        print("  2. Downloaded Piper voices into models/piper")
        print("  3. Started Ollama: ollama serve")
        return 1

    stop_event = threading.Event()
    signal_count = 0

    def signal_handler(_signum: int, _frame: object) -> None:
        nonlocal signal_count
        signal_count += 1
        if signal_count > 1:
            logger.warning("Force quit requested")
            sys.exit(1)
        logger.info("Shutdown requested, cleaning up...")
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        controller.start()
        if args.simulate:
            threading.Thread(
                target=run_simulator,
                args=(controller, stop_event, logger),
                name="simulator",
                daemon=True,
            ).start()
        else:
            print("Press the record button to talk. Press Ctrl+C to stop.\n")

        while not stop_event.wait(0.1):
            pass
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        controller.shutdown()
        logger.info("pivoice shut down")

    return 0


if __name__ == "__main__":
    sys.exit(main())
