"""Profile selection.

The controller runs as prod on the Pi itself and as dev anywhere else, where
GPIO lines and audio devices are usually missing. PIVOICE_PROFILE overrides
the guess.
"""

import os
import platform
from enum import Enum
from pathlib import Path

PROFILE_ENV_VAR = "PIVOICE_PROFILE"

# The device tree names the board first; older kernels only expose cpuinfo
_MODEL_SOURCES = (
    Path("/proc/device-tree/model"),
    Path("/sys/firmware/devicetree/base/model"),
    Path("/proc/cpuinfo"),
)


class Profile(Enum):
    """Configuration profiles shipped in config/."""

    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class Platform(Enum):
    """Host kinds the controller distinguishes."""

    RASPBERRY_PI = "raspberrypi"
    LINUX = "linux"
    OTHER = "other"


def board_model() -> str | None:
    """Return the board model string reported by the kernel, if any."""
    for source in _MODEL_SOURCES:
        try:
            text = source.read_text(errors="ignore")
        except OSError:
            continue
        if source.name == "cpuinfo":
            for line in text.splitlines():
                key, _, value = line.partition(":")
                if key.strip() == "Model":
                    return value.strip()
            continue
        model = text.strip("\x00\n ")
        if model:
            return model
    return None


def detect_platform() -> Platform:
    """Classify the host."""
    if platform.system() != "Linux":
        return Platform.OTHER
    model = board_model()
    if model and "Raspberry Pi" in model:
        return Platform.RASPBERRY_PI
    return Platform.LINUX


def detect_profile() -> Profile:
    """Pick a profile from PIVOICE_PROFILE, else prod on a Pi and dev elsewhere.

    Unrecognized values in the environment variable are ignored.
    """
    requested = os.environ.get(PROFILE_ENV_VAR, "").strip().lower()
    try:
        return Profile(requested)
    except ValueError:
        pass

    if detect_platform() is Platform.RASPBERRY_PI:
        return Profile.PROD
    return Profile.DEV


def is_raspberry_pi() -> bool:
    return detect_platform() is Platform.RASPBERRY_PI


__all__ = [
    "PROFILE_ENV_VAR",
    "Platform",
    "Profile",
    "board_model",
    "detect_platform",
    "detect_profile",
    "is_raspberry_pi",
]
