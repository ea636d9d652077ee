"""Controller module for pivoice.

The InteractionController serializes button presses, capture results and
pipeline results through a single actor thread.

Usage:
    controller = InteractionController.from_config(config)
    controller.start()
    ...
    controller.shutdown()
"""

from .controller import InteractionController, voice_label
from .state import (
    ConversationHistory,
    InteractionSession,
    InteractionState,
    ProviderSelection,
)

__all__ = [
    "ConversationHistory",
    "InteractionController",
    "InteractionSession",
    "InteractionState",
    "ProviderSelection",
    "voice_label",
]
