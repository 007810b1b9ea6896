"""WhatsApp driver assistant — agents package.

Agents:
1. CommandRouter (deterministic fast-path and vocabulary matching)
2. ExtractionAgent (LLM intent + figures from transcribed voice notes)

``templates`` holds every pt-BR text the assistant sends.
"""

from .contracts import (
    ChartKind,
    CommandKind,
    ExtractedData,
    FastPathCommand,
    MenuOption,
)
from .command_router import route
from .extraction_agent import ExtractionAgent

__all__ = [
    "ChartKind",
    "CommandKind",
    "ExtractedData",
    "FastPathCommand",
    "MenuOption",
    "route",
    "ExtractionAgent",
]
