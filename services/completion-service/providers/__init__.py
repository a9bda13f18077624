"""Clients for the external moderation and generation services"""

from .base_provider import ModerationProvider, GenerationProvider
from .content_safety_provider import ContentSafetyProvider
from .claude_provider import ClaudeProvider

__all__ = [
    "ModerationProvider",
    "GenerationProvider",
    "ContentSafetyProvider",
    "ClaudeProvider",
]
