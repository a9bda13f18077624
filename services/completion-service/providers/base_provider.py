from abc import ABC, abstractmethod
from typing import List, Optional

from shared.schemas import CategorySeverity


class ModerationProvider(ABC):
    """Base class for content moderation providers"""

    name: str = "moderation"

    @abstractmethod
    async def analyze_text(self, text: str) -> List[CategorySeverity]:
        """Score text against every harm category.

        Raises ModerationError when no analysis could be obtained.
        """
        pass

    async def aclose(self) -> None:
        pass


class GenerationProvider(ABC):
    """Base class for text generation providers"""

    name: str = "generation"

    @abstractmethod
    async def complete(self, prompt: str, system_message: str, model: Optional[str] = None) -> str:
        """Generate text for a prompt and system instruction.

        Raises GenerationError when the provider fails or returns an
        unrecognised body.
        """
        pass

    async def aclose(self) -> None:
        pass
