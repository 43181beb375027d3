from __future__ import annotations

from abc import ABC, abstractmethod


class ImageGenerationClient(ABC):
    """Abstract interface for an image generation client.

    Implementations must provide a synchronous generation method; the relay
    runs it in the threadpool, one call at a time.
    """


    @abstractmethod
    def generate(self, prompt: str, size: str) -> str:
        """Generate exactly one image and return its URL."""
