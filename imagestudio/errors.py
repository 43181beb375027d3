"""Error types shared by the relay and the client."""

from __future__ import annotations


class GenerationValidationError(ValueError):
    """A generation request was rejected before any upstream call."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ImageGenerationError(RuntimeError):
    """A single upstream image generation call failed."""


class TransportError(RuntimeError):
    """The relay event stream could not be read."""


class StorageParseError(ValueError):
    """A value in client-local storage could not be decoded."""
