"""Shared test doubles for the relay tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
from imagestudio.aiservices.imagegenerationclient import ImageGenerationClient
from imagestudio.errors import ImageGenerationError


class StubImageClient(ImageGenerationClient):
    """Test double emulating the upstream provider for one request."""

    def __init__(self, failing: set[int], calls: list[tuple[str, str]]) -> None:
        self.failing = failing
        self.calls = calls
        self._next_index = 0

    def generate(self, prompt: str, size: str) -> str:  # pragma: no cover - exercised via API
        index = self._next_index
        self._next_index += 1
        self.calls.append((prompt, size))
        if index in self.failing:
            raise ImageGenerationError(f"content policy violation on image {index + 1}")
        return f"https://images.test/{index}.png"


class StubClientFactory:
    """Builds one stub client per request and records every upstream call."""

    def __init__(self) -> None:
        self.failing: set[int] = set()
        self.calls: list[tuple[str, str]] = []
        self.api_keys: list[str] = []

    def __call__(self, api_key: str) -> StubImageClient:
        self.api_keys.append(api_key)
        return StubImageClient(self.failing, self.calls)


@pytest.fixture
def factory() -> StubClientFactory:
    return StubClientFactory()
