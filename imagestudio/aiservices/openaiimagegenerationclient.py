# aiservices/openaiimagegenerationclient.py
from __future__ import annotations
from typing import Optional
import logging

from openai import OpenAI

from ..config import Settings, get_settings
from ..errors import ImageGenerationError
from .imagegenerationclient import ImageGenerationClient

logger = logging.getLogger(__name__)


class OpenAIImageGenerationClient(ImageGenerationClient):
    """
    Works with:
      - api.openai.com (native, dall-e-3 / gpt-image models)
      - any OpenAI-compatible images endpoint (set base_url)
    """

    def __init__(self, api_key: str, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

        self._client = OpenAI(
            api_key=api_key,
            base_url=self.settings.openai_base_url,
            timeout=self.settings.request_timeout,
        )
        self._model = self.settings.image_model_id

    def generate(self, prompt: str, size: str) -> str:
        response = self._client.images.generate(
            model=self._model,
            prompt=prompt,
            n=1,
            size=size,
        )

        data = response.data or []
        url = data[0].url if data else None
        if not url:
            raise ImageGenerationError("Provider returned no image URL")
        logger.debug("Generated image for size %s with model %s", size, self._model)
        return url


def create_openai_client(api_key: str, settings: Optional[Settings] = None) -> ImageGenerationClient:
    """Default per-request client factory used by the relay."""
    return OpenAIImageGenerationClient(api_key, settings)
