"""Domain logic for relaying generation requests to the image provider."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, AsyncIterator, Callable, List, Optional, Union

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError
from starlette.concurrency import run_in_threadpool

from .aiservices.imagegenerationclient import ImageGenerationClient
from .aiservices.openaiimagegenerationclient import create_openai_client
from .config import Settings, get_settings
from .errors import GenerationValidationError
from .prompts import get_reference_style_prompt
from .schemas import (
    IMAGES_PER_REQUEST,
    CompleteEvent,
    FatalErrorEvent,
    GenerateImageRequest,
    ImageSize,
    ItemErrorEvent,
    ProgressEvent,
    ResultEvent,
)
from .utils import encode_sse

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], ImageGenerationClient]
Outcome = Union[ProgressEvent, ResultEvent, ItemErrorEvent]

GENERIC_FAILURE = "Failed to generate image"

_URL_ADAPTER = TypeAdapter(AnyHttpUrl)


def _text_or_empty(value: Any) -> str:
    """Stripped string value; anything that is not a string counts as missing."""
    return value.strip() if isinstance(value, str) else ""


@dataclass(frozen=True)
class ValidatedGeneration:
    prompt: str
    size: str
    api_key: str
    reference_image_url: Optional[str] = None

    @property
    def upstream_prompt(self) -> str:
        return get_reference_style_prompt(self.prompt, self.reference_image_url)


@dataclass
class BatchResult:
    image_urls: List[str] = field(default_factory=list)
    errors: List[ItemErrorEvent] = field(default_factory=list)


class RelayService:
    """Validates requests and turns them into ordered generation outcomes."""

    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        # Read once; a request may still bring its own key.
        self._default_api_key = self.settings.openai_api_key.get_secret_value()
        self._client_factory = client_factory or self._create_default_client

    @property
    def has_default_credential(self) -> bool:
        return bool(self._default_api_key)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def parse_request(self, body: Union[bytes, str]) -> GenerateImageRequest:
        try:
            payload = json.loads(body or b"null")
        except ValueError as exc:
            raise GenerationValidationError("Invalid request body") from exc
        if not isinstance(payload, dict):
            raise GenerationValidationError("Invalid request body")
        try:
            return GenerateImageRequest.model_validate(payload)
        except ValidationError as exc:
            raise GenerationValidationError("Invalid request body") from exc

    def validate(self, request: GenerateImageRequest) -> ValidatedGeneration:
        prompt = _text_or_empty(request.prompt)
        if not prompt:
            raise GenerationValidationError("Prompt is required")

        api_key = _text_or_empty(request.apiKey) or self._default_api_key
        if not api_key:
            raise GenerationValidationError("OpenAI API key is required")

        allowed = ImageSize.allowed_values()
        if not isinstance(request.size, str) or request.size not in allowed:
            raise GenerationValidationError(
                f"Invalid size parameter. Must be one of: {', '.join(allowed)}"
            )

        reference_url = request.referenceImageUrl
        if isinstance(reference_url, str):
            reference_url = reference_url.strip() or None
        if reference_url is not None:
            if not isinstance(reference_url, str):
                raise GenerationValidationError("Invalid reference image URL")
            try:
                _URL_ADAPTER.validate_python(reference_url)
            except ValidationError as exc:
                raise GenerationValidationError("Invalid reference image URL") from exc

        return ValidatedGeneration(
            prompt=prompt,
            size=request.size,
            api_key=api_key,
            reference_image_url=reference_url,
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    async def iter_outcomes(self, generation: ValidatedGeneration) -> AsyncIterator[Outcome]:
        """Yield progress and one outcome per image, strictly in index order."""
        client = self._client_factory(generation.api_key)
        prompt = generation.upstream_prompt

        for index in range(IMAGES_PER_REQUEST):
            yield ProgressEvent(index=index)
            try:
                image_url = await run_in_threadpool(client.generate, prompt, generation.size)
            except Exception as exc:
                logger.exception("Error generating image %s", index + 1)
                yield ItemErrorEvent(index=index, error=self._describe_upstream_error(exc, index))
                continue
            yield ResultEvent(index=index, imageUrl=image_url)

    async def stream_events(self, body: Union[bytes, str]) -> AsyncIterator[str]:
        """Yield encoded SSE frames for one raw request body.

        Always ends with exactly one terminal frame: ``complete`` after the
        batch, or a single error when the request is rejected or the relay
        itself fails.
        """
        try:
            generation = self.validate(self.parse_request(body))
        except GenerationValidationError as exc:
            logger.info("Rejected generation request: %s", exc.message)
            yield encode_sse(FatalErrorEvent(error=exc.message))
            return
        except Exception:
            logger.exception("Could not read generation request")
            yield encode_sse(FatalErrorEvent(error=GENERIC_FAILURE))
            return

        try:
            async for event in self.iter_outcomes(generation):
                yield encode_sse(event)
        except Exception:
            logger.exception("Relay failed while generating images")
            yield encode_sse(FatalErrorEvent(error=GENERIC_FAILURE))
            return

        yield encode_sse(CompleteEvent())

    async def generate_batch(self, body: Union[bytes, str]) -> BatchResult:
        """Run the same four single-image calls and collect their outcomes.

        Raises :class:`GenerationValidationError` for a rejected request.
        """
        generation = self.validate(self.parse_request(body))
        result = BatchResult()
        async for event in self.iter_outcomes(generation):
            if isinstance(event, ResultEvent):
                result.image_urls.append(event.imageUrl)
            elif isinstance(event, ItemErrorEvent):
                result.errors.append(event)
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _create_default_client(self, api_key: str) -> ImageGenerationClient:
        return create_openai_client(api_key, self.settings)

    @staticmethod
    def _describe_upstream_error(exc: Exception, index: int) -> str:
        message = getattr(exc, "message", None) or str(exc)
        return message or f"Failed to generate image {index + 1}"


@lru_cache
def get_relay_service() -> RelayService:
    return RelayService(get_settings())
