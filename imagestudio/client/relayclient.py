from __future__ import annotations

from typing import Iterator, Optional

import httpx

from ..config import Settings, get_settings
from ..errors import GenerationValidationError, ImageGenerationError, TransportError
from ..schemas import BatchResponse, GenerateImageRequest, GenerationEvent
from ..utils import decode_sse_line

GENERATE_PATH = "/api/generate-image"
BATCH_PATH = "/api/generate-image/batch"


class RelayClient:
    """HTTP client for the relay endpoints.

    Any ``httpx.Client`` works as transport, including FastAPI's
    ``TestClient``.
    """

    def __init__(self, http_client: Optional[httpx.Client] = None, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(
            base_url=self.settings.relay_base_url,
            timeout=self.settings.request_timeout,
        )

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "RelayClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def stream(self, request: GenerateImageRequest) -> Iterator[GenerationEvent]:
        """Yield relay events in arrival order.

        Raises :class:`TransportError` when the stream cannot be opened or read.
        """
        payload = request.model_dump(exclude_none=True)
        try:
            with self._http.stream("POST", GENERATE_PATH, json=payload) as response:
                if response.is_error:
                    raise TransportError(f"Relay responded with status {response.status_code}")
                for line in response.iter_lines():
                    event = decode_sse_line(line)
                    if event is not None:
                        yield event
        except httpx.HTTPError as exc:
            raise TransportError(f"Relay request failed: {exc}") from exc

    def generate_batch(self, request: GenerateImageRequest) -> BatchResponse:
        payload = request.model_dump(exclude_none=True)
        try:
            response = self._http.post(BATCH_PATH, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(f"Relay request failed: {exc}") from exc

        if response.is_success:
            return BatchResponse.model_validate(response.json())

        try:
            message = response.json().get("error") or response.reason_phrase
        except ValueError:
            message = response.reason_phrase
        if response.status_code == httpx.codes.BAD_REQUEST:
            raise GenerationValidationError(message)
        raise ImageGenerationError(message)
