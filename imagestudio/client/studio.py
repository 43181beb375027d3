"""Client orchestrator tying styles, the relay stream and local history together."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..prompts import get_full_prompt
from ..schemas import DEFAULT_SIZE, GenerateImageRequest, HistoryEntry
from .context import ClientContext, FormState, mark_reference
from .relayclient import RelayClient
from .session import GenerationSession
from .styles import CUSTOM_STYLE_ID, StyleSelector

logger = logging.getLogger(__name__)


class ImageStudio:
    """Submits one generation at a time and records completed batches."""

    def __init__(
        self,
        context: ClientContext,
        relay: RelayClient,
        styles: Optional[StyleSelector] = None,
    ) -> None:
        self.context = context
        self.relay = relay
        self.styles = styles or StyleSelector()
        self.last_entry: Optional[HistoryEntry] = None

    def build_request(
        self,
        prompt: str,
        size: str = DEFAULT_SIZE,
        reference_image_url: Optional[str] = None,
    ) -> GenerateImageRequest:
        return GenerateImageRequest(
            prompt=get_full_prompt(prompt.strip(), self.styles.style_text),
            size=size,
            apiKey=self.context.credential,
            referenceImageUrl=reference_image_url or None,
        )

    def generate(
        self,
        prompt: str,
        size: str = DEFAULT_SIZE,
        reference_image_url: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationSession:
        style = self.styles.style_text
        request = self.build_request(prompt, size, reference_image_url)

        session = GenerationSession()
        session.consume(self.relay.stream(request), cancel_event)
        self.last_entry = None

        if session.is_batch_complete:
            entry = HistoryEntry(
                prompt=prompt.strip(),
                style=mark_reference(style, reference_image_url),
                size=size,
                imageUrls=session.image_urls,
            )
            self.context.add_history_entry(entry)
            self.last_entry = entry
        else:
            logger.info("Generation ended with status %s; history unchanged", session.status.value)
        return session

    def load_history_entry(self, entry_id: str) -> FormState:
        """Repopulate the form from a stored entry without calling the relay."""
        form = self.context.restore(self.context.get_history_entry(entry_id))
        self.styles.clear()
        if form.style:
            self.styles.set_custom_text(form.style)
            self.styles.select(CUSTOM_STYLE_ID)
        return form
