"""Client-local state: the stored credential and the generation history."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from ..schemas import DEFAULT_SIZE, HistoryEntry
from ..storageservice.storageservice import LocalStorage

logger = logging.getLogger(__name__)

_REFERENCE_MARKER = re.compile(r"\s*\[reference: (?P<url>.+)\]$")


def mark_reference(style: str, reference_image_url: Optional[str]) -> str:
    """Record a reference image in the stored style text."""
    if not reference_image_url:
        return style
    marker = f"[reference: {reference_image_url}]"
    return f"{style} {marker}" if style else marker


@dataclass(frozen=True)
class FormState:
    """Form fields restored from a history entry."""

    prompt: str
    style: str = ""
    size: str = DEFAULT_SIZE
    reference_image_url: Optional[str] = None


class ClientContext:
    """Explicitly passed holder for the credential and history.

    State is read from storage by :meth:`load` and written back on every
    change.
    """

    def __init__(self, storage: LocalStorage) -> None:
        self.storage = storage
        self.credential: Optional[str] = None
        self.history: List[HistoryEntry] = []

    @classmethod
    def load(cls, storage: LocalStorage) -> "ClientContext":
        context = cls(storage)
        context.reload()
        return context

    def reload(self) -> None:
        self.credential = self.storage.load_credential()
        self.history = self.storage.load_history()
        logger.debug("Loaded %s history entries", len(self.history))

    # ---------- credential ----------
    def set_credential(self, api_key: Optional[str]) -> None:
        self.credential = (api_key or "").strip() or None
        self.storage.save_credential(self.credential)

    # ---------- history ----------
    def add_history_entry(self, entry: HistoryEntry) -> None:
        self.history.insert(0, entry)
        self.storage.save_history(self.history)

    def get_history_entry(self, entry_id: str) -> HistoryEntry:
        for entry in self.history:
            if entry.id == entry_id:
                return entry
        raise KeyError(f"History entry '{entry_id}' not found")

    def remove_history_entry(self, entry_id: str) -> bool:
        remaining = [entry for entry in self.history if entry.id != entry_id]
        if len(remaining) == len(self.history):
            return False
        self.history = remaining
        self.storage.save_history(self.history)
        return True

    def clear_history(self) -> None:
        self.history = []
        self.storage.save_history(self.history)

    @staticmethod
    def restore(entry: HistoryEntry) -> FormState:
        style = entry.style
        reference_image_url = None
        match = _REFERENCE_MARKER.search(style)
        if match:
            reference_image_url = match.group("url")
            style = style[: match.start()]
        return FormState(
            prompt=entry.prompt,
            style=style,
            size=entry.size,
            reference_image_url=reference_image_url,
        )
