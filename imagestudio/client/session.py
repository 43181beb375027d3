"""Incremental consumer for the relay event stream."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, Iterable, List, Optional, Union

from ..errors import TransportError
from ..schemas import (
    IMAGES_PER_REQUEST,
    CompleteEvent,
    FatalErrorEvent,
    GenerationEvent,
    ItemErrorEvent,
    ProgressEvent,
    ResultEvent,
)

logger = logging.getLogger(__name__)

INCOMPLETE_STREAM_MESSAGE = "Stream ended before generation completed"


@dataclass(frozen=True)
class Waiting:
    progress: ClassVar[int] = 0


@dataclass(frozen=True)
class InProgress:
    progress: ClassVar[int] = 50


@dataclass(frozen=True)
class Done:
    url: str
    progress: ClassVar[int] = 100


@dataclass(frozen=True)
class Failed:
    message: str
    progress: ClassVar[int] = 100


SlotState = Union[Waiting, InProgress, Done, Failed]


class SessionStatus(str, Enum):
    idle = "idle"
    running = "running"
    complete = "complete"
    failed = "failed"
    aborted = "aborted"


_TERMINAL = {SessionStatus.complete, SessionStatus.failed, SessionStatus.aborted}


class GenerationSession:
    """Four-slot view of one submission, updated one event at a time."""

    def __init__(self, slot_count: int = IMAGES_PER_REQUEST) -> None:
        self.slot_count = slot_count
        self.slots: List[SlotState] = [Waiting() for _ in range(slot_count)]
        self.status = SessionStatus.idle
        self.error: Optional[str] = None
        self.events: List[GenerationEvent] = []
        self._arrival_order: List[str] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def finished(self) -> bool:
        return self.status in _TERMINAL

    @property
    def progress(self) -> List[int]:
        return [slot.progress for slot in self.slots]

    @property
    def image_urls(self) -> List[str]:
        """Finished image urls in the order they arrived."""
        return list(self._arrival_order)

    @property
    def item_errors(self) -> Dict[int, str]:
        return {
            index: slot.message
            for index, slot in enumerate(self.slots)
            if isinstance(slot, Failed)
        }

    @property
    def is_batch_complete(self) -> bool:
        return self.status is SessionStatus.complete and all(
            isinstance(slot, Done) for slot in self.slots
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def start(self) -> None:
        self.slots = [Waiting() for _ in range(self.slot_count)]
        self.status = SessionStatus.running
        self.error = None
        self.events = []
        self._arrival_order = []

    def apply(self, event: GenerationEvent) -> None:
        if self.finished:
            return
        if self.status is SessionStatus.idle:
            self.status = SessionStatus.running
        self.events.append(event)

        if isinstance(event, ProgressEvent):
            self.slots[event.index] = InProgress()
        elif isinstance(event, ResultEvent):
            self.slots[event.index] = Done(event.imageUrl)
            self._arrival_order.append(event.imageUrl)
        elif isinstance(event, ItemErrorEvent):
            self.slots[event.index] = Failed(event.error)
        elif isinstance(event, CompleteEvent):
            self.status = SessionStatus.complete
        elif isinstance(event, FatalErrorEvent):
            self.fail(event.error)

    def fail(self, message: str) -> None:
        # Partial results are not trusted after a fatal error.
        self.slots = [Waiting() for _ in range(self.slot_count)]
        self._arrival_order = []
        self.status = SessionStatus.failed
        self.error = message

    def abort(self) -> None:
        if not self.finished:
            self.status = SessionStatus.aborted

    def consume(
        self,
        events: Iterable[GenerationEvent],
        cancel_event: Optional[threading.Event] = None,
    ) -> SessionStatus:
        """Apply ``events`` in arrival order until a terminal state is reached.

        ``cancel_event`` is checked between events. A cancel issued while the
        relay is still waiting on the provider takes effect once the next line
        or the end of the stream arrives; the source is then closed, which drops
        the connection, but the relay is not told to stop and any upstream call
        already in flight still runs to completion.
        """
        self.start()
        iterator = iter(events)
        try:
            for event in iterator:
                if cancel_event is not None and cancel_event.is_set():
                    self.abort()
                    break
                self.apply(event)
                if self.finished:
                    break
        except TransportError as exc:
            logger.warning("Event stream interrupted: %s", exc)
            if not self.finished:
                self.fail(str(exc))
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()

        if not self.finished:
            if cancel_event is not None and cancel_event.is_set():
                self.abort()
            else:
                self.fail(INCOMPLETE_STREAM_MESSAGE)
        return self.status
