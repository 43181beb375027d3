"""Pydantic models shared by the relay endpoints and the client."""

from __future__ import annotations

import time
from enum import Enum
from typing import Annotated, Any, List, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

IMAGES_PER_REQUEST = 4
DEFAULT_SIZE = "1024x1024"


class ImageSize(str, Enum):
    """Allowed output sizes, keyed by their label."""

    square = "1024x1024"
    portrait = "1024x1792"
    landscape = "1792x1024"

    @classmethod
    def allowed_values(cls) -> List[str]:
        return [member.value for member in cls]


class GenerateImageRequest(BaseModel):
    """Request body as sent on the wire.

    Fields are untyped here; :meth:`RelayService.validate` checks them in order.
    """

    model_config = ConfigDict(extra="ignore")

    prompt: Any = Field(default=None, description="Text prompt for image generation")
    size: Any = Field(default=DEFAULT_SIZE, description="One of the ImageSize values")
    apiKey: Any = Field(default=None, description="Provider key overriding the server default")
    referenceImageUrl: Any = Field(
        default=None, description="Image whose style the generated images should mimic"
    )


# ---- Stream events ----
# Each event serialises to the flat object sent in one `data:` line.

class _StreamEvent(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


class ProgressEvent(_StreamEvent):
    status: Literal["generating"] = "generating"
    index: int = Field(..., ge=0, lt=IMAGES_PER_REQUEST)


class ResultEvent(_StreamEvent):
    imageUrl: str
    index: int = Field(..., ge=0, lt=IMAGES_PER_REQUEST)


class ItemErrorEvent(_StreamEvent):
    error: str
    index: int = Field(..., ge=0, lt=IMAGES_PER_REQUEST)


class CompleteEvent(_StreamEvent):
    status: Literal["complete"] = "complete"


class FatalErrorEvent(_StreamEvent):
    error: str


GenerationEvent = Union[ProgressEvent, ResultEvent, ItemErrorEvent, CompleteEvent, FatalErrorEvent]

_EVENT_ADAPTER: TypeAdapter[GenerationEvent] = TypeAdapter(
    Annotated[GenerationEvent, Field(union_mode="left_to_right")]
)


def parse_event(payload: Any) -> GenerationEvent:
    """Decode a wire object into its event variant.

    Raises :class:`pydantic.ValidationError` when the object matches no variant.
    """
    return _EVENT_ADAPTER.validate_python(payload)


def is_terminal(event: GenerationEvent) -> bool:
    return isinstance(event, (CompleteEvent, FatalErrorEvent))
# ------------------------------------------------------


class BatchResponse(BaseModel):
    imageUrls: List[str] = Field(..., description="Generated image urls in index order")
    errors: List[ItemErrorEvent] = Field(default_factory=list, description="Per-item failures")


class ErrorResponse(BaseModel):
    error: str


def _now_millis() -> int:
    return int(time.time() * 1000)


class HistoryEntry(BaseModel):
    """One completed generation batch, kept only on the client."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    prompt: str
    style: str = ""
    size: str = DEFAULT_SIZE
    imageUrls: List[str]
    timestamp: int = Field(default_factory=_now_millis, description="Creation time in epoch milliseconds")
