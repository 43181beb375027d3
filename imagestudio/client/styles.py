"""Style preset catalog and the two-slot style selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from ..prompts import join_style_fragments

CUSTOM_STYLE_ID = "custom"
MAX_SELECTED_STYLES = 2


@dataclass(slots=True, frozen=True)
class StylePreset:
    """Named prompt fragment used to bias the visual style."""

    id: str
    name: str
    description: str
    prompt: str


STYLE_PRESETS: List[StylePreset] = [
    StylePreset(
        id="watercolor",
        name="Watercolor",
        description="Soft, flowing watercolor painting style",
        prompt="in the style of watercolor painting, soft colors, flowing, artistic",
    ),
    StylePreset(
        id="cyberpunk",
        name="Cyberpunk",
        description="Futuristic cyberpunk aesthetic with neon lights",
        prompt="cyberpunk style, neon lights, futuristic, high contrast, digital art",
    ),
    StylePreset(
        id="vintage",
        name="Vintage",
        description="Retro vintage look from the 1970s",
        prompt="vintage 1970s style, retro, film grain, faded colors, nostalgic",
    ),
    StylePreset(
        id="anime",
        name="Anime",
        description="Japanese anime illustration style",
        prompt="anime style, manga illustration, vibrant, clean lines, detailed",
    ),
    StylePreset(
        id="oil-painting",
        name="Oil Painting",
        description="Classical oil painting with rich textures",
        prompt="oil painting style, rich textures, classical, detailed brushstrokes, artistic",
    ),
    StylePreset(
        id=CUSTOM_STYLE_ID,
        name="Custom Style",
        description="Define your own custom style",
        prompt="",
    ),
]


class StyleSelector:
    """Tracks up to two selected styles.

    The first selection stays fixed; selecting another style while two are
    selected replaces the second one.
    """

    def __init__(self, presets: Optional[List[StylePreset]] = None) -> None:
        catalog = presets if presets is not None else STYLE_PRESETS
        self._presets: Dict[str, StylePreset] = {preset.id: preset for preset in catalog}
        self._selected: List[str] = []
        self.custom_text = ""

    @property
    def presets(self) -> List[StylePreset]:
        return list(self._presets.values())

    @property
    def selected(self) -> List[str]:
        return list(self._selected)

    def get(self, style_id: str) -> StylePreset:
        try:
            return self._presets[style_id]
        except KeyError as exc:
            raise KeyError(f"Style preset '{style_id}' not found") from exc

    def select(self, style_id: str) -> List[str]:
        """Toggle ``style_id`` and return the current selection."""
        self.get(style_id)
        if style_id in self._selected:
            self._selected.remove(style_id)
        elif len(self._selected) < MAX_SELECTED_STYLES:
            self._selected.append(style_id)
        else:
            self._selected[-1] = style_id
        return self.selected

    def clear(self) -> None:
        self._selected.clear()

    def set_custom_text(self, text: str) -> None:
        self.custom_text = text

    def fragment(self, style_id: str) -> str:
        if style_id == CUSTOM_STYLE_ID:
            return self.custom_text.strip()
        return self.get(style_id).prompt

    @property
    def style_text(self) -> str:
        """Style text appended to every generation prompt."""
        fragments = [self.fragment(style_id) for style_id in self._selected]
        fragments = [fragment for fragment in fragments if fragment]
        if not fragments:
            return ""
        return join_style_fragments(*fragments)
