from typing import Optional

STYLE_JOINER = ", combined with "


def get_reference_style_prompt(prompt: str, reference_image_url: Optional[str]) -> str:
    """Return the prompt forwarded upstream.

    The provider cannot condition on an image, so a reference image is
    approximated by asking the model to mimic its style in words.
    """
    prompt = prompt.strip()
    if not reference_image_url:
        return prompt
    return (
        f"{prompt}. Mimic the visual style, color palette and composition of "
        f"the reference image at {reference_image_url}"
    )


def get_full_prompt(prompt: str, style: str) -> str:
    """Append the selected style text to the user prompt."""
    if not style or not prompt:
        return prompt
    return f"{prompt}, {style}"


def join_style_fragments(first: str, second: Optional[str] = None) -> str:
    if not second:
        return first
    return f"{first}{STYLE_JOINER}{second}"
