"""Access tiers and the truncation applied to partial-tier readers."""

from __future__ import annotations

import math
from enum import Enum

DEFAULT_PREVIEW_PERCENTAGE = 30
_SENTENCE_ENDINGS = (". ", ".\n", "! ", "!\n", "? ", "?\n")
_SENTENCE_LOOKBACK = 100


class AccessTier(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


class PreviewStrategy(str, Enum):
    WORDS = "words"
    SENTENCES = "sentences"


def tier_for(credits: int, unlimited: bool, required: int) -> AccessTier:
    """Return the tier an account with ``credits`` gets for a run costing ``required``."""

    if unlimited or credits >= required:
        return AccessTier.FULL
    return AccessTier.PARTIAL


def truncate_words(text: str, percentage: int = DEFAULT_PREVIEW_PERCENTAGE) -> str:
    """Keep the leading ``percentage`` of whitespace-separated words.

    At least one word is always kept. ``...`` is appended whenever words were
    dropped.
    """

    words = text.split()
    if not words:
        return text
    keep = max(1, math.floor(len(words) * percentage / 100))
    truncated = " ".join(words[:keep])
    if keep < len(words):
        return f"{truncated}..."
    return truncated


def truncate_for_display(text: str, percentage: int = DEFAULT_PREVIEW_PERCENTAGE) -> str:
    """Cut ``text`` at ``percentage`` of its length, preferring a sentence end.

    Looks back up to 100 characters from the target for a sentence terminator
    followed by whitespace and cuts just after it; otherwise backs off to the
    previous space. The result is stripped.
    """

    if not text or percentage >= 100:
        return text

    target = math.floor(len(text) * percentage / 100)

    window_start = max(0, target - _SENTENCE_LOOKBACK)
    for index in range(target, window_start - 1, -1):
        if text[index : index + 2] in _SENTENCE_ENDINGS:
            return text[: index + 2].strip()

    cut = text.rfind(" ", 0, target + 1)
    return text[: max(cut, 0)].strip()


def truncate(
    text: str,
    tier: AccessTier | str,
    strategy: PreviewStrategy | str = PreviewStrategy.WORDS,
    percentage: int = DEFAULT_PREVIEW_PERCENTAGE,
) -> str:
    """Return ``text`` as a reader of ``tier`` may see it."""

    if AccessTier(tier) is AccessTier.FULL:
        return text
    if PreviewStrategy(strategy) is PreviewStrategy.SENTENCES:
        return truncate_for_display(text, percentage)
    return truncate_words(text, percentage)


__all__ = [
    "AccessTier",
    "PreviewStrategy",
    "tier_for",
    "truncate",
    "truncate_for_display",
    "truncate_words",
]
