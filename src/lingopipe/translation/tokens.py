"""Script-aware token estimation.

Providers tokenize non-Latin scripts less efficiently than Latin text, so the
estimate is ``chars × multiplier[script] + overhead``. The script is the one
with the most characters in the text, provided it covers more than 30% of it;
anything else counts as Latin.
"""

from __future__ import annotations

from collections.abc import Mapping

from lingopipe.config import DEFAULT_MULTIPLIERS

LATIN = "latin"

# (script, [(first, last), ...]): inclusive code point ranges
_SCRIPT_RANGES: tuple[tuple[str, tuple[tuple[int, int], ...]], ...] = (
    ("cjk", (
        (0x4E00, 0x9FFF),  # CJK unified ideographs
        (0x3040, 0x309F),  # Hiragana
        (0x30A0, 0x30FF),  # Katakana
        (0xAC00, 0xD7AF),  # Hangul syllables
    )),
    ("arabic", ((0x0600, 0x06FF), (0x0750, 0x077F))),
    ("cyrillic", ((0x0400, 0x04FF),)),
    ("devanagari", ((0x0900, 0x097F),)),
    ("thai", ((0x0E00, 0x0E7F),)),
)

# Share of the text the dominant script must exceed
_DOMINANCE_THRESHOLD = 0.3

DEFAULT_OVERHEAD = 20


def _script_of(char: str) -> str | None:
    cp = ord(char)
    if cp < 0x0400:
        return None
    for script, ranges in _SCRIPT_RANGES:
        for first, last in ranges:
            if first <= cp <= last:
                return script
    return None


def detect_script(text: str) -> str:
    """Return the dominant non-Latin script of ``text``, or ``"latin"``."""
    if not text:
        return LATIN

    counts: dict[str, int] = {}
    for char in text:
        script = _script_of(char)
        if script is not None:
            counts[script] = counts.get(script, 0) + 1

    if not counts:
        return LATIN

    # Ties resolve to the script listed first in _SCRIPT_RANGES
    order = [name for name, _ in _SCRIPT_RANGES]
    top = max(counts, key=lambda s: (counts[s], -order.index(s)))
    if counts[top] <= len(text) * _DOMINANCE_THRESHOLD:
        return LATIN
    return top


class TokenEstimator:
    """Estimates provider token cost for strings and key/text maps."""

    def __init__(
        self,
        multipliers: Mapping[str, float] | None = None,
        overhead: int = DEFAULT_OVERHEAD,
    ) -> None:
        self.multipliers = dict(DEFAULT_MULTIPLIERS)
        if multipliers:
            self.multipliers.update(multipliers)
        self.overhead = overhead

    def multiplier_for(self, text: str) -> float:
        return self.multipliers.get(detect_script(text), self.multipliers.get(LATIN, 0.25))

    def estimate(self, text: str) -> int:
        return int(len(text) * self.multiplier_for(text)) + self.overhead

    def estimate_many(self, texts: Mapping[str, str]) -> int:
        return sum(self.estimate(t) for t in texts.values())
