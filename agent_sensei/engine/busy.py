"""Busy/idle detection on the visible terminal viewport."""

from __future__ import annotations

import re
from typing import Iterable, Sequence

DEFAULT_BUSY_MARKERS: tuple[str, ...] = ("working", "generating", "thinking", "processing")


def build_busy_regex(markers: Iterable[str]) -> re.Pattern[str] | None:
    """Compile markers into one case-insensitive pattern.

    Matches ``working``, ``Working...``, ``generating…`` and ``[working]``.
    """
    words = [re.escape(m.strip()) for m in markers if m and m.strip()]
    if not words:
        return None
    alternation = "|".join(words)
    return re.compile(
        rf"\[(?:{alternation})\]|\b(?:{alternation})\b(?:\.{{1,3}}|…)?",
        re.IGNORECASE,
    )


class BusyDetector:
    """Report whether the driven process is still working.

    Stateless: transition tracking lives in the epoch tracker.
    """

    def __init__(self, markers: Sequence[str] = DEFAULT_BUSY_MARKERS) -> None:
        self.markers = tuple(markers)
        self._regex = build_busy_regex(self.markers)

    def is_busy_line(self, line: str) -> bool:
        if self._regex is None or not line:
            return False
        return bool(self._regex.search(line))

    def is_busy(self, lines: Iterable[str]) -> bool:
        """Return True when any visible line carries a busy marker."""
        return any(self.is_busy_line(line) for line in lines)
