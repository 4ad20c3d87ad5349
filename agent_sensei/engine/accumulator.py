"""Reconstruct a deduplicated transcript from re-rendered terminal lines.

The driven process redraws its screen constantly: a line shows up half
written, then fuller, then again verbatim on the next repaint.  ``reconcile``
folds those redraws into one entry per logical line.  The accumulator keeps
the high-water mark into the full per-session log so each tick only looks at
lines it has not scanned yet.
"""

from __future__ import annotations

import re
from typing import Sequence

from loguru import logger

from agent_sensei.engine.filters import ContentSelector

_TERMINAL_PUNCTUATION = (".", "!", "?", ";", ":", ",", ")")
_HEADING_OR_PATH_RE = re.compile(r"^[A-Z#/*]")
_NUMBERED_ITEM_RE = re.compile(r"^\s*\d+\.")
LONG_LINE_THRESHOLD = 60


def looks_complete(line: str) -> bool:
    """Guess whether a line is finished rather than a partial redraw."""
    if line.endswith(_TERMINAL_PUNCTUATION):
        return True
    if _HEADING_OR_PATH_RE.match(line):
        return True
    if len(line) > LONG_LINE_THRESHOLD:
        return True
    if "/" in line:
        return True
    return bool(_NUMBERED_ITEM_RE.match(line))


def _keeps_order(working: Sequence[str], index: int, line: str) -> bool:
    # Replacing working[index] must not make the previous entry a prefix of
    # (or equal to) the new one, nor the new one a prefix of the next entry.
    if index > 0 and line.startswith(working[index - 1]):
        return False
    if index + 1 < len(working) and working[index + 1].startswith(line):
        return False
    return True


def _find_extension_point(line: str, working: Sequence[str]) -> tuple[int | None, bool]:
    """Scan backward for the entry ``line`` is a fuller redraw of.

    Returns ``(index, saw_candidate)``.  The most recent entry that is a prefix
    or a substring of ``line`` wins.
    """
    saw_candidate = False
    for index in range(len(working) - 1, -1, -1):
        existing = working[index]
        if not existing:
            continue
        if not (line.startswith(existing) or existing in line):
            continue
        saw_candidate = True
        if _keeps_order(working, index, line):
            return index, True
    return None, saw_candidate


def reconcile(new_lines: Sequence[str], working: Sequence[str]) -> list[str]:
    """Fold ``new_lines`` into ``working`` and return the updated transcript.

    Lines are trimmed.  Blank lines and exact duplicates are skipped, a fuller
    redraw replaces the entry it extends, and anything else is appended only
    when it looks complete.
    """
    result = list(working)
    for raw_line in new_lines:
        line = raw_line.strip()
        if not line or line in result:
            continue

        index, saw_candidate = _find_extension_point(line, result)
        if index is not None:
            result[index] = line
            continue
        if saw_candidate:
            # Every extension point would break ordering; the next repaint
            # carries the line again.
            continue

        if looks_complete(line):
            result.append(line)
    return result


class TranscriptAccumulator:
    """Own the high-water mark and feed new log lines through ``reconcile``."""

    def __init__(self, selector: ContentSelector) -> None:
        self.selector = selector
        self._mark = 0

    @property
    def high_water_mark(self) -> int:
        return self._mark

    def _rebase(self, full_lines: Sequence[str]) -> None:
        if len(full_lines) < self._mark:
            logger.debug(
                f"[accumulator] Log shrank below mark ({len(full_lines)} < {self._mark}), rebasing"
            )
            self._mark = 0

    def pending_lines(self, full_lines: Sequence[str]) -> list[str]:
        """Return the lines past the mark without consuming them."""
        self._rebase(full_lines)
        return list(full_lines[self._mark :])

    def ingest(self, full_lines: Sequence[str], working: Sequence[str]) -> list[str]:
        """Reconcile the unscanned content lines into ``working``."""
        fresh = self.pending_lines(full_lines)
        self._mark = len(full_lines)
        if not fresh:
            return list(working)
        content = self.selector.select(fresh)
        return reconcile(content, working)

    def skip(self, full_lines: Sequence[str]) -> None:
        """Advance the mark to the end of the log, keeping nothing."""
        self._rebase(full_lines)
        self._mark = len(full_lines)

    def reset(self, mark: int = 0) -> None:
        self._mark = max(0, int(mark))
