"""Filter terminal chrome out of captured lines.

Two stages use these filters:

- the transcript accumulator only sees lines the agent actually wrote
  (no busy markers, status banners, prompt echoes or escape residue);
- the response gate strips progress counters, build stamps and prompt
  echoes from a closed epoch before staging it for approval.

OpenCode-specific chrome is the default; markers are configurable.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from agent_sensei.engine.busy import BusyDetector

# ── Compiled patterns ─────────────────────────────────────────────────────────

# Prompt echo carrying a clock stamp, e.g. "fix the tests (03:07 PM)"
PROMPT_TIMESTAMP_RE = re.compile(r"\(\d{1,2}:\d{2}\s+[AP]M\)$")

# OpenCode status banners
STATUS_BANNER_MARKERS = ("BUILD AGENT", "opencode v")

# Private-mode toggles that survive as text once ESC is gone: [?7l [?25h ...
PRIVATE_MODE_RESIDUE_RE = re.compile(r"\[\?(?:7|25)[hl]")
ANSI_RESIDUE_ONLY_RE = re.compile(r"^(?:\[[?;0-9]+[hlm])+$")

# Lines that are only rules, block elements or spinner glyphs
DECORATIVE_LINE_RE = re.compile(
    r"^[\s─━│┃┄┅┆┇┈┉┊┋┌┍┎┏┐┑┒┓└┘├┤┬┴┼╌╍╎╏═║╔╗╚╝╠╣╦╩╬"
    r"─-╿▀-▟⠀-⣿\-=_~*+]+$"
)
SPINNER_LINE_RE = re.compile(r"^[⠀-⣿◐◑◒◓●○◉◎]+(?:\s+.{0,60})?$")
THINKING_RE = re.compile(r"^[\s.…⋯·•]+$")

# Token/context counters: "16K/7%"
PROGRESS_COUNTER_RE = re.compile(r"\d+K/\d+%")
PROGRESS_COUNTER_ONLY_RE = re.compile(r"^\s*\d+K/\d+%\s*$")
SHARE_LINK_MARKER = "/share to create a shareable link"

BUILD_STAMP_PATTERN = r"Build\s+claude-[\w-]+\s+\(\d{1,2}:\d{2}\s+[AP]M\)"
BUILD_STAMP_LINE_RE = re.compile(rf"^\s*{BUILD_STAMP_PATTERN}\s*$")

DEFAULT_CONTENT_START_MARKERS: tuple[str, ...] = ("/share to create",)
DEFAULT_CONTENT_END_PATTERNS: tuple[str, ...] = (BUILD_STAMP_PATTERN,)


def is_residue_line(line: str) -> bool:
    """Check if a line is leftover escape residue or pure decoration."""
    stripped = line.strip()
    if not stripped:
        return True

    if PRIVATE_MODE_RESIDUE_RE.search(stripped):
        return True

    if ANSI_RESIDUE_ONLY_RE.fullmatch(stripped):
        return True

    if DECORATIVE_LINE_RE.fullmatch(stripped):
        return True

    if SPINNER_LINE_RE.fullmatch(stripped):
        return True

    if THINKING_RE.fullmatch(stripped):
        return True

    return False


class ContentSelector:
    """Pick the content lines out of one poll's batch of new log lines."""

    def __init__(
        self,
        busy_detector: BusyDetector,
        start_markers: Sequence[str] = DEFAULT_CONTENT_START_MARKERS,
        end_patterns: Sequence[str] = DEFAULT_CONTENT_END_PATTERNS,
    ) -> None:
        self.busy_detector = busy_detector
        self.start_markers = tuple(m for m in start_markers if m)
        self._end_regexes = [re.compile(p) for p in end_patterns if p]

    def is_start_line(self, line: str) -> bool:
        return any(marker in line for marker in self.start_markers)

    def is_end_line(self, line: str) -> bool:
        return any(regex.search(line) for regex in self._end_regexes)

    def is_chrome_line(self, line: str) -> bool:
        """Check if a line is TUI chrome rather than agent output."""
        stripped = line.strip()
        if not stripped:
            return True

        if self.busy_detector.is_busy_line(stripped):
            return True

        if PROMPT_TIMESTAMP_RE.search(stripped):
            return True

        if any(marker in stripped for marker in STATUS_BANNER_MARKERS):
            return True

        if self.is_start_line(stripped) or self.is_end_line(stripped):
            return True

        return is_residue_line(stripped)

    def bound(self, lines: Sequence[str]) -> list[str]:
        """Slice between a start and an end marker when the batch has both."""
        start = next((i for i, line in enumerate(lines) if self.is_start_line(line)), None)
        if start is None:
            return list(lines)
        end = next(
            (j for j in range(start + 1, len(lines)) if self.is_end_line(lines[j])),
            None,
        )
        if end is None:
            return list(lines)
        return list(lines[start + 1 : end])

    def select(self, lines: Sequence[str]) -> list[str]:
        """Return the content lines of a batch, chrome removed."""
        return [line for line in self.bound(lines) if not self.is_chrome_line(line)]


def filter_epoch_content(lines: Iterable[str]) -> list[str]:
    """Strip counters, build stamps and prompt echoes from closed-epoch content."""
    result: list[str] = []
    for line in lines:
        if SHARE_LINK_MARKER in line and PROGRESS_COUNTER_RE.search(line):
            continue
        if PROGRESS_COUNTER_ONLY_RE.fullmatch(line):
            continue
        if BUILD_STAMP_LINE_RE.fullmatch(line):
            continue
        if line.strip().startswith(">"):
            continue
        result.append(line)
    return result
