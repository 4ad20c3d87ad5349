"""Turn raw captured terminal frames into plain, trimmed lines.

A capture from the multiplexer is full of SGR colors, cursor movement,
title updates and TUI box glyphs.  Everything downstream (busy detection,
transcript reconciliation, prompt heuristics) works on the plain lines
produced here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# ── Compiled patterns ─────────────────────────────────────────────────────────

ANSI_FULL_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"  # CSI (colors, cursor movement, private modes)
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"  # OSC (window title)
    r"|\x1bP[^\x1b]*\x1b\\"  # DCS
    r"|\x1b[()][0-9A-Za-z]"  # charset select
    r"|\x1b[>=]"  # keypad modes
    r"|\x1b[0-9@-Z\\^_]"  # remaining two-byte escapes (save/restore cursor etc.)
)
# C0 controls except tab and newline; includes CR, BS, SI/SO, ESC leftovers and DEL.
CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")

# Box glyphs removed anywhere in a line. Plain `|` and `-` are content.
BOX_GLYPHS_RE = re.compile(r"[┃║╎╏┆┇┊┋━╌╍┄┅┈┉┌┐└┘├┤┬┴┼╔╗╚╝╠╣╦╩╬╭╮╯╰]")
LEADING_BAR_RE = re.compile(r"^\s*│\s*")
TRAILING_BAR_RE = re.compile(r"\s*│\s*$")

TMUX_SEPARATOR = "<<<TMUX_SEPARATOR>>>"
DEFAULT_DISPLAY_LIMIT = 500


def _clean_once(line: str) -> str:
    cleaned = ANSI_FULL_RE.sub("", line)
    cleaned = CONTROL_CHAR_RE.sub("", cleaned)
    cleaned = BOX_GLYPHS_RE.sub("", cleaned)
    cleaned = LEADING_BAR_RE.sub("", cleaned)
    cleaned = TRAILING_BAR_RE.sub("", cleaned)
    return cleaned.strip()


def normalize_line(line: str) -> str:
    """Clean a single line until nothing more can be removed.

    Removing one piece can expose another (``│ │ nested`` only loses its
    inner border on the second pass), so the cleaner runs to a fixed point.
    """
    current = line
    while True:
        cleaned = _clean_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned


def normalize(raw: str) -> list[str]:
    """Split a raw frame into normalized lines. Empty lines are kept."""
    text = (raw or "").replace("\r\n", "\n")
    return [normalize_line(line) for line in text.split("\n")]


@dataclass(frozen=True)
class Frame:
    """One poll tick's capture, split into the visible viewport and the full log."""

    display: tuple[str, ...]
    full: tuple[str, ...]


def parse_frame(
    raw: str,
    separator: str = TMUX_SEPARATOR,
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
) -> Frame:
    """Normalize a capture that may carry a display/full-log separator."""
    display_raw = raw or ""
    log_raw: str | None = None
    if separator and separator in display_raw:
        display_raw, log_raw = display_raw.split(separator, 1)

    display = normalize(display_raw)
    full = display if log_raw is None else normalize(log_raw)
    if display_limit > 0 and len(display) > display_limit:
        display = display[-display_limit:]
    return Frame(display=tuple(display), full=tuple(full))
