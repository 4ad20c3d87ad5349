"""Heuristics for "the driven process is waiting for input"."""

from __future__ import annotations

from typing import Sequence

_PROMPT_ENDINGS = (">", "$", "#", "%")
_PROMPT_FRAGMENTS = ("?", "(y/n)", "Y/N", "[y/N]", "Enter", "enter send")
_PROMPT_WORDS = ("password", "continue")


def looks_like_input_prompt(full_lines: Sequence[str]) -> bool:
    """Guess from the tail of the full log whether input is expected."""
    if not full_lines:
        return False

    last = full_lines[-1]
    if last == "":
        # A blank tail only counts after real output.
        return any(line.strip() for line in full_lines[:-1])

    if last.endswith(_PROMPT_ENDINGS):
        return True
    if any(fragment in last for fragment in _PROMPT_FRAGMENTS):
        return True
    lowered = last.lower()
    return any(word in lowered for word in _PROMPT_WORDS)
