from __future__ import annotations

import pytest

from agent_sensei.engine.normalizer import TMUX_SEPARATOR, normalize, normalize_line, parse_frame

RAW_FRAMES = [
    "\x1b[1;32mHello\x1b[0m world\r\n\x1b[?25lnext line",
    "\x1b]0;opencode - project\x07\x1b(B\x1b=prompt $ ",
    "┃ Reading files ┃\n│ │ nested border │ │\n╭──╮\n",
    "partial\x08\x08 redraw\x0e\x0f\rdone",
    "\t indented\t\n\n\n  trailing   ",
    "\x1bP1$r0m\x1b\\after dcs\x7f",
    "",
]


@pytest.mark.parametrize("raw", RAW_FRAMES)
def test_normalize_is_idempotent(raw: str) -> None:
    once = normalize(raw)
    assert normalize("\n".join(once)) == once
    assert [normalize_line(line) for line in once] == once


def test_strips_sgr_and_private_modes() -> None:
    assert normalize("\x1b[1;32mHello\x1b[0m world\r\n\x1b[?25lnext") == ["Hello world", "next"]


def test_strips_title_charset_and_keypad_codes() -> None:
    assert normalize("\x1b]0;my title\x07\x1b(B\x1b=prompt $") == ["prompt $"]


def test_strips_box_glyphs_and_bar_padding() -> None:
    assert normalize("┃ Reading files ┃") == ["Reading files"]
    assert normalize("│ │ nested border │ │") == ["nested border"]
    assert normalize("╔═╗ │ boxed") == ["═ │ boxed"]


def test_removes_control_bytes_and_carriage_returns() -> None:
    assert normalize("abc\x08\x0e\x0f\r\x07def") == ["abcdef"]


def test_keeps_empty_lines() -> None:
    assert normalize("first\n\n  \nlast") == ["first", "", "", "last"]


def test_empty_input_is_one_empty_line() -> None:
    assert normalize("") == [""]


def test_parse_frame_splits_display_and_full_log() -> None:
    frame = parse_frame(f"\x1b[1mshown\x1b[0m\nprompt >{TMUX_SEPARATOR}one\ntwo\nthree")
    assert frame.display == ("shown", "prompt >")
    assert frame.full == ("one", "two", "three")


def test_parse_frame_without_separator_uses_same_lines() -> None:
    frame = parse_frame("a\nb")
    assert frame.display == frame.full == ("a", "b")


def test_parse_frame_keeps_last_display_lines_only() -> None:
    raw = "\n".join(str(i) for i in range(10))
    frame = parse_frame(raw + TMUX_SEPARATOR + raw, display_limit=3)
    assert frame.display == ("7", "8", "9")
    assert len(frame.full) == 10
