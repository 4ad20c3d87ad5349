from __future__ import annotations

import pytest

from agent_sensei.engine.busy import BusyDetector
from agent_sensei.engine.prompt import looks_like_input_prompt


@pytest.mark.parametrize(
    "line",
    ["Working...", "working", "Generating…", "THINKING..", "Processing.", "[working]", "  ⠋ Thinking... 12s"],
)
def test_busy_markers_match(line: str) -> None:
    assert BusyDetector().is_busy(["> ", line])


@pytest.mark.parametrize("line", ["networking stack ready", "homework done", "rethinking nothing", ""])
def test_busy_markers_need_whole_words(line: str) -> None:
    assert not BusyDetector().is_busy([line])


def test_custom_markers_replace_defaults() -> None:
    detector = BusyDetector(["compiling"])
    assert detector.is_busy(["Compiling..."])
    assert not detector.is_busy(["Working..."])


def test_no_markers_is_never_busy() -> None:
    assert not BusyDetector([]).is_busy(["Working..."])


@pytest.mark.parametrize(
    "lines",
    [
        ["output", ">"],
        ["user@host:~$"],
        ["root#"],
        ["zsh %"],
        ["Overwrite the file?"],
        ["Proceed (y/n)"],
        ["Apply changes Y/N"],
        ["Delete [y/N]"],
        ["Press Enter to accept"],
        ["password:"],
        ["Password for admin"],
        ["Do you want to CONTINUE"],
        ["ctrl+enter send"],
        ["Done editing", ""],
    ],
)
def test_prompt_tails(lines: list[str]) -> None:
    assert looks_like_input_prompt(lines)


@pytest.mark.parametrize(
    "lines",
    [
        [],
        [""],
        ["", ""],
        ["Compiled 3 files"],
        ["Building output line one"],
    ],
)
def test_non_prompt_tails(lines: list[str]) -> None:
    assert not looks_like_input_prompt(lines)
