from __future__ import annotations

import pytest

from agent_sensei.engine.accumulator import TranscriptAccumulator, looks_complete, reconcile
from agent_sensei.engine.busy import BusyDetector
from agent_sensei.engine.filters import ContentSelector


def _assert_transcript_invariants(lines: list[str]) -> None:
    for current, following in zip(lines, lines[1:]):
        assert current.strip() != following.strip()
        assert not (following.startswith(current) and following != current)


def test_partial_redraw_collapses_into_one_entry() -> None:
    working: list[str] = []
    working = reconcile(["Buildin"], working)
    working = reconcile(["Building the widget"], working)
    assert working == ["Building the widget"]


def test_substring_match_replaces_entry() -> None:
    working = reconcile(["Step 2 done."], [])
    assert reconcile(["* Step 2 done. Moving on"], working) == ["* Step 2 done. Moving on"]


def test_exact_duplicates_and_blank_lines_are_skipped() -> None:
    working = reconcile(["Hello.", "", "   ", "Hello."], [])
    assert working == ["Hello."]
    assert reconcile(["  Hello.  "], working) == ["Hello."]


def test_backward_scan_prefers_most_recent_candidate() -> None:
    working = ["Reading src/app.py", "Writing tests.", "Reading"]
    assert reconcile(["Reading config"], working) == ["Reading src/app.py", "Writing tests.", "Reading config"]


def test_replacement_that_would_break_ordering_is_skipped() -> None:
    # Replacing "Run" with "Run tests" would make it a prefix of its neighbour.
    working = ["Run", "Run tests now."]
    assert reconcile(["Run tests"], working) == working


def test_fragments_that_do_not_look_complete_are_dropped() -> None:
    assert reconcile(["fragment of a sen"], []) == []


@pytest.mark.parametrize(
    "line",
    [
        "done.",
        "wait!",
        "really?",
        "items;",
        "note:",
        "a,",
        "call(x)",
        "Capitalized start",
        "# Heading",
        "/usr/bin/env",
        "* bullet",
        "x" * 61,
        "see src/main.py for details",
        "3. third item",
    ],
)
def test_looks_complete(line: str) -> None:
    assert looks_complete(line)


@pytest.mark.parametrize("line", ["lowercase fragment", "x" * 60, "- dash item"])
def test_looks_incomplete(line: str) -> None:
    assert not looks_complete(line)


def test_transcript_is_monotonic_and_keeps_invariants() -> None:
    batches = [
        ["Analyzing"],
        ["Analyzing the project", "I will"],
        ["I will update src/app.py", "1. Add tests"],
        ["1. Add tests", "2. Fix bug"],
        ["Analyzing the project layout.", "random bit"],
        ["Done."],
        ["Done. All green!"],
        ["Run", "Run tests now.", "Run tests"],
    ]
    working: list[str] = []
    previous_length = 0
    for batch in batches:
        working = reconcile(batch, working)
        assert len(working) >= previous_length
        previous_length = len(working)
        _assert_transcript_invariants(working)

    assert "Analyzing the project layout." in working
    assert "Done. All green!" in working
    assert "random bit" not in working


def _accumulator() -> TranscriptAccumulator:
    return TranscriptAccumulator(ContentSelector(BusyDetector()))


def test_ingest_consumes_only_lines_past_the_mark() -> None:
    acc = _accumulator()
    acc.skip(["Old output.", ">"])
    assert acc.high_water_mark == 2

    working = acc.ingest(["Old output.", ">", "Working...", "New output."], [])
    assert working == ["New output."]
    assert acc.high_water_mark == 4

    assert acc.ingest(["Old output.", ">", "Working...", "New output."], working) == working


def test_ingest_drops_chrome_lines() -> None:
    acc = _accumulator()
    full = [
        "Working...",
        "fix the tests (3:07 PM)",
        "BUILD AGENT",
        "opencode v0.3.1",
        "[?25l",
        "⠋⠙⠹",
        "...",
        "Updated src/app.py.",
    ]
    assert acc.ingest(full, []) == ["Updated src/app.py."]


def test_content_bounds_apply_when_both_markers_present() -> None:
    acc = _accumulator()
    full = [
        "Header noise.",
        "/share to create a shareable link",
        "Answer line one.",
        "Answer line two.",
        "Build claude-sonnet-4 (10:42 AM)",
        "Footer noise.",
    ]
    assert acc.ingest(full, []) == ["Answer line one.", "Answer line two."]


def test_content_bounds_ignored_with_only_start_marker() -> None:
    acc = _accumulator()
    full = ["Before.", "/share to create a shareable link", "After."]
    assert acc.ingest(full, []) == ["Before.", "After."]


def test_shrunken_log_rebases_mark() -> None:
    acc = _accumulator()
    acc.skip(["a", "b", "c", "d"])
    working = acc.ingest(["Fresh start."], [])
    assert working == ["Fresh start."]
    assert acc.high_water_mark == 1


def test_reset_moves_mark() -> None:
    acc = _accumulator()
    acc.reset(7)
    assert acc.high_water_mark == 7
    acc.reset(-3)
    assert acc.high_water_mark == 0
