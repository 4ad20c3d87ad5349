from __future__ import annotations

import pytest
from conftest import ManualClock

from agent_sensei.engine.filters import filter_epoch_content
from agent_sensei.engine.gate import GateDecision, PendingApproval, RateLimiter, ResponseGate
from agent_sensei.engine.history import HistoryKind, HistoryLog


@pytest.fixture
def gate(clock: ManualClock) -> ResponseGate:
    return ResponseGate(RateLimiter(60.0, clock=clock), HistoryLog(50, clock=clock), clock=clock)


def test_stages_filtered_content_and_records_agent_response(gate: ResponseGate) -> None:
    result = gate.request_approval(["Tests pass.", "> run them again", "16K/7%"])
    assert result.decision is GateDecision.STAGED
    assert result.staged
    assert result.pending is gate.pending
    assert result.pending.filtered_content == "Tests pass."
    assert result.pending.raw_content == "Tests pass.\n> run them again\n16K/7%"
    assert result.pending.as_dict() == {
        "filtered_content": "Tests pass.",
        "raw_content": "Tests pass.\n> run them again\n16K/7%",
    }
    entries = gate.history.entries()
    assert [e.kind for e in entries] == [HistoryKind.AGENT_RESPONSE]
    assert entries[0].content == "Tests pass."


def test_second_request_while_pending_is_a_no_op(gate: ResponseGate) -> None:
    first = gate.request_approval("First answer.")
    second = gate.request_approval("Second answer.")
    assert first.decision is GateDecision.STAGED
    assert second.decision is GateDecision.ALREADY_PENDING
    assert gate.pending is first.pending
    assert gate.pending.filtered_content == "First answer."
    assert gate.last_processed == "Second answer."
    assert gate.history.count(HistoryKind.AGENT_RESPONSE) == 1


def test_rate_limited_reports_remaining_cooldown(gate: ResponseGate, clock: ManualClock) -> None:
    gate.limiter.record()
    clock.advance(10.0)
    result = gate.request_approval("Answer.")
    assert result.decision is GateDecision.RATE_LIMITED
    assert result.remaining_s == pytest.approx(50.0)
    assert gate.pending is None

    clock.advance(50.0)
    assert gate.request_approval("Answer.").decision is GateDecision.STAGED


def test_empty_after_filtering_is_rejected(gate: ResponseGate) -> None:
    content = [
        "/share to create a shareable link 16K/7%",
        "  12K/3%  ",
        "Build claude-sonnet-4 (3:07 PM)",
        "> previous prompt",
        "",
    ]
    assert gate.request_approval(content).decision is GateDecision.EMPTY
    assert gate.request_approval("").decision is GateDecision.EMPTY
    assert gate.pending is None
    assert len(gate.history) == 0


def test_already_processed_content_is_not_offered_again(gate: ResponseGate) -> None:
    gate.mark_processed("Same answer.")
    assert gate.request_approval("Same answer.").decision is GateDecision.ALREADY_PROCESSED


def test_clear_only_drops_current_pending(gate: ResponseGate) -> None:
    pending = gate.request_approval("Answer.").pending
    stranger = PendingApproval(filtered_content="x", raw_content="x", created_at=0.0)
    assert not gate.clear(stranger)
    assert gate.pending is pending
    assert gate.clear(pending)
    assert gate.pending is None
    assert not gate.clear(pending)


def test_filter_epoch_content_keeps_real_lines() -> None:
    lines = ["Share link: /share to create", "Build log ready.", "see a > b", "> echo"]
    assert filter_epoch_content(lines) == ["Share link: /share to create", "Build log ready.", "see a > b"]


def test_rate_limiter_without_dispatch_has_no_cooldown(clock: ManualClock) -> None:
    limiter = RateLimiter(60.0, clock=clock)
    assert limiter.remaining() == 0.0
    limiter.record()
    assert limiter.last_dispatch_at == clock.now
    assert limiter.remaining() == pytest.approx(60.0)
