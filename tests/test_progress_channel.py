from __future__ import annotations

import pytest

from runner import ProgressChannel, ProgressReport


def _collecting_channel(max_pending: int = 64):
    received: list[ProgressReport] = []
    channel = ProgressChannel(max_pending=max_pending)
    channel.attach(received.append)
    channel.mark_started()
    return channel, received


def test_dispatch_delivers_in_order_with_final_last() -> None:
    channel, received = _collecting_channel()
    for step in range(1, 4):
        assert channel.publish(ProgressReport(steps_completed=step))
    channel.publish(ProgressReport(steps_completed=3, final=True, status="step_limit"))

    assert channel.dispatch() == 4
    assert [report.steps_completed for report in received] == [1, 2, 3, 3]
    assert received[-1].final
    assert channel.dispatch() == 0


def test_bounded_buffer_drops_oldest_intermediate_but_keeps_final() -> None:
    channel, received = _collecting_channel(max_pending=2)
    for step in range(1, 6):
        channel.publish(ProgressReport(steps_completed=step))
    channel.publish(ProgressReport(steps_completed=5, final=True, status="step_limit"))

    channel.dispatch()

    assert [report.steps_completed for report in received] == [4, 5, 5]
    assert received[-1].final
    assert channel.dropped == 3


def test_detached_channel_discards_reports() -> None:
    channel, received = _collecting_channel()
    channel.publish(ProgressReport(steps_completed=1))
    channel.detach()

    assert not channel.publish(ProgressReport(steps_completed=2, final=True, status="stopped"))
    assert channel.dispatch() == 0
    assert received == []
    assert channel.finished
    assert channel.wait(0)


def test_attach_after_start_is_rejected() -> None:
    channel = ProgressChannel()
    channel.mark_started()
    with pytest.raises(RuntimeError, match="before the task starts"):
        channel.attach(lambda report: None)


def test_progress_must_not_go_backwards() -> None:
    channel, _ = _collecting_channel()
    channel.publish(ProgressReport(steps_completed=3))
    with pytest.raises(ValueError, match="backwards"):
        channel.publish(ProgressReport(steps_completed=2))


def test_max_pending_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ProgressChannel(max_pending=0)


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"steps_completed": -1}, "steps_completed"),
        ({"steps_completed": 2, "final": True}, "needs a final status"),
        ({"steps_completed": 2, "status": "converged"}, "Intermediate report"),
    ],
)
def test_progress_report_status_matches_finality(kwargs, message) -> None:
    with pytest.raises(ValueError, match=message):
        ProgressReport(**kwargs)
