"""Tests for the Idle/Busy/pending render state machine."""

from unittest.mock import MagicMock

import pytest

from iGrade.core.params import FilterParams
from iGrade.core.render_scheduler import RenderScheduler, SchedulerState


class _Harness:
    """Capture dispatched jobs and presented results without any threads."""

    def __init__(self):
        self.params = FilterParams()
        self.dispatched = []
        self.presented = []
        self.failures = []
        self.scheduler = RenderScheduler(
            self.dispatched.append,
            lambda: self.params,
            seed_factory=iter(range(100, 200)).__next__,
            present=lambda job, result: self.presented.append((job, result)),
            on_failure=lambda job, message: self.failures.append((job, message)),
        )

    def set_params(self, params):
        self.params = params
        return self.scheduler.request_render()


@pytest.fixture
def harness():
    h = _Harness()
    h.scheduler.set_source("image-a")
    return h


P1 = FilterParams(exposure=0.1)
P2 = FilterParams(exposure=0.2)
P3 = FilterParams(exposure=0.3)


def test_no_source_means_no_dispatch():
    h = _Harness()
    assert h.scheduler.request_render() is None
    assert h.dispatched == []


def test_request_dispatches_when_idle(harness):
    job = harness.set_params(P1)
    assert job is not None
    assert harness.dispatched == [job]
    assert job.params == P1
    assert job.source == "image-a"
    assert job.seed == 100
    assert harness.scheduler.state is SchedulerState.BUSY


def test_rapid_requests_coalesce_to_first_and_latest(harness):
    first = harness.set_params(P1)
    assert harness.set_params(P2) is None
    assert harness.set_params(P3) is None
    assert harness.scheduler.pending

    assert harness.scheduler.complete(first, "frame-1")
    assert len(harness.dispatched) == 2
    second = harness.dispatched[1]
    assert second.params == P3

    assert harness.scheduler.complete(second, "frame-3")
    assert [job.params for job, _ in harness.presented] == [P1, P3]
    assert len(harness.dispatched) == 2
    assert harness.scheduler.state is SchedulerState.IDLE
    assert not harness.scheduler.pending


def test_follow_up_uses_latest_snapshot_not_flagged_one(harness):
    first = harness.set_params(P1)
    harness.set_params(P2)
    # Newer parameters arrive without a new request (e.g. set directly).
    harness.params = P3
    harness.scheduler.complete(first, "frame")
    assert harness.dispatched[-1].params == P3


def test_each_render_draws_a_new_seed(harness):
    first = harness.set_params(P1)
    harness.scheduler.complete(first, "frame")
    second = harness.set_params(P2)
    assert first.seed != second.seed


def test_failure_clears_busy_and_reports(harness):
    job = harness.set_params(P1)
    harness.scheduler.fail(job, "boom")
    assert harness.failures == [(job, "boom")]
    assert harness.scheduler.state is SchedulerState.IDLE
    assert harness.set_params(P2) is not None


def test_failure_runs_pending_follow_up(harness):
    job = harness.set_params(P1)
    harness.set_params(P2)
    harness.scheduler.fail(job, "boom")
    assert harness.dispatched[-1].params == P2
    assert harness.scheduler.state is SchedulerState.BUSY


def test_new_source_resets_and_drops_stale_result(harness):
    old_job = harness.set_params(P1)
    harness.set_params(P2)

    token = harness.scheduler.set_source("image-b")
    assert token == old_job.source_token + 1
    assert harness.scheduler.state is SchedulerState.IDLE
    assert not harness.scheduler.pending

    new_job = harness.scheduler.request_render()
    assert new_job.source == "image-b"

    assert harness.scheduler.complete(old_job, "stale") is False
    assert harness.presented == []
    assert harness.scheduler.state is SchedulerState.BUSY

    assert harness.scheduler.complete(new_job, "fresh")
    assert harness.presented == [(new_job, "fresh")]


def test_duplicate_completion_is_ignored(harness):
    job = harness.set_params(P1)
    assert harness.scheduler.complete(job, "frame")
    assert harness.scheduler.complete(job, "frame") is False
    assert len(harness.presented) == 1


def test_dispatch_error_returns_to_idle():
    dispatch = MagicMock(side_effect=RuntimeError("pool closed"))
    scheduler = RenderScheduler(dispatch, FilterParams)
    scheduler.set_source(object())
    with pytest.raises(RuntimeError):
        scheduler.request_render()
    assert scheduler.state is SchedulerState.IDLE
    assert scheduler.active_job is None


def test_failing_presenter_still_runs_pending_follow_up():
    dispatched = []

    def present(job, result):
        raise RuntimeError("display gone")

    scheduler = RenderScheduler(dispatched.append, lambda: P2, present=present)
    scheduler.set_source("image")
    first = scheduler.request_render(P1)
    scheduler.request_render()
    with pytest.raises(RuntimeError):
        scheduler.complete(first, "frame")
    assert not scheduler.pending
    assert [job.params for job in dispatched] == [P1, P2]
    assert scheduler.state is SchedulerState.BUSY


def test_clear_source_stops_dispatch_and_drops_in_flight(harness):
    job = harness.set_params(P1)
    harness.set_params(P2)
    harness.scheduler.clear_source()
    assert not harness.scheduler.has_source()
    assert harness.scheduler.request_render() is None
    assert harness.scheduler.complete(job, "late") is False
    assert harness.presented == []
    assert len(harness.dispatched) == 1
