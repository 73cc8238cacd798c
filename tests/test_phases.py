from datetime import datetime, timedelta, timezone

from agentstream.events import ToolEndEvent, ToolStartEvent
from agentstream.phases import PhaseAggregator
from agentstream.steps import extract_steps


class StepClock:
    def __init__(self) -> None:
        self._now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


def test_apply_without_steps_opens_nothing() -> None:
    aggregator = PhaseAggregator()

    phases, open_id = aggregator.apply([])

    assert phases == []
    assert open_id is None


def test_first_steps_open_an_active_phase() -> None:
    clock = StepClock()
    aggregator = PhaseAggregator(clock=clock)
    steps = extract_steps(ToolStartEvent(tool_name="search"), [])

    phases, open_id = aggregator.apply(steps)

    assert open_id == "phase-0"
    assert len(phases) == 1
    assert phases[0].is_active
    assert phases[0].started_at == datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
    assert phases[0].completed_at is None
    assert phases[0].steps == tuple(steps)


def test_phase_activity_tracks_running_steps() -> None:
    aggregator = PhaseAggregator()
    steps = extract_steps(ToolStartEvent(tool_name="search", run_id="r1"), [])
    aggregator.apply(steps)

    steps = extract_steps(ToolEndEvent(tool_name="search", run_id="r1"), steps)
    phases, open_id = aggregator.apply(steps)

    assert open_id == "phase-0"
    assert len(phases) == 1
    assert not phases[0].is_active
    assert not phases[0].is_closed
    assert phases[0].steps[0].status == "complete"


def test_close_marks_phase_complete_and_keeps_running_steps() -> None:
    aggregator = PhaseAggregator(clock=StepClock())
    aggregator.apply(extract_steps(ToolStartEvent(tool_name="x"), []))

    phases = aggregator.close()

    assert len(phases) == 1
    assert phases[0].is_closed
    assert not phases[0].is_active
    assert phases[0].completed_at is not None
    assert phases[0].steps[0].status == "running"
    assert aggregator.open_phase_id is None


def test_close_without_open_phase_is_noop() -> None:
    aggregator = PhaseAggregator()

    assert aggregator.close() == []


def test_closed_phase_is_never_reopened() -> None:
    aggregator = PhaseAggregator()
    aggregator.apply(extract_steps(ToolStartEvent(tool_name="a"), []))
    aggregator.close()

    phases, open_id = aggregator.apply(
        extract_steps(ToolStartEvent(tool_name="b"), [])
    )

    assert open_id == "phase-1"
    assert [phase.phase_id for phase in phases] == ["phase-0", "phase-1"]
    assert phases[0].is_closed
    assert [step.tool_name for step in phases[0].steps] == ["a"]
    assert [step.tool_name for step in phases[1].steps] == ["b"]


def test_phase_snapshots_are_independent_of_later_updates() -> None:
    aggregator = PhaseAggregator()
    steps = extract_steps(ToolStartEvent(tool_name="search", run_id="r1"), [])
    first, _ = aggregator.apply(steps)

    steps = extract_steps(ToolEndEvent(tool_name="search", run_id="r1"), steps)
    aggregator.apply(steps)

    assert first[0].steps[0].status == "running"
