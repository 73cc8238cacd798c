from datetime import datetime, timezone
from typing import Any, Literal

from msgspec import field

from agentstream.interface import Record

StepKind = Literal["tool_call", "tool_result", "thinking"]
StepStatus = Literal["running", "complete", "error"]
RunState = Literal["idle", "streaming", "finalized", "errored"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Step(Record, kw_only=True):
    """One observed tool invocation or reasoning emission."""

    step_id: str
    """Identifier derived from discovery order, stable across replays."""

    tool_name: str
    """Resolved tool name, never empty."""

    kind: StepKind
    """Whether this is a call in flight, a finished call or a reasoning entry."""

    payload: Any = None
    """Tool arguments while running, extracted output once complete."""

    status: StepStatus = "running"

    timestamp: datetime = field(default_factory=utcnow)
    """Creation time; preserved when the step completes."""

    run_id: str | None = None
    """Correlation key of the tool invocation, when supplied by the source."""

    @property
    def is_running(self) -> bool:
        return self.status == "running"


class Phase(Record, kw_only=True):
    """Ordered group of steps produced during one burst of agent activity."""

    phase_id: str
    steps: tuple[Step, ...] = ()
    is_active: bool = True
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.completed_at is not None


class RunSnapshot(Record, kw_only=True):
    """Immutable view of a run at one instant."""

    state: RunState
    content: str = ""
    phases: tuple[Phase, ...] = ()
    error: str | None = None
