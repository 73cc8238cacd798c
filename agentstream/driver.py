"""Per-run state machine that reduces an agent event stream."""

import logging
from collections import Counter
from collections.abc import AsyncGenerator, AsyncIterable, Callable
from typing import TypeAlias

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import SpanKind, Status, StatusCode

from .content import ContentReducer
from .errors import AgentStreamRuntimeError
from .events import (
    AgentStreamEvent,
    ChainEndEvent,
    ContentChunkEvent,
    StreamEndEvent,
    StreamErrorEvent,
    ToolEndEvent,
    ToolStartEvent,
)
from .interface import ILogger
from .models import Phase, RunSnapshot, RunState, Step
from .phases import PhaseAggregator
from .steps import extract_steps, resolve_tool_name

ContentObserver: TypeAlias = Callable[[str], None]
PhasesObserver: TypeAlias = Callable[[list[Phase]], None]


class StreamDriver:
    """Drives one run: pulls events in order and publishes derived state.

    Observers are called synchronously once per processed event, even when
    nothing changed, and once more when the run finalizes or errors.
    Exceptions raised by observers are not caught.
    """

    def __init__(
        self,
        *,
        on_content_update: ContentObserver | None = None,
        on_phases_update: PhasesObserver | None = None,
        reducer: ContentReducer | None = None,
        aggregator: PhaseAggregator | None = None,
        logger: ILogger | None = None,
        tracer: trace.Tracer | None = None,
    ):
        self._on_content_update = on_content_update
        self._on_phases_update = on_phases_update
        self._reducer = reducer or ContentReducer()
        self._aggregator = aggregator or PhaseAggregator()
        self._logger: ILogger = logger or logging.getLogger(__name__)
        self._tracer = tracer or trace.get_tracer("agentstream.driver")

        self._state: RunState = "idle"
        self._content = ""
        self._steps: list[Step] = []
        self._active_tools: Counter[str] = Counter()
        self._error: str | None = None
        self._event_count = 0

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in ("finalized", "errored")

    @property
    def content(self) -> str:
        return self._content

    @property
    def phases(self) -> list[Phase]:
        return self._aggregator.phases

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def active_tool_calls(self) -> dict[str, int]:
        return dict(self._active_tools)

    @property
    def tools_active(self) -> bool:
        return bool(self._active_tools)

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            state=self._state,
            content=self._content,
            phases=tuple(self._aggregator.phases),
            error=self._error,
        )

    def process(self, event: AgentStreamEvent) -> None:
        """Apply a single event to the run."""
        if self.is_terminal:
            self._logger.debug(
                "Ignoring %s event, run already %s", event.kind, self._state
            )
            return
        if self._state == "idle":
            self._state = "streaming"
        self._event_count += 1

        match event:
            case StreamEndEvent():
                self._finalize(event)
                return
            case StreamErrorEvent(message=message):
                self._fail(message)
                return
            case ToolStartEvent() | ToolEndEvent():
                self._track_tool_call(event)
                self._update_steps(event)
            case ContentChunkEvent() | ChainEndEvent():
                self._content = self._reducer.reduce(
                    event, self._content, tools_active=self.tools_active
                )
        self._publish()

    async def run(
        self,
        source: AsyncIterable[AgentStreamEvent],
        trace_ctx: Context | None = None,
    ) -> RunSnapshot:
        """Consume `source` until a terminal event, error or exhaustion."""
        if self.is_terminal:
            raise AgentStreamRuntimeError(
                f"StreamDriver run already ended (state={self._state})"
            )
        span = self._tracer.start_span(
            "agentstream.run",
            kind=SpanKind.INTERNAL,
            context=trace_ctx,
        )
        iterator = aiter(source)
        try:
            while not self.is_terminal:
                try:
                    event = await anext(iterator)
                except StopAsyncIteration:
                    self._logger.debug("Event source ended without a terminal event")
                    self.process(StreamEndEvent())
                    break
                except Exception as exc:
                    self._logger.warning("Event source failed: %s", exc)
                    self.process(StreamErrorEvent(message=str(exc) or type(exc).__name__))
                    break
                self.process(event)
        finally:
            if isinstance(iterator, AsyncGenerator):
                await iterator.aclose()
            span.set_attribute("agentstream.run.events", self._event_count)
            span.set_attribute("agentstream.run.state", self._state)
            span.set_attribute("agentstream.run.phases", len(self._aggregator.phases))
            if self._error is not None:
                span.set_attribute("agentstream.run.error", self._error)
                span.set_status(Status(StatusCode.ERROR, self._error))
            if span.is_recording():
                span.end()
        return self.snapshot()

    def _track_tool_call(self, event: ToolStartEvent | ToolEndEvent) -> None:
        tool_name = resolve_tool_name(event)
        if isinstance(event, ToolStartEvent):
            self._active_tools[tool_name] += 1
            return
        remaining = self._active_tools.get(tool_name, 0) - 1
        if remaining > 0:
            self._active_tools[tool_name] = remaining
        else:
            self._active_tools.pop(tool_name, None)

    def _update_steps(self, event: ToolStartEvent | ToolEndEvent) -> None:
        self._steps = extract_steps(event, self._steps)
        self._aggregator.apply(self._steps)

    def _close_cycle(self) -> None:
        self._aggregator.close()
        self._steps = []

    def _finalize(self, event: StreamEndEvent) -> None:
        self._content = self._reducer.reduce(event, self._content)
        self._close_cycle()
        self._state = "finalized"
        self._logger.info(
            "Run finalized with %d phase(s) and %d content chars",
            len(self._aggregator.phases),
            len(self._content),
        )
        self._publish()

    def _fail(self, message: str) -> None:
        self._close_cycle()
        self._error = message
        self._state = "errored"
        self._logger.warning("Run errored: %s", message)
        self._publish()

    def _publish(self) -> None:
        if self._on_content_update is not None:
            self._on_content_update(self._content)
        if self._on_phases_update is not None:
            self._on_phases_update(self._aggregator.phases)
