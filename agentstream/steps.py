"""Derive agent steps from tool lifecycle events.

Every function here is pure: the extractor receives the steps gathered so far
and returns a new list, leaving its input untouched.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any

from msgspec.structs import replace

from .events import AgentStreamEvent, ToolEndEvent, ToolStartEvent
from .models import Step, StepKind, StepStatus

REASONING_TOOL_NAME = "think"
UNKNOWN_TOOL_NAME = "unknown_tool"

REASONING_INPUT_FIELDS = ("scratchpad", "thought")
OUTPUT_TEXT_FIELDS = ("content", "output", "result", "text")

_THOUGHT_PATTERN = re.compile(r"Thought:\s*(.+?)(?:\nLast tool:|$)", re.DOTALL)


def format_thought(text: str) -> str:
    """Extract the scratchpad text from a `Thought: ...` formatted string."""
    if match := _THOUGHT_PATTERN.search(text):
        return match.group(1).strip()
    return text


def output_text(payload: Any) -> str | None:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, Mapping):
        for key in OUTPUT_TEXT_FIELDS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return None


def _looks_like_reasoning_input(payload: Any) -> bool:
    if not isinstance(payload, Mapping):
        return False
    return any(key in payload for key in REASONING_INPUT_FIELDS)


def _looks_like_reasoning_output(payload: Any) -> bool:
    text = output_text(payload)
    return text is not None and _THOUGHT_PATTERN.search(text) is not None


def resolve_tool_name(event: ToolStartEvent | ToolEndEvent) -> str:
    if event.tool_name:
        return event.tool_name
    match event:
        case ToolStartEvent(payload=payload) if _looks_like_reasoning_input(payload):
            return REASONING_TOOL_NAME
        case ToolEndEvent(payload=payload) if _looks_like_reasoning_output(payload):
            return REASONING_TOOL_NAME
    return UNKNOWN_TOOL_NAME


def _start_kind(tool_name: str) -> StepKind:
    return "thinking" if tool_name == REASONING_TOOL_NAME else "tool_call"


def _end_kind(tool_name: str) -> StepKind:
    return "thinking" if tool_name == REASONING_TOOL_NAME else "tool_result"


def _completed_payload(tool_name: str, payload: Any) -> Any:
    text = output_text(payload)
    if text is None:
        return payload
    if tool_name == REASONING_TOOL_NAME:
        return format_thought(text)
    return text


def _next_step_id(steps: Sequence[Step]) -> str:
    return f"step-{len(steps)}"


def find_running_step(
    steps: Sequence[Step], tool_name: str, run_id: str | None
) -> int | None:
    """Index of the running step a tool end belongs to, or None.

    An exact `(tool_name, run_id)` pair wins. Without a run id on either side
    the most recently started running step of that tool is used.
    """
    fallback: int | None = None
    for index in range(len(steps) - 1, -1, -1):
        step = steps[index]
        if not step.is_running or step.tool_name != tool_name:
            continue
        if run_id is not None and step.run_id == run_id:
            return index
        if fallback is None and (run_id is None or step.run_id is None):
            fallback = index
    return fallback


def _on_tool_start(event: ToolStartEvent, steps: list[Step]) -> list[Step]:
    tool_name = resolve_tool_name(event)
    if event.run_id is not None:
        for step in steps:
            if (
                step.is_running
                and step.tool_name == tool_name
                and step.run_id == event.run_id
            ):
                return steps
    steps.append(
        Step(
            step_id=_next_step_id(steps),
            tool_name=tool_name,
            kind=_start_kind(tool_name),
            payload=event.payload,
            run_id=event.run_id,
        )
    )
    return steps


def _on_tool_end(event: ToolEndEvent, steps: list[Step]) -> list[Step]:
    tool_name = resolve_tool_name(event)
    status: StepStatus = "error" if event.is_error else "complete"
    payload = (
        event.payload
        if event.is_error
        else _completed_payload(tool_name, event.payload)
    )
    index = find_running_step(steps, tool_name, event.run_id)
    if index is None:
        steps.append(
            Step(
                step_id=_next_step_id(steps),
                tool_name=tool_name,
                kind=_end_kind(tool_name),
                payload=payload,
                status=status,
                run_id=event.run_id,
            )
        )
        return steps
    steps[index] = replace(
        steps[index],
        kind=_end_kind(tool_name),
        payload=payload,
        status=status,
    )
    return steps


def extract_steps(event: AgentStreamEvent, previous: Sequence[Step]) -> list[Step]:
    """Return the step list after applying one event.

    Events unrelated to tools return a copy of `previous` unchanged.
    """
    steps = list(previous)
    match event:
        case ToolStartEvent():
            return _on_tool_start(event, steps)
        case ToolEndEvent():
            return _on_tool_end(event, steps)
        case _:
            return steps


def merge_steps(existing: Sequence[Step], updates: Sequence[Step]) -> tuple[Step, ...]:
    """Fold partial step updates into `existing`, keyed by `step_id`.

    Later writes win for payload, status and kind; timestamps never move
    backwards and discovery order is kept.
    """
    merged: dict[str, Step] = {step.step_id: step for step in existing}
    for update in updates:
        current = merged.get(update.step_id)
        if current is None:
            merged[update.step_id] = update
            continue
        merged[update.step_id] = replace(
            current,
            kind=update.kind,
            payload=update.payload,
            status=update.status,
            timestamp=max(current.timestamp, update.timestamp),
            run_id=current.run_id if current.run_id is not None else update.run_id,
        )
    return tuple(merged.values())
