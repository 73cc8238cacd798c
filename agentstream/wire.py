"""Translate raw LangGraph stream parts into typed stream events."""

import logging
from collections.abc import Mapping
from typing import Any

from .events import (
    AgentStreamEvent,
    ChainEndEvent,
    ChatMessage,
    ContentChunkEvent,
    StreamEndEvent,
    StreamErrorEvent,
    ToolEndEvent,
    ToolStartEvent,
)

logger = logging.getLogger(__name__)

ROLE_ALIASES = {
    "ai": "assistant",
    "assistant": "assistant",
    "AIMessage": "assistant",
    "AIMessageChunk": "assistant",
    "human": "user",
    "user": "user",
    "HumanMessage": "user",
    "tool": "tool",
    "ToolMessage": "tool",
    "system": "system",
    "SystemMessage": "system",
}


def text_content(content: Any) -> str:
    """Plain text of a message content that may be a list of typed parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part["text"]
            for part in content
            if isinstance(part, Mapping)
            and part.get("type") == "text"
            and isinstance(part.get("text"), str)
        )
    return ""


def decode_message(raw: Any) -> ChatMessage | None:
    if not isinstance(raw, Mapping):
        return None
    raw_role = raw.get("type") or raw.get("role")
    if not isinstance(raw_role, str):
        return None
    return ChatMessage(
        role=ROLE_ALIASES.get(raw_role, raw_role),
        content=text_content(raw.get("content")),
        has_tool_calls=bool(raw.get("tool_calls")),
    )


def decode_messages(output: Any) -> list[ChatMessage] | None:
    """Messages of a chain output, or None when the output carries none."""
    if not isinstance(output, Mapping):
        return None
    raw_messages = output.get("messages")
    if not isinstance(raw_messages, list):
        return None
    messages: list[ChatMessage] = []
    for raw in raw_messages:
        if (message := decode_message(raw)) is not None:
            messages.append(message)
    return messages


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _decode_runtime_event(data: Mapping[str, Any]) -> AgentStreamEvent | None:
    payload = data.get("data")
    if not isinstance(payload, Mapping):
        payload = {}
    run_id = _optional_str(data.get("run_id"))
    tool_name = _optional_str(data.get("name"))

    match data.get("event"):
        case "on_tool_start":
            return ToolStartEvent(
                run_id=run_id,
                tool_name=tool_name,
                payload=payload.get("input"),
            )
        case "on_tool_end":
            return ToolEndEvent(
                run_id=run_id,
                tool_name=tool_name,
                payload=payload.get("output"),
            )
        case "on_tool_error":
            return ToolEndEvent(
                run_id=run_id,
                tool_name=tool_name,
                payload=_error_message(payload.get("error")),
                is_error=True,
            )
        case "on_chat_model_stream":
            chunk = payload.get("chunk")
            if not isinstance(chunk, Mapping):
                return None
            return ContentChunkEvent(
                run_id=run_id,
                text=text_content(chunk.get("content")),
                has_tool_call_chunks=bool(chunk.get("tool_call_chunks")),
            )
        case "on_chain_end":
            messages = decode_messages(payload.get("output"))
            if messages is None:
                return None
            return ChainEndEvent(run_id=run_id, messages=messages)
        case _:
            return None


def _end_messages(data: Any) -> list[ChatMessage]:
    if not isinstance(data, Mapping):
        return []
    output = data.get("output")
    if output is None and isinstance(data.get("data"), Mapping):
        output = data["data"].get("output")
    return decode_messages(output) or []


def _error_message(data: Any) -> str:
    if isinstance(data, str) and data:
        return data
    if isinstance(data, Mapping):
        for key in ("message", "error"):
            if value := _optional_str(data.get(key)):
                return value
    return "Unknown error"


def decode_part(part: Any) -> AgentStreamEvent | None:
    """Decode one `{"event": ..., "data": ...}` stream part.

    Returns None for parts that carry nothing this package tracks or whose
    shape does not match their declared kind.
    """
    if not isinstance(part, Mapping):
        logger.debug("Skipping malformed stream part: %r", part)
        return None
    data = part.get("data")
    match part.get("event"):
        case "events":
            if not isinstance(data, Mapping):
                logger.debug("Skipping events part without a payload: %r", part)
                return None
            return _decode_runtime_event(data)
        case "end":
            return StreamEndEvent(messages=_end_messages(data))
        case "error":
            return StreamErrorEvent(message=_error_message(data))
        case _:
            return None
