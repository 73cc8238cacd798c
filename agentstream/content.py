from collections.abc import Sequence

from .events import (
    AgentStreamEvent,
    ChainEndEvent,
    ChatMessage,
    ContentChunkEvent,
    StreamEndEvent,
)

DEFAULT_MIN_DUPLICATE_LENGTH = 8


def final_reply(messages: Sequence[ChatMessage]) -> str | None:
    """Latest assistant reply that is not a tool-call request."""
    for message in reversed(messages):
        if not message.is_assistant or message.has_tool_calls:
            continue
        if message.content.strip():
            return message.content
    return None


class ContentReducer:
    """Accumulates the assistant's visible reply for one run.

    Streamed chunks are appended unless a tool call is in flight or the chunk
    repeats the text that was just appended. Terminal messages are
    authoritative: they replace the accumulated text when they are strictly
    longer, or when nothing was streamed at all.
    """

    __slots__ = ("_min_duplicate_length", "_has_received_content")

    def __init__(self, min_duplicate_length: int = DEFAULT_MIN_DUPLICATE_LENGTH):
        self._min_duplicate_length = min_duplicate_length
        self._has_received_content = False

    @property
    def has_received_content(self) -> bool:
        return self._has_received_content

    def reduce(
        self,
        event: AgentStreamEvent,
        content: str,
        *,
        tools_active: bool = False,
    ) -> str:
        match event:
            case ContentChunkEvent():
                return self._append_chunk(event, content, tools_active)
            case ChainEndEvent(messages=messages) | StreamEndEvent(messages=messages):
                return self._apply_final(messages, content)
            case _:
                return content

    def _is_redelivery(self, chunk: str, content: str) -> bool:
        return len(chunk) >= self._min_duplicate_length and content.endswith(chunk)

    def _append_chunk(
        self, event: ContentChunkEvent, content: str, tools_active: bool
    ) -> str:
        if event.has_tool_call_chunks or tools_active:
            return content
        chunk = event.text
        if not chunk or self._is_redelivery(chunk, content):
            return content
        self._has_received_content = True
        return content + chunk

    def _apply_final(self, messages: Sequence[ChatMessage], content: str) -> str:
        reply = final_reply(messages)
        if reply is None:
            return content
        if len(reply) > len(content) or not self._has_received_content:
            self._has_received_content = True
            return reply
        return content
