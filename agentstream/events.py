"""Stream event data models emitted by a remote agent run."""

from typing import Any, ClassVar, Literal, TypeAlias

from msgspec import field

from agentstream.interface import Record

StreamEventKind = Literal[
    "tool-start",
    "tool-end",
    "content-chunk",
    "chain-end",
    "stream-end",
    "stream-error",
]


class ChatMessage(Record, kw_only=True):
    """Conversation message carried by terminal chain/stream outputs."""

    role: str
    """Normalized author role: assistant, user, tool, system or the raw value."""

    content: str = ""
    """Plain-text content; multimodal content is reduced to its text part."""

    has_tool_calls: bool = False
    """True when the message is a request to call tools rather than a reply."""

    @property
    def is_assistant(self) -> bool:
        return self.role == "assistant"


class StreamEvent(Record, kw_only=True):
    """Base class shared by all stream events."""

    KIND: ClassVar[StreamEventKind]

    run_id: str | None = None
    """Stable identifier of a single tool invocation, when the source has one."""

    @property
    def kind(self) -> StreamEventKind:
        return self.KIND


class ToolStartEvent(StreamEvent):
    KIND = "tool-start"

    tool_name: str | None = None
    """Explicit tool name; may be missing on some runtimes."""

    payload: Any = None
    """Tool input arguments as sent by the runtime."""


class ToolEndEvent(StreamEvent):
    KIND = "tool-end"

    tool_name: str | None = None
    payload: Any = None
    """Tool output; a string or a serialized tool message."""

    is_error: bool = False
    """Set when the tool raised; `payload` then holds the error text."""


class ContentChunkEvent(StreamEvent):
    KIND = "content-chunk"

    text: str = ""
    has_tool_call_chunks: bool = False
    """Set when the chunk carries partial tool-call fragments."""


class ChainEndEvent(StreamEvent):
    KIND = "chain-end"

    messages: list[ChatMessage] = field(default_factory=list[ChatMessage])
    """Message list from the finished chain's output."""


class StreamEndEvent(StreamEvent):
    KIND = "stream-end"

    messages: list[ChatMessage] = field(default_factory=list[ChatMessage])
    """Embedded final output, empty when the end event carries none."""


class StreamErrorEvent(StreamEvent):
    KIND = "stream-error"

    message: str = "Unknown error"


AgentStreamEvent: TypeAlias = (
    ToolStartEvent
    | ToolEndEvent
    | ContentChunkEvent
    | ChainEndEvent
    | StreamEndEvent
    | StreamErrorEvent
)
