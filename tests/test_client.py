import json

import httpx
import pytest

from agentstream.chat import AgentChat
from agentstream.client import AgentServerClient, ServerSentEvent, iter_sse
from agentstream.config import AgentServerSettings
from agentstream.errors import AgentStreamTransportError
from agentstream.events import (
    ContentChunkEvent,
    StreamEndEvent,
    ToolEndEvent,
    ToolStartEvent,
)

BASE_URL = "http://agents.test:8000"


def sse(event: str, data: object) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def runtime(event: str, **fields: object) -> str:
    return sse("events", {"event": event, **fields})


SSE_BODY = "".join(
    [
        sse("metadata", {"run_id": "run-1"}),
        ": keep-alive\n\n",
        runtime("on_tool_start", name="search", run_id="t1", data={"input": {"q": 1}}),
        runtime("on_tool_end", name="search", run_id="t1", data={"output": "2 hits"}),
        "event: events\ndata: {not json}\n\n",
        runtime("on_chat_model_stream", data={"chunk": {"content": "Two hits"}}),
        "event: end\ndata: null\n\n",
    ]
)


class ServerStub:
    def __init__(self, *, stream_status: int = 200, body: str = SSE_BODY) -> None:
        self.requests: list[httpx.Request] = []
        self._stream_status = stream_status
        self._body = body

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/threads":
            return httpx.Response(200, json={"thread_id": "thread-1"})
        if request.url.path.endswith("/runs/stream"):
            return httpx.Response(
                self._stream_status,
                headers={"content-type": "text/event-stream"},
                content=self._body.encode(),
            )
        return httpx.Response(404)


def build_client(stub: ServerStub, **settings) -> AgentServerClient:
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(stub))
    return AgentServerClient(
        AgentServerSettings(api_url=BASE_URL, **settings), http_client=http
    )


@pytest.mark.anyio
async def test_iter_sse_groups_lines_into_events() -> None:
    async def lines():
        for line in ["event: a", "data: 1", "data: 2", "", ":comment", "data: x"]:
            yield line

    events = [event async for event in iter_sse(lines())]

    assert events == [
        ServerSentEvent(event="a", data="1\n2"),
        ServerSentEvent(event="message", data="x"),
    ]


@pytest.mark.anyio
async def test_create_thread_returns_thread_id() -> None:
    stub = ServerStub()
    client = build_client(stub)

    assert await client.create_thread() == "thread-1"
    assert stub.requests[0].method == "POST"


@pytest.mark.anyio
async def test_stream_run_posts_request_and_decodes_events() -> None:
    stub = ServerStub()
    client = build_client(stub, agent_id="supervisor")

    events = [
        event
        async for event in client.stream_run(
            "thread-1", "find cats", initial_state={"todos": []}
        )
    ]

    request = stub.requests[0]
    assert request.url.path == "/threads/thread-1/runs/stream"
    assert json.loads(request.content) == {
        "assistant_id": "supervisor",
        "input": {
            "messages": [{"role": "user", "content": "find cats"}],
            "todos": [],
        },
        "stream_mode": "events",
    }
    assert events == [
        ToolStartEvent(tool_name="search", run_id="t1", payload={"q": 1}),
        ToolEndEvent(tool_name="search", run_id="t1", payload="2 hits"),
        ContentChunkEvent(text="Two hits"),
        StreamEndEvent(),
    ]


@pytest.mark.anyio
async def test_stream_run_raises_transport_error_on_http_failure() -> None:
    client = build_client(ServerStub(stream_status=502))

    with pytest.raises(AgentStreamTransportError) as exc_info:
        async for _ in client.stream_run("thread-1", "hi"):
            pass

    assert exc_info.value.status_code == 502


@pytest.mark.anyio
async def test_create_thread_requires_thread_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "nope"})

    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    client = AgentServerClient(AgentServerSettings(api_url=BASE_URL), http_client=http)

    with pytest.raises(AgentStreamTransportError):
        await client.create_thread()


@pytest.mark.anyio
async def test_chat_creates_thread_once_and_reduces_runs() -> None:
    stub = ServerStub()
    chat = AgentChat(build_client(stub))
    contents: list[str] = []

    first = await chat.ask("find cats", on_content_update=contents.append)
    second = await chat.ask("again")

    assert chat.thread_id == "thread-1"
    paths = [request.url.path for request in stub.requests]
    assert paths.count("/threads") == 1
    assert first.state == second.state == "finalized"
    assert first.content == "Two hits"
    assert first.phases[0].steps[0].payload == "2 hits"
    assert contents[-1] == "Two hits"
    assert second.content == "Two hits"


@pytest.mark.anyio
async def test_chat_surfaces_transport_failure_as_errored_run() -> None:
    chat = AgentChat(build_client(ServerStub(stream_status=500)), thread_id="t")

    snapshot = await chat.ask("hi")

    assert snapshot.state == "errored"
    assert snapshot.error == "HTTP 500: Internal Server Error"
