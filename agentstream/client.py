"""HTTP event source for LangGraph-style agent servers."""

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from msgspec import DecodeError
from msgspec.json import decode

from .config import AgentServerSettings
from .errors import AgentStreamTransportError
from .events import AgentStreamEvent
from .interface import ILogger, Record
from .wire import decode_part


class ServerSentEvent(Record, kw_only=True):
    event: str = "message"
    data: str = ""


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """Group SSE lines into events; a blank line dispatches the pending event."""
    event_name = "message"
    data_lines: list[str] = []
    async for line in lines:
        if not line:
            if data_lines or event_name != "message":
                yield ServerSentEvent(event=event_name, data="\n".join(data_lines))
            event_name = "message"
            data_lines = []
            continue
        if line.startswith(":"):
            continue
        field_name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        match field_name:
            case "event":
                event_name = value
            case "data":
                data_lines.append(value)
    if data_lines or event_name != "message":
        yield ServerSentEvent(event=event_name, data="\n".join(data_lines))


class AgentServerClient:
    """Creates threads and streams runs from an agent server."""

    def __init__(
        self,
        settings: AgentServerSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        logger: ILogger | None = None,
    ):
        self._settings = settings
        self._http = http_client or httpx.AsyncClient(
            base_url=settings.api_url,
            timeout=settings.timeout_seconds,
        )
        self._owns_http = http_client is None
        self._logger: ILogger = logger or logging.getLogger(__name__)

    @property
    def settings(self) -> AgentServerSettings:
        return self._settings

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "AgentServerClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            response = await self._http.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise AgentStreamTransportError(f"POST {path} failed: {exc}") from exc
        if response.is_error:
            raise AgentStreamTransportError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response

    async def create_thread(self) -> str:
        """Create a conversation thread and return its opaque identifier."""
        response = await self._post("/threads", {})
        try:
            body = decode(response.content)
        except DecodeError as exc:
            raise AgentStreamTransportError(
                "Thread creation returned an invalid body"
            ) from exc
        thread_id = body.get("thread_id") if isinstance(body, dict) else None
        if not isinstance(thread_id, str) or not thread_id:
            raise AgentStreamTransportError("Thread creation returned no thread_id")
        return thread_id

    def _run_request(
        self, message: str, initial_state: dict[str, Any] | None
    ) -> dict[str, Any]:
        return {
            "assistant_id": self._settings.resolved_agent_id,
            "input": {
                "messages": [{"role": "user", "content": message}],
                **(initial_state or {}),
            },
            "stream_mode": "events",
        }

    async def stream_run(
        self,
        thread_id: str,
        message: str,
        *,
        initial_state: dict[str, Any] | None = None,
    ) -> AsyncIterator[AgentStreamEvent]:
        """Submit `message` on `thread_id` and yield decoded stream events."""
        path = f"/threads/{thread_id}/runs/stream"
        request = self._http.build_request(
            "POST", path, json=self._run_request(message, initial_state)
        )
        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise AgentStreamTransportError(f"POST {path} failed: {exc}") from exc

        try:
            if response.is_error:
                await response.aread()
                raise AgentStreamTransportError(
                    f"HTTP {response.status_code}: {response.reason_phrase}",
                    status_code=response.status_code,
                )
            try:
                async for sse in iter_sse(response.aiter_lines()):
                    if (event := self._decode_sse(sse)) is not None:
                        yield event
            except httpx.HTTPError as exc:
                raise AgentStreamTransportError(f"Stream interrupted: {exc}") from exc
        finally:
            await response.aclose()

    def _decode_sse(self, sse: ServerSentEvent) -> AgentStreamEvent | None:
        if sse.data == "[DONE]":
            return None
        try:
            data = decode(sse.data) if sse.data else None
        except DecodeError:
            self._logger.debug("Skipping undecodable %s payload: %s", sse.event, sse.data)
            return None
        return decode_part({"event": sse.event, "data": data})
