from typing import Any

from opentelemetry.context import Context

from .client import AgentServerClient
from .driver import ContentObserver, PhasesObserver, StreamDriver
from .interface import ILogger
from .models import RunSnapshot


class AgentChat:
    """Conversation with one agent: owns the thread, one driver per message."""

    def __init__(
        self,
        client: AgentServerClient,
        *,
        thread_id: str | None = None,
        initial_state: dict[str, Any] | None = None,
        logger: ILogger | None = None,
    ):
        self._client = client
        self._thread_id = thread_id
        self._initial_state = initial_state
        self._logger = logger

    @property
    def thread_id(self) -> str | None:
        return self._thread_id

    async def ensure_thread(self) -> str:
        if self._thread_id is None:
            self._thread_id = await self._client.create_thread()
        return self._thread_id

    async def ask(
        self,
        message: str,
        *,
        on_content_update: ContentObserver | None = None,
        on_phases_update: PhasesObserver | None = None,
        trace_ctx: Context | None = None,
    ) -> RunSnapshot:
        """Send `message` and reduce the resulting run to a snapshot."""
        thread_id = await self.ensure_thread()
        driver = StreamDriver(
            on_content_update=on_content_update,
            on_phases_update=on_phases_update,
            logger=self._logger,
        )
        source = self._client.stream_run(
            thread_id, message, initial_state=self._initial_state
        )
        return await driver.run(source, trace_ctx=trace_ctx)
