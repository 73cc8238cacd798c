import os
from collections.abc import Mapping
from urllib.parse import urlsplit

from dotenv import load_dotenv

from .errors import AgentStreamConfigurationError
from .interface import Record

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_TIMEOUT_SECONDS = 60.0

EVAL_AGENT_ID = "eval_agent"
SUPERVISOR_AGENT_ID = "supervisor"


def resolve_agent_id(url: str) -> str:
    """Pick the graph served at `url`: the eval agent runs on port 8002."""
    if urlsplit(url).port == 8002 or "eval" in url:
        return EVAL_AGENT_ID
    return SUPERVISOR_AGENT_ID


class AgentServerSettings(Record, kw_only=True):
    """Connection settings for the agent server."""

    api_url: str = DEFAULT_API_URL
    agent_id: str | None = None
    """Graph to run; derived from `api_url` when not given."""

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not self.api_url:
            raise AgentStreamConfigurationError("api_url must not be empty")
        if self.timeout_seconds <= 0:
            raise AgentStreamConfigurationError("timeout_seconds must be positive")

    @property
    def resolved_agent_id(self) -> str:
        return self.agent_id or resolve_agent_id(self.api_url)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        dotenv: bool = True,
    ) -> "AgentServerSettings":
        """Build settings from `AGENTSTREAM_*` variables, loading `.env` first."""
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        raw_timeout = environ.get("AGENTSTREAM_TIMEOUT")
        timeout = DEFAULT_TIMEOUT_SECONDS
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError as exc:
                raise AgentStreamConfigurationError(
                    f"AGENTSTREAM_TIMEOUT must be a number, got {raw_timeout!r}"
                ) from exc

        return cls(
            api_url=environ.get("AGENTSTREAM_API_URL") or DEFAULT_API_URL,
            agent_id=environ.get("AGENTSTREAM_AGENT_ID") or None,
            timeout_seconds=timeout,
        )
