class AgentStreamError(Exception):
    """Base exception class for agentstream errors."""


class AgentStreamConfigurationError(AgentStreamError):
    """Raised when agentstream is misconfigured or missing required settings."""


class AgentStreamTransportError(AgentStreamError):
    """Raised when the agent server cannot be reached or answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AgentStreamRuntimeError(AgentStreamError):
    """Raised when a run is driven in a way its lifecycle does not allow."""


__all__ = [
    "AgentStreamError",
    "AgentStreamConfigurationError",
    "AgentStreamTransportError",
    "AgentStreamRuntimeError",
]
