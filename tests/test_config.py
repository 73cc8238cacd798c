import pytest

from agentstream.config import (
    DEFAULT_API_URL,
    DEFAULT_TIMEOUT_SECONDS,
    AgentServerSettings,
    resolve_agent_id,
)
from agentstream.errors import AgentStreamConfigurationError


@pytest.mark.parametrize(
    ("url", "agent_id"),
    [
        ("http://localhost:8000", "supervisor"),
        ("http://localhost:8002", "eval_agent"),
        ("https://eval.agents.example.com", "eval_agent"),
        ("https://agents.example.com", "supervisor"),
    ],
)
def test_resolve_agent_id(url: str, agent_id: str) -> None:
    assert resolve_agent_id(url) == agent_id


def test_from_env_uses_defaults_for_missing_variables() -> None:
    settings = AgentServerSettings.from_env({})

    assert settings.api_url == DEFAULT_API_URL
    assert settings.agent_id is None
    assert settings.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
    assert settings.resolved_agent_id == "supervisor"


def test_from_env_reads_agentstream_variables() -> None:
    settings = AgentServerSettings.from_env(
        {
            "AGENTSTREAM_API_URL": "http://localhost:8002",
            "AGENTSTREAM_AGENT_ID": "",
            "AGENTSTREAM_TIMEOUT": "5.5",
        }
    )

    assert settings.api_url == "http://localhost:8002"
    assert settings.timeout_seconds == 5.5
    assert settings.resolved_agent_id == "eval_agent"


def test_explicit_agent_id_wins_over_url() -> None:
    settings = AgentServerSettings(api_url="http://localhost:8002", agent_id="custom")

    assert settings.resolved_agent_id == "custom"


def test_invalid_timeout_is_a_configuration_error() -> None:
    with pytest.raises(AgentStreamConfigurationError, match="AGENTSTREAM_TIMEOUT"):
        AgentServerSettings.from_env({"AGENTSTREAM_TIMEOUT": "soon"})

    with pytest.raises(AgentStreamConfigurationError):
        AgentServerSettings(timeout_seconds=0)


def test_empty_api_url_is_rejected() -> None:
    with pytest.raises(AgentStreamConfigurationError):
        AgentServerSettings(api_url="")
