import argparse
import asyncio
from collections.abc import Sequence

from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .chat import AgentChat
from .client import AgentServerClient
from .config import AgentServerSettings
from .models import Phase, RunSnapshot, Step
from .steps import REASONING_TOOL_NAME


def step_status_text(step: Step) -> str:
    if step.status == "complete":
        return "[green]complete[/]"
    if step.status == "error":
        return "[red]error[/]"
    return "[yellow]running[/]"


def step_details(step: Step) -> str:
    """Only reasoning steps show their payload; tools show their name alone."""
    if step.tool_name != REASONING_TOOL_NAME:
        return ""
    if isinstance(step.payload, str):
        return escape(step.payload)
    return "[dim]thinking[/dim]"


class TerminalRunState:
    """Observer state that fuels the terminal UI render loop."""

    def __init__(self, question: str):
        self.question = question
        self.content = ""
        self.phases: list[Phase] = []
        self.error_message = ""
        self.updates = 0

    def on_content_update(self, content: str) -> None:
        self.content = content
        self.updates += 1

    def on_phases_update(self, phases: list[Phase]) -> None:
        self.phases = phases

    def finish(self, snapshot: RunSnapshot) -> None:
        self.content = snapshot.content
        self.phases = list(snapshot.phases)
        self.error_message = snapshot.error or ""

    def render(self) -> Group:
        panels: list[Panel] = [
            Panel(Text(self.question), title="Question", border_style="cyan")
        ]
        panels.extend(self._render_phase(phase) for phase in self.phases)
        answer = (
            Text(self.content) if self.content else "[dim]waiting for the agent[/dim]"
        )
        panels.append(
            Panel(
                answer,
                title="Answer",
                border_style="green" if self.content else "blue",
            )
        )
        if self.error_message:
            panels.append(
                Panel(Text(self.error_message), title="Failure", border_style="red")
            )
        return Group(*panels)

    def _render_phase(self, phase: Phase) -> Panel:
        table = Table(show_header=True, header_style="bold yellow", expand=True)
        table.add_column("Tool")
        table.add_column("Status", style="white")
        table.add_column("Details", style="white", overflow="fold")
        for step in phase.steps:
            table.add_row(
                escape(step.tool_name), step_status_text(step), step_details(step)
            )
        title = "Thinking..." if phase.is_active else "Processing"
        border = "magenta" if phase.is_active else "green"
        return Panel(Group(table), title=title, border_style=border)


async def run_with_terminal_ui(
    chat: AgentChat,
    question: str,
    *,
    console: Console | None = None,
) -> RunSnapshot:
    """Stream one run through a Rich-powered terminal interface."""
    active_console = console or Console()
    state = TerminalRunState(question)
    active_console.rule("[bold cyan]agentstream[/bold cyan]")
    with Live(
        state.render(),
        console=active_console,
        refresh_per_second=8,
        transient=False,
        auto_refresh=False,
    ) as live:

        def on_content_update(content: str) -> None:
            state.on_content_update(content)
            live.update(state.render(), refresh=True)

        def on_phases_update(phases: list[Phase]) -> None:
            state.on_phases_update(phases)
            live.update(state.render(), refresh=True)

        snapshot = await chat.ask(
            question,
            on_content_update=on_content_update,
            on_phases_update=on_phases_update,
        )
        state.finish(snapshot)
        live.update(state.render(), refresh=True)
    return snapshot


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentstream",
        description="Send a message to an agent server and watch it think.",
    )
    parser.add_argument("question", help="Message to send to the agent")
    parser.add_argument("--url", help="Agent server URL (AGENTSTREAM_API_URL)")
    parser.add_argument("--agent-id", help="Graph to run (AGENTSTREAM_AGENT_ID)")
    parser.add_argument("--thread-id", help="Continue an existing thread")
    return parser


def settings_from_args(args: argparse.Namespace) -> AgentServerSettings:
    settings = AgentServerSettings.from_env()
    return AgentServerSettings(
        api_url=args.url or settings.api_url,
        agent_id=args.agent_id or settings.agent_id,
        timeout_seconds=settings.timeout_seconds,
    )


async def _main(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    async with AgentServerClient(settings) as client:
        chat = AgentChat(client, thread_id=args.thread_id)
        snapshot = await run_with_terminal_ui(chat, args.question)
    return 1 if snapshot.state == "errored" else 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(_main(args))
