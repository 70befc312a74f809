"""CLI entry point for Huddle."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import InMemoryHistory
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from huddle import __version__
from huddle.agents import AgentRegistry, create_registry
from huddle.config import create_default_config, get_settings, load_settings
from huddle.errors import HuddleError
from huddle.orchestrator import (
    ConversationEvent,
    ConversationOrchestrator,
    EventType,
    create_orchestrator,
)
from huddle.utils.logging import setup_logging

app = typer.Typer(
    name="huddle",
    help="Team chat with a crew of AI agents - @mention an agent to pull it in",
    add_completion=True,
    no_args_is_help=False,
)

console = Console()

AGENT_COLORS = [
    "orange3",
    "green",
    "blue",
    "purple",
    "cyan",
    "magenta",
    "yellow",
    "red",
    "bright_blue",
    "bright_green",
    "bright_magenta",
]

COMMANDS = [
    ("/help", "Show available commands"),
    ("/agents", "List agents and who is active"),
    ("/invite", "Bring agents into the conversation: /invite <id> [<id> ...]"),
    ("/remove", "Take agents out of the conversation: /remove <id> [<id> ...]"),
    ("/reset", "Start over with an empty conversation"),
    ("/quit", "Leave Huddle"),
]


def agent_color(registry: AgentRegistry, agent_id: str) -> str:
    """Stable color for an agent, based on its position in the roster."""
    ids = registry.ids
    if agent_id not in ids:
        return "white"
    return AGENT_COLORS[ids.index(agent_id) % len(AGENT_COLORS)]


def agents_table(registry: AgentRegistry, active: Optional[list[str]] = None) -> Table:
    """Build a table of the roster, optionally marking active agents."""
    table = Table(title="Agents")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Title")
    table.add_column("Mentionable", justify="center")
    if active is not None:
        table.add_column("Active", justify="center")

    for agent in registry:
        name = agent.name
        if agent.is_coordinator:
            name += " [dim](coordinator)[/dim]"
        row = [
            agent.id,
            f"[{agent_color(registry, agent.id)}]{name}[/]",
            agent.title,
            "✓" if agent.mentionable else "✗",
        ]
        if active is not None:
            row.append("[green]✓[/green]" if agent.id in active else "")
        table.add_row(*row)

    return table


def render_event(
    event: ConversationEvent,
    registry: AgentRegistry,
    out: Console = console,
) -> None:
    """Print a conversation event to the terminal."""
    if event.type is EventType.MESSAGE and event.message is not None:
        message = event.message
        if message.is_user_message:
            return
        if message.is_system:
            out.print(f"[dim italic]{escape(message.content)}[/dim italic]")
            return

        agent = registry.get(message.author)
        title = agent.label if agent else message.author
        out.print(
            Panel(
                Markdown(message.content),
                title=f"[bold]{escape(title)}[/bold]",
                title_align="left",
                border_style=agent_color(registry, message.author),
            )
        )

    elif event.type is EventType.AGENT_JOINED:
        out.print(f"[dim]@{event.agent_id} is now in the conversation[/dim]")

    elif event.type is EventType.ERROR:
        out.print(f"[red]{escape(str(event.agent_id))} could not reply: {escape(event.error or '')}[/red]")


async def handle_command(
    orchestrator: ConversationOrchestrator,
    line: str,
    out: Console = console,
) -> bool:
    """Run a slash command.

    Args:
        orchestrator: The running orchestrator
        line: The full command line, starting with "/"
        out: Console to print to

    Returns:
        False if the chat loop should exit
    """
    command, *args = line.split()
    command = command.lower()

    if command in ("/quit", "/exit"):
        return False

    try:
        if command == "/help":
            for name, description in COMMANDS:
                out.print(f"  [cyan]{name}[/cyan]  {description}")

        elif command == "/reset":
            await orchestrator.reset()
            out.print("[dim]Conversation reset.[/dim]")

        elif command == "/agents":
            out.print(agents_table(orchestrator.registry, orchestrator.current_active_agents()))

        elif command in ("/invite", "/remove"):
            if not args:
                out.print(f"[yellow]Usage: {command} <agent-id> [<agent-id> ...][/yellow]")
            for agent_id in args:
                agent_id = agent_id.lstrip("@")
                if command == "/invite":
                    changed = await orchestrator.invite_agent(agent_id)
                    if not changed:
                        out.print(f"[dim]@{agent_id} is already in the conversation.[/dim]")
                else:
                    changed = await orchestrator.remove_agent(agent_id)
                    if not changed:
                        out.print(f"[dim]@{agent_id} is not in the conversation.[/dim]")

        else:
            out.print(f"[yellow]Unknown command: {escape(command)}. Type /help for commands.[/yellow]")

    except HuddleError as e:
        out.print(f"[red]{escape(str(e))}[/red]")

    return True


def build_completer(registry: AgentRegistry) -> WordCompleter:
    """Complete @agent mentions and slash commands."""
    words = [f"@{agent_id}" for agent_id in registry.ids] + [name for name, _ in COMMANDS]
    return WordCompleter(words, WORD=True)


async def chat_loop(
    orchestrator: ConversationOrchestrator,
    session: Optional[PromptSession] = None,
) -> None:
    """Read messages from the terminal until the user quits."""
    registry = orchestrator.registry
    unsubscribe = orchestrator.subscribe(lambda event: render_event(event, registry))

    if session is None:
        session = PromptSession(
            completer=build_completer(registry),
            history=InMemoryHistory(),
            auto_suggest=AutoSuggestFromHistory(),
        )

    try:
        while True:
            try:
                line = await session.prompt_async("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            text = line.strip()
            if not text:
                continue

            if text.startswith("/"):
                if not await handle_command(orchestrator, text):
                    break
                continue

            try:
                with console.status("[dim]The team is thinking...[/dim]"):
                    if orchestrator.is_active:
                        await orchestrator.send_message(text)
                    else:
                        await orchestrator.start_conversation(text)
            except HuddleError as e:
                console.print(f"[red]{escape(str(e))}[/red]")
    finally:
        unsubscribe()
        await orchestrator.cancel_turn()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]Huddle[/bold] version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Huddle - chat with a team of AI agents.

    Start an interactive conversation. The coordinator is always listening;
    @mention any other agent to bring it in.
    """
    setup_logging(verbose=verbose)

    if config:
        load_settings(config_path=config, force_reload=True)

    # If a subcommand is being invoked, don't enter interactive mode
    if ctx.invoked_subcommand is not None:
        return

    # Create default config if it doesn't exist
    create_default_config()

    asyncio.run(start_interactive(verbose=verbose))


async def start_interactive(verbose: bool = False) -> None:
    """Start the interactive chat session."""
    settings = get_settings()
    provider = settings.model.provider

    if not settings.has_api_key(provider):
        console.print(
            Panel(
                f"[yellow]No API key configured for {provider}![/yellow]\n\n"
                "Please set one of:\n"
                "  • ANTHROPIC_API_KEY for Claude\n"
                "  • OPENAI_API_KEY for GPT\n\n"
                "Or configure them in ~/.huddle/config.yaml",
                title="Configuration Required",
                border_style="yellow",
            )
        )
        raise typer.Exit(1)

    try:
        orchestrator = create_orchestrator(settings)
    except HuddleError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)

    coordinator = orchestrator.registry.coordinator
    console.print(
        Panel(
            f"{escape(coordinator.label)} is listening. "
            "@mention an agent to bring it in, or type /help.",
            title=f"[bold]Huddle[/bold] {__version__}",
            border_style="blue",
        )
    )

    await chat_loop(orchestrator)


@app.command()
def agents() -> None:
    """Show the agent roster."""
    settings = get_settings()

    try:
        registry = create_registry(settings)
    except HuddleError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(agents_table(registry))


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()

    console.print(Panel("[bold]Current Configuration[/bold]", border_style="blue"))

    # API Keys (masked)
    console.print("\n[bold]API Keys:[/bold]")
    console.print(f"  Anthropic: {'✓ Set' if settings.anthropic_api_key else '✗ Not set'}")
    console.print(f"  OpenAI:    {'✓ Set' if settings.openai_api_key else '✗ Not set'}")

    console.print("\n[bold]Model:[/bold]")
    console.print(f"  Provider: {settings.model.provider}")
    console.print(f"  Model ID: {settings.model.model_id}")
    console.print(f"  Max retries: {settings.model.max_retries}")

    conv = settings.conversation
    console.print("\n[bold]Conversation:[/bold]")
    console.print(f"  Context messages: {conv.max_context_messages}")
    console.print(f"  Recency throttle: {conv.recency_limit} of last {conv.recency_window}")
    console.print(f"  Coordinator triggers: {', '.join(conv.coordinator_triggers)}")
    console.print(f"  Pacing: {conv.pacing_min_ms}-{conv.pacing_max_ms} ms")
    console.print(f"  Timeouts: decision {conv.decision_timeout}s, response {conv.response_timeout}s")

    console.print("\n[bold]Agents:[/bold]")
    console.print(f"  Roster size: {len(settings.agents)}")
    console.print(f"  Prompts dir: {settings.resolved_prompts_dir or '-'}")


if __name__ == "__main__":
    app()
