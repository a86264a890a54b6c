"""Typer CLI application."""

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

from mcnotify import __version__
from mcnotify.core.auth import CommandContext, MemberRole
from mcnotify.core.commands import HELP_TEXT, NotifyCommands, parse_on_off
from mcnotify.core.config import (
    ConfigValidationError,
    Settings,
    generate_settings,
    get_config_dir,
    get_default_settings_path,
    load_settings,
)
from mcnotify.core.manager import NotifyManager
from mcnotify.core.notifier import ChannelRouter
from mcnotify.core.queue import TaskQueue
from mcnotify.core.scheduler import Scheduler

app = typer.Typer(
    name="mcnotify",
    help="Modrinth/CurseForge update notifications for chat channels",
    no_args_is_help=True,
)

# Constants
DEFAULT_CHANNEL = "console"
console = Console()

CommandFunc = Callable[[NotifyCommands, CommandContext], Awaitable[str]]


class ConsoleBot:
    """Bot connection that prints cards to the terminal."""

    platform = "console"

    def __init__(self, output: Console) -> None:
        self._output = output

    async def send_message(self, channel_id: str, content: str) -> None:
        header, _, payload = content.partition(",")
        if header.startswith("data:text/plain") and header.endswith(";base64"):
            body = base64.b64decode(payload).decode("utf-8")
        else:
            body = f"<image {len(payload)} bytes>"
        self._output.print(Panel(Text(body), title=f"#{channel_id}", expand=False))


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"mcnotify {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    ctx: typer.Context,
    settings_path: Annotated[
        Path | None,
        typer.Option(
            "--settings",
            "-s",
            help="Path to settings.toml.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """Modrinth/CurseForge update notifications for chat channels."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    ctx.obj = {"settings_path": settings_path}


def _load_settings(ctx: typer.Context) -> Settings:
    """Load settings or exit with an error message."""
    path = (ctx.obj or {}).get("settings_path")
    try:
        return load_settings(path)
    except ConfigValidationError as e:
        console.print(f"[red]Error:[/red] {e}")
        for error in e.errors:
            console.print(f"  - {error}")
        raise typer.Exit(code=1) from None


def _console_context(channel: str) -> CommandContext:
    """The terminal operator acts as owner of every channel."""
    return CommandContext(
        channel_id=channel,
        user_id="console",
        role_sources=(MemberRole("owner"),),
    )


async def _run_command(settings: Settings, channel: str, func: CommandFunc) -> str:
    router = ChannelRouter([ConsoleBot(console)])
    async with (
        TaskQueue(pause=0) as queue,
        NotifyManager(settings, delivery=router) as manager,
    ):
        commands = NotifyCommands(manager, queue)
        return await func(commands, _console_context(channel))


def _invoke(ctx: typer.Context, channel: str, func: CommandFunc) -> None:
    settings = _load_settings(ctx)
    reply = asyncio.run(_run_command(settings, channel, func))
    console.print(reply, markup=False)


ChannelOption = Annotated[
    str,
    typer.Option("--channel", "-c", help="Channel id (platform:id when several bots)."),
]


@app.command()
def init(
    interval: Annotated[
        int,
        typer.Option("--interval", "-i", help="Default check interval in minutes."),
    ] = 30,
    authority: Annotated[
        int,
        typer.Option(
            "--authority",
            "-a",
            min=1,
            max=3,
            help="Role required for notify commands (1=everyone, 2=admin, 3=owner).",
        ),
    ] = 3,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing settings file.",
        ),
    ] = False,
) -> None:
    """Create settings.toml.

    The file is created in XDG Base Directory compliant location:
    - $XDG_CONFIG_HOME/mcnotify/ (if XDG_CONFIG_HOME is set)
    - ~/.config/mcnotify/ (default)
    """
    try:
        path = generate_settings(
            path=get_default_settings_path(),
            interval_minutes=interval,
            admin_authority=authority,
            force=force,
        )
    except FileExistsError:
        console.print(
            "[red]Error:[/red] settings.toml already exists. Use --force to overwrite."
        )
        raise typer.Exit(code=1) from None

    console.print(f"✓ Created {path}", style="green")
    console.print(f"Configuration stored in: {get_config_dir()}")
    console.print("Run 'mcnotify add <platform> <projectId>' to subscribe.")


@app.command()
def add(
    ctx: typer.Context,
    platform: Annotated[str, typer.Argument(help="Platform code (mr/cf)")],
    project_id: Annotated[str, typer.Argument(help="Project id on the platform")],
    channel: ChannelOption = DEFAULT_CHANNEL,
) -> None:
    """Subscribe a channel to a project.

    Example:
        mcnotify add mr AANobbMI
        mcnotify add cf 238222 --channel onebot:123456
    """
    _invoke(ctx, channel, lambda c, cc: c.add(cc, platform, project_id))


@app.command()
def remove(
    ctx: typer.Context,
    platform: Annotated[str, typer.Argument(help="Platform code (mr/cf)")],
    project_id: Annotated[str, typer.Argument(help="Project id on the platform")],
    channel: ChannelOption = DEFAULT_CHANNEL,
) -> None:
    """Unsubscribe a channel from a project."""
    _invoke(ctx, channel, lambda c, cc: c.remove(cc, platform, project_id))


@app.command(name="list")
def list_subscriptions(
    ctx: typer.Context,
    channel: ChannelOption = DEFAULT_CHANNEL,
) -> None:
    """List a channel's subscriptions."""
    _invoke(ctx, channel, lambda c, cc: c.list_subscriptions(cc))


@app.command()
def enable(
    ctx: typer.Context,
    onoff: Annotated[str, typer.Argument(help="on/off or true/false")],
    channel: ChannelOption = DEFAULT_CHANNEL,
    all_channels: Annotated[
        bool,
        typer.Option("--global", help="Set the master switch for automatic checks."),
    ] = False,
) -> None:
    """Enable or disable automatic checks.

    Example:
        mcnotify enable on
        mcnotify enable off --channel onebot:123456
        mcnotify enable on --global
    """
    if not all_channels:
        _invoke(ctx, channel, lambda c, cc: c.enable(cc, onoff))
        return

    flag = parse_on_off(onoff)
    if flag is None:
        console.print("[red]Error:[/red] Invalid onoff argument, use on/off.")
        raise typer.Exit(code=1)

    settings = _load_settings(ctx)

    async def _set_global() -> None:
        async with NotifyManager(settings) as manager:
            await manager.config_store.set_enabled(flag)

    asyncio.run(_set_global())
    state = "enabled" if flag else "disabled"
    console.print(f"✓ Automatic update checks {state}", style="green")


@app.command()
def check(
    ctx: typer.Context,
    arg: Annotated[
        str | None,
        typer.Argument(help="List number or project id (all if omitted)"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "--broadcast",
            "-b",
            help="Send the latest card even if nothing changed.",
        ),
    ] = False,
    channel: ChannelOption = DEFAULT_CHANNEL,
) -> None:
    """Check a channel's subscriptions now."""
    _invoke(ctx, channel, lambda c, cc: c.check(cc, arg, force=force))


@app.command()
def run(
    ctx: typer.Context,
    tick: Annotated[
        float | None,
        typer.Option("--tick", help="Seconds between scheduler passes."),
    ] = None,
    delay: Annotated[
        float | None,
        typer.Option("--delay", help="Seconds before the first pass."),
    ] = None,
) -> None:
    """Run the scheduler, printing cards to the terminal, until interrupted."""
    settings = _load_settings(ctx)

    async def _serve() -> None:
        router = ChannelRouter([ConsoleBot(console)])
        async with (
            TaskQueue() as queue,
            NotifyManager(settings, delivery=router) as manager,
        ):
            scheduler = Scheduler(manager, queue, base_tick=tick, startup_delay=delay)
            await scheduler.run()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        console.print("Stopped.")


@app.command(name="help")
def show_help() -> None:
    """Show notify command usage."""
    console.print(HELP_TEXT, markup=False)


if __name__ == "__main__":
    app()
