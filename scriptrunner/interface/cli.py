"""
Command handlers for the scriptrunner CLI.

Each async ``cmd_*`` handler receives a ``CliSession`` and the parsed
arguments, drives the session's ``ScriptRunner`` and renders the result with
rich. It returns the process exit code.
"""

import argparse
import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from scriptrunner.catalog import (
    Catalog,
    HostPlatform,
    ParameterSpec,
    PlatformDraft,
    Script,
    ScriptDraft,
    add_script_to_source,
    current_platform,
)
from scriptrunner.config import RunnerSettings
from scriptrunner.errors import SourceNotFoundError
from scriptrunner.execution import FilePattern, ShellTerminal
from scriptrunner.runner import ExecutionOutcome, ScriptRunner, create_runner
from scriptrunner.sources import GitSource, LocalSource


console = Console()


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine on a private loop.

    Unlike ``asyncio.run``, Ctrl-C raises KeyboardInterrupt immediately, even
    while a parameter prompt is waiting for input.
    """
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()


class CliSession:
    """A runner wired to shell terminals whose lifetime the CLI controls."""

    def __init__(self, args: argparse.Namespace) -> None:
        self.platform = current_platform()
        self.terminals: list[ShellTerminal] = []
        settings = RunnerSettings(home=args.home, workspace=args.workspace)
        self.runner: ScriptRunner = create_runner(
            settings, terminal_factory=self._open_terminal, platform=self.platform
        )

    def _open_terminal(self, name: str) -> ShellTerminal:
        terminal = ShellTerminal(name, self.platform)
        self.terminals.append(terminal)
        return terminal

    async def finish_terminals(self) -> int:
        """Wait for every opened shell to drain its commands; returns the last exit code."""
        await self.runner.wait_for_pending()
        code = 0
        for terminal in self.terminals:
            code = await asyncio.to_thread(terminal.finish)
        return code


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------


def _render_scripts(scripts: list[Script], runner: ScriptRunner) -> None:
    if not scripts:
        console.print("[dim]No scripts found[/]")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("", width=1)
    table.add_column("Name", style="bold white")
    table.add_column("Category", style="magenta")
    table.add_column("Tags", style="dim cyan")
    table.add_column("Source", style="green")
    table.add_column("Description")

    for script in scripts:
        meta = script.metadata
        table.add_row(
            "★" if runner.is_pinned(script) else "",
            meta.name,
            meta.category or "",
            ", ".join(meta.tags),
            script.source_name,
            meta.description,
        )
    console.print(table)


def _render_issues(catalog: Catalog, verbose: bool) -> None:
    if not catalog.issues:
        return
    if not verbose:
        console.print(
            f"[dim yellow]{len(catalog.issues)} source(s) or entries were skipped "
            "(use --verbose for details)[/]"
        )
        return

    text = Text()
    for issue in catalog.issues:
        text.append("• ", style="yellow")
        text.append(f"{issue.source_name}: ", style="bold yellow")
        text.append(issue.message, style="white")
        if issue.location:
            text.append(f"\n  {issue.location}", style="dim")
        text.append("\n")
    console.print(Panel(text, title="[bold yellow]Skipped", border_style="yellow", padding=(0, 1)))


def _source_location(source: GitSource | LocalSource) -> str:
    if isinstance(source, GitSource):
        branch = f" @ {source.branch}" if source.branch else ""
        return f"{source.url}{branch} ({source.scripts_path})"
    return source.path


# -----------------------------------------------------------------------------
# Parameter collection
# -----------------------------------------------------------------------------


def _prompt_parameter(param: ParameterSpec) -> str | bool | None:
    label = f"[bold]{param.name}[/]"
    if param.description:
        label += f" [dim]({param.description})[/]"

    if param.type == "boolean":
        default = param.default if isinstance(param.default, bool) else param.default == "true"
        return Confirm.ask(label, default=default, console=console)

    default = param.default_as_string()
    if param.type == "select" and param.options:
        if default not in param.options:
            default = param.options[0] if param.required else None
        return Prompt.ask(label, choices=param.options, default=default, console=console)

    return Prompt.ask(label, default=default, console=console)


def make_collector(provided: dict[str, str], interactive: bool):
    async def collect(parameters: list[ParameterSpec]) -> dict[str, Any] | None:
        if not interactive:
            return {}
        collected: dict[str, Any] = {}
        try:
            for param in parameters:
                if param.name not in provided:
                    collected[param.name] = _prompt_parameter(param)
        except (KeyboardInterrupt, EOFError):
            console.print()
            return None
        return collected

    return collect


def _parse_param_args(pairs: list[str] | None) -> dict[str, str]:
    values: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid parameter '{pair}', expected name=value")
        values[key.strip()] = value
    return values


def _select_script(catalog: Catalog, name: str, source: str | None) -> Script | None:
    matches = catalog.find(name, source)
    if not matches:
        console.print(f"[bold red]Error:[/] Script not found: {name}")
        return None
    if len(matches) > 1:
        sources = ", ".join(s.source_name for s in matches)
        console.print(
            f"[bold red]Error:[/] Script '{name}' exists in several sources ({sources}); "
            "pick one with --source"
        )
        return None
    return matches[0]


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------


async def cmd_list(session: CliSession, args: argparse.Namespace) -> int:
    runner = session.runner
    catalog = await runner.refresh(sync=args.sync)

    if args.pinned:
        scripts = runner.pinned_scripts()
    else:
        scripts = catalog.filter(args.query, args.tag, args.category, args.source)
    scripts.sort(key=lambda s: (s.metadata.category or "", s.metadata.name))

    _render_scripts(scripts, runner)
    _render_issues(catalog, args.verbose or args.debug)
    return 0


async def cmd_run(session: CliSession, args: argparse.Namespace) -> int:
    runner = session.runner
    try:
        provided = _parse_param_args(args.param)
    except ValueError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 1

    catalog = await runner.refresh(sync=args.sync)
    script = _select_script(catalog, args.name, args.source)
    if script is None:
        return 1

    outcome = await runner.execute_script(
        script, provided, make_collector(provided, interactive=not args.no_input)
    )
    if outcome == ExecutionOutcome.CANCELLED:
        console.print("[yellow]Cancelled[/]")
        return 0

    return await session.finish_terminals()


async def cmd_sync(session: CliSession, args: argparse.Namespace) -> int:
    runner = session.runner
    with console.status("[bold cyan]Syncing script sources...", spinner="dots"):
        catalog = await runner.refresh(sync=True)

    for result in runner.last_sync:
        line = Text()
        line.append("✓ ", style="bold green")
        line.append(result.source_name, style="bold white")
        line.append(f" ({result.branch})", style="dim")
        if result.fell_back:
            line.append("  configured branch not found, using default", style="yellow")
        console.print(line)

    console.print(f"[bold]{len(catalog)}[/] scripts available")
    _render_issues(catalog, args.verbose or args.debug)
    return 0


async def cmd_pin(session: CliSession, args: argparse.Namespace) -> int:
    runner = session.runner
    catalog = await runner.refresh(sync=False)
    script = _select_script(catalog, args.name, args.source)
    if script is None:
        return 1

    pinned = runner.toggle_pin(script)
    console.print(f"{'Pinned' if pinned else 'Unpinned'} [bold]{script.name}[/]")
    return 0


async def cmd_tags(session: CliSession, args: argparse.Namespace) -> int:
    await session.runner.refresh(sync=False)
    for tag in session.runner.get_all_tags():
        console.print(tag)
    return 0


async def cmd_categories(session: CliSession, args: argparse.Namespace) -> int:
    await session.runner.refresh(sync=False)
    for category in session.runner.get_all_categories():
        console.print(category)
    return 0


async def cmd_enable(session: CliSession, args: argparse.Namespace) -> int:
    session.runner.set_enabled(True)
    console.print("Script runner enabled")
    return 0


async def cmd_disable(session: CliSession, args: argparse.Namespace) -> int:
    session.runner.set_enabled(False)
    console.print("Script runner disabled")
    return 0


async def cmd_sources(session: CliSession, args: argparse.Namespace) -> int:
    registry = session.runner.registry
    action = args.sources_action

    if action == "list":
        table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
        table.add_column("Name", style="bold white")
        table.add_column("Type")
        table.add_column("Location", style="dim")
        table.add_column("Enabled")
        for source in registry.sources:
            flags = [flag for flag, on in (("built-in", source.built_in), ("workspace", source.is_workspace)) if on]
            kind = source.type + (f" ({', '.join(flags)})" if flags else "")
            table.add_row(
                source.name,
                kind,
                _source_location(source),
                "[green]yes[/]" if source.enabled else "[red]no[/]",
            )
        console.print(table)
        return 0

    if action == "add-git":
        source = GitSource(
            url=args.url,
            name=args.name or "",
            branch=args.branch,
            scripts_path=args.scripts_path,
        )
        with console.status(f"[bold cyan]Checking {args.url}...", spinner="dots"):
            await registry.add_source(source)
        console.print(f"Added git source [bold]{source.name}[/]; run `scriptrunner sync` to fetch it")
        return 0

    if action == "add-local":
        path = str(Path(args.path).expanduser().resolve())
        source = LocalSource(path=path, name=args.name or "")
        await registry.add_source(source)
        console.print(f"Added local source [bold]{source.name}[/]")
        return 0

    if action == "remove":
        registry.remove_source(args.name)
        console.print(f"Removed source [bold]{args.name}[/]")
        return 0

    registry.toggle_source(args.name, action == "enable")
    console.print(f"{'Enabled' if action == 'enable' else 'Disabled'} source [bold]{args.name}[/]")
    return 0


async def cmd_patterns(session: CliSession, args: argparse.Namespace) -> int:
    patterns = session.runner.file_patterns
    action = args.patterns_action
    platform = HostPlatform(args.platform) if getattr(args, "platform", None) else None

    if action == "list":
        table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
        table.add_column("Pattern", style="bold white")
        table.add_column("Command")
        table.add_column("Platform", style="dim")
        table.add_column("Built-in", style="dim")
        for pattern in patterns.load():
            table.add_row(
                pattern.pattern,
                pattern.command,
                pattern.platform.value if pattern.platform else "all",
                "yes" if pattern.built_in else "",
            )
        console.print(table)
        return 0

    if action == "add":
        patterns.save(FilePattern(pattern=args.pattern, command=args.command, platform=platform))
        console.print(f"Saved file pattern [bold]{args.pattern}[/] → {args.command}")
        return 0

    patterns.remove(args.pattern, platform)
    console.print(f"Removed file pattern [bold]{args.pattern}[/]")
    return 0


async def cmd_new(session: CliSession, args: argparse.Namespace) -> int:
    source = session.runner.registry.get_source(args.source)
    if source is None:
        raise SourceNotFoundError(args.source)
    if not isinstance(source, LocalSource):
        console.print("[bold red]Error:[/] Scripts can only be added to local sources")
        return 1

    platforms = [HostPlatform(p) for p in args.platform] if args.platform else [session.platform]
    if args.inline:
        spec = PlatformDraft(type="inline", content=args.inline)
    else:
        body = Path(args.body_from).read_text(encoding="utf-8") if args.body_from else None
        spec = PlatformDraft(type="file", content=args.file, body=body)

    draft = ScriptDraft(
        name=args.name,
        description=args.description,
        category=args.category,
        tags=args.tag or [],
        platforms={platform: spec for platform in platforms},
    )
    manifest = add_script_to_source(source.resolved_path, draft)
    console.print(f"Added [bold]{draft.name}[/] to {manifest}")
    return 0


COMMANDS = {
    "list": cmd_list,
    "run": cmd_run,
    "sync": cmd_sync,
    "pin": cmd_pin,
    "tags": cmd_tags,
    "categories": cmd_categories,
    "enable": cmd_enable,
    "disable": cmd_disable,
    "sources": cmd_sources,
    "patterns": cmd_patterns,
    "new": cmd_new,
}


async def run_command(session: CliSession, args: argparse.Namespace) -> int:
    return await COMMANDS[args.command](session, args)
