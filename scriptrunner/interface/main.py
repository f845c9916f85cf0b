#!/usr/bin/env python3
"""
scriptrunner command line interface
"""

import argparse
import logging
import sys

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from scriptrunner.config import ConfigStoreError
from scriptrunner.errors import ConfigurationError, ScriptRunnerError
from scriptrunner.interface.cli import CliSession, run_async, run_command


logging.getLogger().setLevel(logging.ERROR)

PLATFORM_CHOICES = ["windows", "linux", "darwin"]


def _add_script_selector(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("name", help="Script name")
    parser.add_argument("--source", help="Source to pick the script from when names collide")


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="scriptrunner",
        description="Browse and run scripts from git repositories and local directories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Register sources and fetch them
  scriptrunner sources add-git https://github.com/acme/ops-scripts --branch main
  scriptrunner sources add-local ~/scripts
  scriptrunner sync

  # Browse
  scriptrunner list
  scriptrunner list --query backup --tag database

  # Run, prompting for parameters
  scriptrunner run "Disk usage"
  scriptrunner run "Deploy" --source ops-scripts -p environment=staging
        """,
    )

    parser.add_argument(
        "--home",
        type=str,
        help="Directory for the global configuration and git working copies "
        "(default: $SCRIPTRUNNER_HOME or ~/.scriptrunner)",
    )
    parser.add_argument(
        "--workspace",
        type=str,
        help="Workspace folder: its .scriptrunner.yaml overrides global settings "
        "and the folder itself becomes a script source",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output with additional details.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode with detailed logging.",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    list_parser = commands.add_parser("list", help="List available scripts")
    list_parser.add_argument("-q", "--query", help="Search name, description, category, and tags")
    list_parser.add_argument("--tag", action="append", help="Only scripts with this tag (repeatable)")
    list_parser.add_argument(
        "--category", action="append", help="Only scripts in this category (repeatable)"
    )
    list_parser.add_argument(
        "--source", action="append", help="Only scripts from this source (repeatable)"
    )
    list_parser.add_argument("--pinned", action="store_true", help="Only pinned scripts")
    list_parser.add_argument("--sync", action="store_true", help="Resync git sources first")

    run_parser = commands.add_parser("run", help="Run a script in a terminal session")
    _add_script_selector(run_parser)
    run_parser.add_argument(
        "-p",
        "--param",
        action="append",
        metavar="NAME=VALUE",
        help="Parameter value (repeatable); missing parameters are prompted for",
    )
    run_parser.add_argument(
        "--no-input", action="store_true", help="Never prompt; use defaults for missing parameters"
    )
    run_parser.add_argument("--sync", action="store_true", help="Resync git sources first")

    commands.add_parser("sync", help="Resync all git sources and reload the catalog")

    pin_parser = commands.add_parser("pin", help="Pin or unpin a script")
    _add_script_selector(pin_parser)

    commands.add_parser("tags", help="List all tags")
    commands.add_parser("categories", help="List all categories")
    commands.add_parser("enable", help="Enable the script runner")
    commands.add_parser("disable", help="Disable the script runner")

    sources_parser = commands.add_parser("sources", help="Manage script sources")
    sources = sources_parser.add_subparsers(dest="sources_action", required=True)
    sources.add_parser("list", help="List configured sources")

    add_git = sources.add_parser("add-git", help="Add a git repository")
    add_git.add_argument("url", help="Repository URL")
    add_git.add_argument("--name", help="Display name (default: repository name)")
    add_git.add_argument("--branch", help="Branch to check out (default: remote default branch)")
    add_git.add_argument(
        "--scripts-path", default="scripts", help="Scripts directory inside the repository"
    )

    add_local = sources.add_parser("add-local", help="Add a local directory")
    add_local.add_argument("path", help="Directory containing a scripts manifest")
    add_local.add_argument("--name", help="Display name (default: directory name)")

    for action in ("remove", "enable", "disable"):
        sub = sources.add_parser(action, help=f"{action.capitalize()} a source")
        sub.add_argument("name", help="Source name")

    patterns_parser = commands.add_parser("patterns", help="Manage file patterns")
    patterns = patterns_parser.add_subparsers(dest="patterns_action", required=True)
    patterns.add_parser("list", help="List file patterns in match order")

    add_pattern = patterns.add_parser("add", help="Add or replace a file pattern")
    add_pattern.add_argument("pattern", help="Glob matched against file names, e.g. '*.rb'")
    add_pattern.add_argument("command", help="Command prefix, e.g. 'ruby'")
    add_pattern.add_argument("--platform", choices=PLATFORM_CHOICES, help="Restrict to one platform")

    remove_pattern = patterns.add_parser("remove", help="Remove a user-defined file pattern")
    remove_pattern.add_argument("pattern", help="Glob to remove")
    remove_pattern.add_argument("--platform", choices=PLATFORM_CHOICES, help="Platform of the pattern")

    new_parser = commands.add_parser("new", help="Add a script to a local source")
    new_parser.add_argument("source", help="Local source to add the script to")
    new_parser.add_argument("--name", required=True, help="Script name")
    new_parser.add_argument("--description", required=True, help="Script description")
    new_parser.add_argument("--category", help="Script category")
    new_parser.add_argument("--tag", action="append", help="Tag (repeatable)")
    new_parser.add_argument(
        "--platform",
        action="append",
        choices=PLATFORM_CHOICES,
        help="Platform the script supports (repeatable, default: this host)",
    )
    body = new_parser.add_mutually_exclusive_group(required=True)
    body.add_argument("--inline", help="Inline command")
    body.add_argument("--file", help="Script file path relative to the source")
    new_parser.add_argument("--body-from", help="Copy the script file contents from this path")

    return parser.parse_args(argv)


def display_configuration_error(console: Console, error: ConfigurationError) -> None:
    error_text = Text()
    error_text.append("❌ ", style="bold red")
    error_text.append(str(error), style="bold red")
    if error.remediation:
        error_text.append("\n\n", style="white")
        error_text.append(error.remediation, style="white")

    panel = Panel(
        error_text,
        title="[bold red]CONFIGURATION ERROR",
        title_align="center",
        border_style="red",
        padding=(1, 2),
    )
    console.print(panel)


def main(argv: list[str] | None = None) -> None:
    args = parse_arguments(argv)

    # Set up logging based on flags
    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
        logging.getLogger().setLevel(logging.INFO)

    console = Console(stderr=True)
    try:
        session = CliSession(args)
        exit_code = run_async(run_command(session, args))
    except ConfigurationError as e:
        display_configuration_error(console, e)
        sys.exit(2)
    except (ScriptRunnerError, ConfigStoreError, OSError) as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/]")
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
