"""
Command Synthesizer

Turns a resolved Script, the user's parameter values, and the file pattern
table into the single command line sent to a terminal:

    <environment preamble><script invocation><exit suffix>

Substitution into inline scripts is literal text replacement. Values are only
wrapped in double quotes when they contain whitespace; nothing is escaped
against the target shell's quoting rules.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from scriptrunner.catalog import ExitSettings, HostPlatform, Script, current_platform
from scriptrunner.errors import MissingParameterError, NoInterpreterConfiguredError

from .patterns import FilePattern, select_pattern


logger = logging.getLogger(__name__)

ENV_SOURCE_PATH = "SCRIPTS_RUNNER_SOURCE_PATH"
ENV_SOURCE_NAME = "SCRIPTS_RUNNER_SOURCE_NAME"
ENV_SCRIPT_DIR = "SCRIPTS_RUNNER_SCRIPT_DIR"

_PLACEHOLDER = re.compile(r"\{([A-Za-z0-9_.\-]+)\}")

ParamValue = str | bool | None


@dataclass(frozen=True)
class ShellDialect(ABC):
    """Platform-specific command-line syntax."""

    separator: str
    refresh: str
    clear: str
    close: str

    @abstractmethod
    def export(self, key: str, value: str) -> str: ...


class PosixDialect(ShellDialect):
    def export(self, key: str, value: str) -> str:
        escaped = re.sub(r'(["\\$`])', r"\\\1", value)
        return f'export {key}="{escaped}"; '


class PowerShellDialect(ShellDialect):
    def export(self, key: str, value: str) -> str:
        escaped = re.sub(r'(["`$])', r"`\1", value)
        return f'$env:{key}="{escaped}"; '


POSIX = PosixDialect(separator="&&", refresh='exec "${SHELL:-sh}"', clear="clear", close="exit")
POWERSHELL = PowerShellDialect(separator=";", refresh="powershell", clear="Clear-Host", close="exit")


def dialect_for(platform: HostPlatform) -> ShellDialect:
    return POWERSHELL if platform.is_windows else POSIX


def quote_value(value: str) -> str:
    """Wrap a value in double quotes if it has whitespace and is not already quoted."""
    if any(ch.isspace() for ch in value) and not value.startswith(('"', "'")):
        return f'"{value}"'
    return value


class CommandSynthesizer:
    """Builds executable command lines for one host platform."""

    def __init__(self, platform: HostPlatform | None = None) -> None:
        self.platform = platform or current_platform()

    def resolve_parameters(
        self, script: Script, values: Mapping[str, ParamValue] | None = None
    ) -> dict[str, str]:
        """Resolve declared parameters to quoted command-line values, in order.

        Parameters with neither a value nor a default are omitted.

        Raises:
            MissingParameterError: If a required parameter has no value or default
        """
        values = values or {}
        resolved: dict[str, str] = {}

        for param in script.metadata.parameters:
            raw = values.get(param.name)
            if isinstance(raw, bool):
                value: str | None = "true" if raw else "false"
            else:
                value = raw if raw not in (None, "") else param.default_as_string()

            if value is None or value == "":
                if param.required:
                    raise MissingParameterError(param.name)
                continue

            resolved[param.name] = quote_value(value)

        return resolved

    def build_invocation(
        self,
        script: Script,
        parameters: Mapping[str, str],
        patterns: Iterable[FilePattern],
        platform: HostPlatform | None = None,
    ) -> str:
        """The command that runs the script itself, without preamble or suffix.

        Raises:
            NoInterpreterConfiguredError: If no pattern matches a file-backed script
        """
        if script.inline_script is not None:

            def substitute(match: re.Match[str]) -> str:
                name = match.group(1)
                if name in parameters:
                    return parameters[name]
                if any(p.name == name for p in script.metadata.parameters):
                    return ""
                return match.group(0)

            return _PLACEHOLDER.sub(substitute, script.inline_script)

        platform = platform or self.platform
        file_name = script.path.name
        pattern = select_pattern(patterns, file_name, platform)
        if pattern is None:
            raise NoInterpreterConfiguredError(file_name)

        command = f'{pattern.command} "{script.path}"'
        if parameters:
            command += " " + " ".join(parameters.values())
        return command

    def exit_suffix(
        self,
        on_exit: ExitSettings,
        platform: HostPlatform | None = None,
        close_allowed: bool = True,
    ) -> str:
        """Tokens for refresh, clear, and close, in that order.

        The close token is left out when ``close_allowed`` is false, so a
        session reused from an earlier run keeps its shell.
        """
        dialect = dialect_for(platform or self.platform)
        tokens = []
        if on_exit.refresh:
            tokens.append(dialect.refresh)
        if on_exit.clear:
            tokens.append(dialect.clear)
        if on_exit.close and close_allowed:
            tokens.append(dialect.close)
        if not tokens:
            return ""
        sep = f" {dialect.separator} "
        return sep + sep.join(tokens)

    def environment(self, script: Script) -> dict[str, str]:
        return {
            ENV_SOURCE_PATH: str(script.source_path),
            ENV_SOURCE_NAME: script.source_name,
            ENV_SCRIPT_DIR: str(script.directory),
        }

    def env_preamble(self, script: Script, platform: HostPlatform | None = None) -> str:
        dialect = dialect_for(platform or self.platform)
        return "".join(dialect.export(k, v) for k, v in self.environment(script).items())

    def synthesize(
        self,
        script: Script,
        values: Mapping[str, ParamValue] | None,
        patterns: Iterable[FilePattern],
        platform: HostPlatform | None = None,
        close_allowed: bool = True,
    ) -> str:
        """Build the complete command line for one execution.

        Pass ``close_allowed=False`` when the command goes to a session that
        was not opened for this run.

        Raises:
            MissingParameterError: If a required parameter is missing
            NoInterpreterConfiguredError: If no pattern matches a file-backed script
        """
        platform = platform or self.platform
        parameters = self.resolve_parameters(script, values)
        invocation = self.build_invocation(script, parameters, patterns, platform)
        command = (
            self.env_preamble(script, platform)
            + invocation
            + self.exit_suffix(script.metadata.terminal.on_exit, platform, close_allowed)
        )
        logger.debug(f"Synthesized command for {script.name}: {command}")
        return command
