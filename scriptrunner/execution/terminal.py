"""
Terminal Session Policy

Decides whether an execution reuses an existing terminal session or opens a
new one, and which sessions are torn down afterwards. The decision depends
only on the script's terminal settings and the sessions this policy has seen,
never on ambient host state.

A session the policy did not create for the current run is never closed by
it, even when the script asks for ``onExit.close``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from scriptrunner.catalog import ExitSettings, HostPlatform, TerminalSettings, current_platform


logger = logging.getLogger(__name__)


class TerminalSession(Protocol):
    name: str

    def send_text(self, text: str) -> None: ...

    def show(self) -> None: ...

    def dispose(self) -> None: ...

    def is_alive(self) -> bool: ...


TerminalFactory = Callable[[str], TerminalSession]


class SlotState(str, Enum):
    IDLE = "idle"  # No terminal bound
    ACTIVE = "active"  # At least one terminal bound


@dataclass
class SessionLease:
    """A session handed out for one execution attempt."""

    session: TerminalSession
    created: bool


class TerminalSessionPolicy:
    """Tracks the terminal sessions used for script execution."""

    def __init__(self, factory: TerminalFactory, close_delay: float = 0.1) -> None:
        self._factory = factory
        self.close_delay = close_delay
        # Least to most recently used
        self._sessions: list[TerminalSession] = []

    @property
    def state(self) -> SlotState:
        self._prune()
        return SlotState.ACTIVE if self._sessions else SlotState.IDLE

    @property
    def active_sessions(self) -> tuple[TerminalSession, ...]:
        self._prune()
        return tuple(self._sessions)

    def _prune(self) -> None:
        self._sessions = [s for s in self._sessions if s.is_alive()]

    def acquire(self, settings: TerminalSettings, name: str) -> SessionLease:
        """Reuse the most recently used session, or create one.

        A fresh session is always created when ``settings.new`` is set.
        """
        self._prune()
        if not settings.new and self._sessions:
            session = self._sessions.pop()
            self._sessions.append(session)
            logger.debug(f"Reusing terminal session {session.name}")
            return SessionLease(session=session, created=False)

        session = self._factory(name)
        self._sessions.append(session)
        logger.debug(f"Created terminal session {session.name}")
        return SessionLease(session=session, created=True)

    async def complete(self, lease: SessionLease, on_exit: ExitSettings) -> None:
        """Apply post-dispatch policy once a command has been sent."""
        if not (on_exit.close and lease.created):
            return
        # Give the spawned process time to flush its output
        await asyncio.sleep(self.close_delay)
        self._teardown(lease.session)

    def cancel(self, lease: SessionLease) -> None:
        """Abandon an attempt; only a session created for it is torn down."""
        if lease.created:
            self._teardown(lease.session)

    def forget(self, session: TerminalSession) -> None:
        """Stop tracking a session that was closed outside the policy."""
        if session in self._sessions:
            self._sessions.remove(session)

    def dispose_all(self) -> None:
        for session in list(self._sessions):
            self._teardown(session)

    def _teardown(self, session: TerminalSession) -> None:
        self.forget(session)
        session.dispose()
        logger.debug(f"Closed terminal session {session.name}")


class ShellTerminal:
    """A persistent shell process fed through its standard input.

    Output goes to the parent's stdout and stderr.
    """

    def __init__(self, name: str, platform: HostPlatform | None = None) -> None:
        self.name = name
        platform = platform or current_platform()
        if platform.is_windows:
            argv = ["powershell", "-NoLogo", "-NoProfile", "-Command", "-"]
        else:
            argv = [os.environ.get("SHELL") or "/bin/sh"]
        self._process = subprocess.Popen(argv, stdin=subprocess.PIPE, text=True)

    def send_text(self, text: str) -> None:
        if not self.is_alive() or self._process.stdin is None:
            raise RuntimeError(f"Terminal session {self.name} is closed")
        self._process.stdin.write(text + "\n")
        self._process.stdin.flush()

    def show(self) -> None:
        logger.info(f"Running in terminal session {self.name}")

    def is_alive(self) -> bool:
        return self._process.poll() is None

    def finish(self, timeout: float | None = None) -> int:
        """Close the input and wait for the shell to exit after its last command."""
        if self._process.stdin and not self._process.stdin.closed:
            self._process.stdin.close()
        return self._process.wait(timeout=timeout)

    def dispose(self) -> None:
        # The shell exits once it drains the commands already queued
        if self._process.stdin and not self._process.stdin.closed:
            try:
                self._process.stdin.close()
            except BrokenPipeError:
                pass

    def kill(self) -> None:
        if self.is_alive():
            self._process.terminate()
