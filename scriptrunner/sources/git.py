"""Git repository syncing over the ``git`` command line."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from scriptrunner.errors import ScriptRunnerError


logger = logging.getLogger(__name__)


class GitCommandError(ScriptRunnerError):
    """A git command exited unsuccessfully or could not be started."""

    def __init__(self, args: list[str], returncode: int | None, stderr: str) -> None:
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        code = f"exit code {returncode}" if returncode is not None else "not started"
        super().__init__(f"`{' '.join(args)}` failed ({code}): {detail}")


@dataclass
class BranchListing:
    """Branches known to a working copy."""

    current: str | None
    all: list[str] = field(default_factory=list)

    def __contains__(self, branch: str) -> bool:
        return branch in self.all


class RepositorySyncer(Protocol):
    """Capability the source registry needs from a version-control backend."""

    def clone(self, url: str, dest: Path) -> None: ...

    def list_branches(self, dest: Path) -> BranchListing: ...

    def checkout(self, dest: Path, branch: str) -> None: ...

    def list_remote_refs(self, url: str) -> list[str]: ...


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"Git command failed (attempt {retry_state.attempt_number}), retrying: {exc}")


class GitCliSyncer:
    """RepositorySyncer backed by the git executable.

    Network operations (clone, ls-remote) are retried with exponential backoff.
    Prompts for credentials are disabled so unreachable or private repositories
    fail instead of hanging.
    """

    def __init__(self, retries: int = 3, timeout: float = 300.0, git_executable: str = "git"):
        self.retries = max(1, retries)
        self.timeout = timeout
        self.git_executable = git_executable

    def _run(self, args: list[str], cwd: Path | None = None) -> str:
        argv = [self.git_executable, *args]
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
                env=env,
            )
        except FileNotFoundError as e:
            raise GitCommandError(argv, None, f"git executable not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(argv, None, f"timed out after {self.timeout}s") from e

        if result.returncode != 0:
            raise GitCommandError(argv, result.returncode, result.stderr or result.stdout)
        return result.stdout

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(GitCommandError),
            before_sleep=_log_retry,
            reraise=True,
        )

    def clone(self, url: str, dest: Path) -> None:
        for attempt in self._retrying():
            with attempt:
                if dest.exists():
                    shutil.rmtree(dest)
                dest.parent.mkdir(parents=True, exist_ok=True)
                self._run(["clone", "--quiet", url, str(dest)])
        logger.info(f"Cloned {url} into {dest}")

    def list_branches(self, dest: Path) -> BranchListing:
        current = self._run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=dest).strip() or None
        if current == "HEAD":
            current = None

        output = self._run(
            ["for-each-ref", "--format=%(refname)", "refs/heads", "refs/remotes"], cwd=dest
        )
        branches: list[str] = []
        for ref in output.splitlines():
            ref = ref.strip()
            if ref.startswith("refs/heads/"):
                name = ref.removeprefix("refs/heads/")
            elif ref.startswith("refs/remotes/"):
                # refs/remotes/<remote>/<branch>
                parts = ref.removeprefix("refs/remotes/").split("/", 1)
                if len(parts) != 2 or parts[1] == "HEAD":
                    continue
                name = parts[1]
            else:
                continue
            if name not in branches:
                branches.append(name)

        return BranchListing(current=current, all=branches)

    def checkout(self, dest: Path, branch: str) -> None:
        self._run(["checkout", "--quiet", branch], cwd=dest)

    def list_remote_refs(self, url: str) -> list[str]:
        output = ""
        for attempt in self._retrying():
            with attempt:
                output = self._run(["ls-remote", url])

        refs = []
        for line in output.splitlines():
            parts = line.split("\t", 1)
            if len(parts) == 2:
                refs.append(parts[1].strip())
        return refs
