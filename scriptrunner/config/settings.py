from __future__ import annotations

import os
from pathlib import Path


BUILTIN_SCRIPTS_PATH = Path(__file__).resolve().parent.parent / "builtin"
BUILTIN_SOURCE_NAME = "Built-in Scripts"


class RunnerSettings:
    """Runtime settings for the script runner.

    Every argument falls back to an environment variable, then to a default.

    Args:
        home: Directory holding the global config file and git working copies
            (``SCRIPTRUNNER_HOME``, default ``~/.scriptrunner``)
        workspace: Workspace directory whose ``.scriptrunner.yaml`` overrides
            global settings (``SCRIPTRUNNER_WORKSPACE``, default none)
        close_delay: Seconds to wait before closing a terminal after dispatch
            (``SCRIPTRUNNER_CLOSE_DELAY``, default 0.1)
        git_retries: Attempts for network git operations
            (``SCRIPTRUNNER_GIT_RETRIES``, default 3)
        git_timeout: Timeout in seconds for a single git command
            (``SCRIPTRUNNER_GIT_TIMEOUT``, default 300)
    """

    def __init__(
        self,
        home: Path | str | None = None,
        workspace: Path | str | None = None,
        close_delay: float | None = None,
        git_retries: int | None = None,
        git_timeout: float | None = None,
        builtin_scripts_path: Path | None = None,
    ):
        self.home = Path(
            home or os.getenv("SCRIPTRUNNER_HOME") or Path.home() / ".scriptrunner"
        ).expanduser()

        workspace = workspace or os.getenv("SCRIPTRUNNER_WORKSPACE")
        self.workspace = Path(workspace).expanduser() if workspace else None

        self.close_delay = (
            close_delay
            if close_delay is not None
            else float(os.getenv("SCRIPTRUNNER_CLOSE_DELAY", "0.1"))
        )
        self.git_retries = git_retries or int(os.getenv("SCRIPTRUNNER_GIT_RETRIES", "3"))
        self.git_timeout = git_timeout or float(os.getenv("SCRIPTRUNNER_GIT_TIMEOUT", "300"))
        self.builtin_scripts_path = builtin_scripts_path or BUILTIN_SCRIPTS_PATH

    @property
    def global_config_path(self) -> Path:
        return self.home / "config.yaml"

    @property
    def workspace_config_path(self) -> Path | None:
        if self.workspace is None:
            return None
        return self.workspace / ".scriptrunner.yaml"

    @property
    def repos_path(self) -> Path:
        return self.home / "repos"
