"""Command synthesis, file patterns, and terminal session policy."""

from .patterns import (
    DEFAULT_FILE_PATTERNS,
    FILE_PATTERNS_KEY,
    FilePattern,
    FilePatternStore,
    glob_to_regex,
    select_pattern,
)
from .synthesizer import (
    ENV_SCRIPT_DIR,
    ENV_SOURCE_NAME,
    ENV_SOURCE_PATH,
    CommandSynthesizer,
    quote_value,
)
from .terminal import (
    SessionLease,
    ShellTerminal,
    SlotState,
    TerminalFactory,
    TerminalSession,
    TerminalSessionPolicy,
)


__all__ = [
    # Patterns
    "DEFAULT_FILE_PATTERNS",
    "FILE_PATTERNS_KEY",
    "FilePattern",
    "FilePatternStore",
    "glob_to_regex",
    "select_pattern",
    # Synthesizer
    "ENV_SCRIPT_DIR",
    "ENV_SOURCE_NAME",
    "ENV_SOURCE_PATH",
    "CommandSynthesizer",
    "quote_value",
    # Terminal
    "SessionLease",
    "ShellTerminal",
    "SlotState",
    "TerminalFactory",
    "TerminalSession",
    "TerminalSessionPolicy",
]
