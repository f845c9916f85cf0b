"""
File patterns map script file names to the interpreter command that runs them.

Patterns are an ordered list; the first pattern matching a file's basename on
the host platform wins. They are persisted under the ``fileExtensions``
configuration key and seeded with built-in defaults on first use.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scriptrunner.catalog import HostPlatform
from scriptrunner.config import ConfigStore
from scriptrunner.errors import ConfigurationError


logger = logging.getLogger(__name__)

FILE_PATTERNS_KEY = "fileExtensions"


class FilePattern(BaseModel):
    """Glob pattern for script file names and the command prefix that runs them."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    pattern: str = Field(..., min_length=1, description="Glob matched against the file name")
    command: str = Field(..., min_length=1, description="Command prefix, e.g. 'bash'")
    built_in: bool = Field(default=False, alias="builtIn")
    platform: HostPlatform | None = Field(
        default=None, description="Restrict to one platform; None applies everywhere"
    )

    def applies_to(self, platform: HostPlatform) -> bool:
        return self.platform is None or self.platform == platform

    def matches(self, file_name: str) -> bool:
        return glob_to_regex(self.pattern).fullmatch(file_name) is not None

    def to_config(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a glob: ``*`` is any run of characters, ``?`` one character.

    Every other character is matched literally.
    """
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def select_pattern(
    patterns: Iterable[FilePattern], file_name: str, platform: HostPlatform
) -> FilePattern | None:
    """First pattern that applies to the platform and matches the file name."""
    for pattern in patterns:
        if pattern.applies_to(platform) and pattern.matches(file_name):
            return pattern
    return None


_POSIX = (HostPlatform.LINUX, HostPlatform.DARWIN)

DEFAULT_FILE_PATTERNS: tuple[FilePattern, ...] = (
    *(FilePattern(pattern="*.sh", command="bash", built_in=True, platform=p) for p in _POSIX),
    *(FilePattern(pattern="*.py", command="python3", built_in=True, platform=p) for p in _POSIX),
    FilePattern(
        pattern="*.ps1", command="powershell -File", built_in=True, platform=HostPlatform.WINDOWS
    ),
    FilePattern(pattern="*.bat", command="cmd /c", built_in=True, platform=HostPlatform.WINDOWS),
    FilePattern(pattern="*.py", command="python", built_in=True, platform=HostPlatform.WINDOWS),
)


def _same_slot(a: FilePattern, b: FilePattern) -> bool:
    return a.pattern == b.pattern and a.platform == b.platform


class FilePatternStore:
    """Persisted, ordered list of file patterns."""

    def __init__(self, store: ConfigStore) -> None:
        self._store = store

    def _parse(self, records: list | None) -> list[FilePattern]:
        patterns = []
        for record in records or []:
            try:
                patterns.append(FilePattern.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Ignoring invalid file pattern {record!r}: {e}")
        return patterns

    def load(self) -> list[FilePattern]:
        """Load patterns, seeding the built-in defaults on first use."""
        records = self._store.get(FILE_PATTERNS_KEY)
        if records is None:
            records = self._store.update(
                FILE_PATTERNS_KEY,
                lambda current: current
                if current is not None
                else [p.to_config() for p in DEFAULT_FILE_PATTERNS],
            )
            logger.info("Seeded default file patterns")
        return self._parse(records)

    def save(self, pattern: FilePattern, replace: FilePattern | None = None) -> list[FilePattern]:
        """Add a pattern, or replace ``replace`` (or an entry with the same slot) in place."""
        target = replace or pattern

        def apply(records: list | None) -> list:
            patterns = self._parse(records) if records is not None else list(DEFAULT_FILE_PATTERNS)
            for index, existing in enumerate(patterns):
                if _same_slot(existing, target):
                    patterns[index] = pattern.model_copy(update={"built_in": existing.built_in})
                    break
            else:
                patterns.append(pattern)
            return [p.to_config() for p in patterns]

        return self._parse(self._store.update(FILE_PATTERNS_KEY, apply))

    def remove(self, pattern: str, platform: HostPlatform | None = None) -> list[FilePattern]:
        """Remove a user-defined pattern.

        Raises:
            ConfigurationError: If the pattern is built in or does not exist
        """
        probe = FilePattern(pattern=pattern, command="-", platform=platform)

        def apply(records: list | None) -> list:
            patterns = self._parse(records) if records is not None else list(DEFAULT_FILE_PATTERNS)
            for existing in patterns:
                if _same_slot(existing, probe):
                    if existing.built_in:
                        raise ConfigurationError(f"Built-in file pattern '{pattern}' cannot be removed")
                    patterns.remove(existing)
                    return [p.to_config() for p in patterns]
            raise ConfigurationError(f"File pattern not found: {pattern}")

        return self._parse(self._store.update(FILE_PATTERNS_KEY, apply))
