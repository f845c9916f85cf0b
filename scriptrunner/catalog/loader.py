"""
Catalog Loader

Reads every resolved source's manifest and builds an immutable catalog of
Script records for the host platform. Failures are isolated: a broken source
or entry is skipped with a recorded issue and loading continues.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from pydantic import ValidationError

from scriptrunner.errors import ManifestError
from scriptrunner.sources import ResolvedSource

from .manifest import DEFAULT_READERS, ManifestReader, ManifestRecord, read_manifest
from .models import (
    HostPlatform,
    InlineVariant,
    Script,
    ScriptManifestEntry,
    current_platform,
)


logger = logging.getLogger(__name__)


@dataclass
class LoadIssue:
    """A source or entry that was skipped while loading."""

    source_name: str
    message: str
    location: str | None = None

    def __str__(self) -> str:
        loc = f" [{self.location}]" if self.location else ""
        return f"{self.source_name}{loc}: {self.message}"


@dataclass(frozen=True)
class Catalog:
    """Point-in-time snapshot of the loaded scripts.

    The loader imposes no ordering; use ``sorted_scripts`` for presentation.
    """

    scripts: tuple[Script, ...] = ()
    issues: tuple[LoadIssue, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.scripts)

    def __iter__(self):
        return iter(self.scripts)

    def tags(self) -> list[str]:
        return sorted({tag for script in self.scripts for tag in script.metadata.tags})

    def categories(self) -> list[str]:
        return sorted({s.metadata.category for s in self.scripts if s.metadata.category})

    def source_names(self) -> list[str]:
        return sorted({script.source_name for script in self.scripts})

    def sorted_scripts(self) -> list[Script]:
        """Scripts ordered by category then name, uncategorized first."""
        return sorted(
            self.scripts, key=lambda s: (s.metadata.category or "", s.metadata.name)
        )

    def find(self, name: str, source_name: str | None = None) -> list[Script]:
        return [
            s
            for s in self.scripts
            if s.metadata.name == name and (source_name is None or s.source_name == source_name)
        ]

    def filter(
        self,
        query: str | None = None,
        tags: Iterable[str] | None = None,
        categories: Iterable[str] | None = None,
        sources: Iterable[str] | None = None,
    ) -> list[Script]:
        """Search and filter scripts.

        ``query`` matches name, description, category, and tags
        case-insensitively. Within tags, categories, or sources any selected
        value matches; every non-empty selection must match.
        """
        needle = (query or "").strip().lower()
        tag_set = set(tags or ())
        category_set = set(categories or ())
        source_set = set(sources or ())

        matches = []
        for script in self.scripts:
            meta = script.metadata
            if needle:
                haystack = [meta.name, meta.description, meta.category or "", *meta.tags]
                if not any(needle in text.lower() for text in haystack):
                    continue
            if tag_set and not tag_set.intersection(meta.tags):
                continue
            if category_set and meta.category not in category_set:
                continue
            if source_set and script.source_name not in source_set:
                continue
            matches.append(script)
        return matches


class CatalogLoader:
    """Builds catalogs from resolved sources for one host platform."""

    def __init__(
        self,
        platform: HostPlatform | None = None,
        readers: tuple[ManifestReader, ...] = DEFAULT_READERS,
    ) -> None:
        self.platform = platform or current_platform()
        self.readers = readers

    def load(self, sources: Sequence[ResolvedSource]) -> Catalog:
        """Load all sources, in order, into a new catalog."""
        scripts: list[Script] = []
        issues: list[LoadIssue] = []

        for source in sources:
            try:
                records = read_manifest(source.scripts_root, self.readers)
            except ManifestError as e:
                logger.warning(f"Skipping source {source.source_name}: {e}")
                issues.append(LoadIssue(source.source_name, str(e), str(source.scripts_root)))
                continue

            for record in records:
                script = self._build_script(source, record, issues)
                if script is not None:
                    scripts.append(script)

        logger.info(
            f"Loaded {len(scripts)} scripts from {len(sources)} sources "
            f"({len(issues)} issues, platform {self.platform.value})"
        )
        return Catalog(scripts=tuple(scripts), issues=tuple(issues))

    def _build_script(
        self, source: ResolvedSource, record: ManifestRecord, issues: list[LoadIssue]
    ) -> Script | None:
        if record.error is not None:
            issues.append(LoadIssue(source.source_name, record.error, str(record.origin)))
            return None

        try:
            entry = ScriptManifestEntry.model_validate(record.data)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"]) or "entry"
            message = f"Invalid manifest entry ({fields})"
            logger.warning(f"{message} in {record.origin}")
            issues.append(LoadIssue(source.source_name, message, str(record.origin)))
            return None

        variant = entry.variant_for(self.platform)
        if variant is None:
            logger.debug(f"Script {entry.name} not supported on {self.platform.value}")
            return None

        if isinstance(variant, InlineVariant):
            return Script(
                metadata=entry,
                path=record.base_dir,
                source_name=source.source_name,
                source_path=source.source_base_path,
                inline_script=variant.command,
            )

        script_path = record.base_dir / variant.primary
        if not script_path.is_file():
            logger.debug(f"Script file for {entry.name} not found: {script_path}")
            issues.append(
                LoadIssue(source.source_name, f"Script file not found for {entry.name}", str(script_path))
            )
            return None

        return Script(
            metadata=entry,
            path=script_path,
            source_name=source.source_name,
            source_path=source.source_base_path,
        )


def load_catalog(
    sources: Sequence[ResolvedSource], platform: HostPlatform | None = None
) -> Catalog:
    return CatalogLoader(platform).load(sources)

