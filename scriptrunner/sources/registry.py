"""
Source Registry

Owns the configured list of script sources, validates new sources before they
are persisted, and materializes git sources as local working copies.

The registry keeps one in-memory list loaded from the ``sources`` key of the
global configuration scope. Every mutation re-reads the latest persisted list,
applies the change, writes it back, and replaces the in-memory list with what
was written.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from scriptrunner.config import BUILTIN_SOURCE_NAME, ConfigScope, ConfigStore
from scriptrunner.errors import (
    BuiltInSourceError,
    DuplicateSourceError,
    NoSourcesConfiguredError,
    SourceNotFoundError,
    SourceSyncError,
    SourceValidationError,
)

from .git import BranchListing, GitCommandError, RepositorySyncer
from .models import GitSource, LocalSource, ResolvedSource, parse_sources


logger = logging.getLogger(__name__)

SOURCES_KEY = "sources"
FALLBACK_BRANCH = "main"
WORKSPACE_SOURCE_PREFIX = "Workspace: "

Source = GitSource | LocalSource


@dataclass
class SyncResult:
    """Outcome of syncing one git source."""

    source_name: str
    working_copy: Path
    branch: str
    fell_back: bool = False


def resolve_branch(configured: str | None, branches: BranchListing) -> tuple[str, bool]:
    """Pick the branch to check out.

    Returns the branch name and whether the configured branch was missing and
    the default branch was used instead.
    """
    default = branches.current or FALLBACK_BRANCH
    if not configured:
        return default, False
    if configured not in branches:
        return default, True
    return configured, False


class SourceRegistry:
    """Registry of configured script sources."""

    def __init__(self, store: ConfigStore, syncer: RepositorySyncer, repos_path: Path) -> None:
        self._store = store
        self._syncer = syncer
        self.repos_path = Path(repos_path)
        self._sources: list[Source] = []
        self.reload()

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def reload(self) -> None:
        """Replace the in-memory list with the persisted one."""
        self._sources = parse_sources(self._store.get_global(SOURCES_KEY, []))

    @property
    def sources(self) -> tuple[Source, ...]:
        return tuple(self._sources)

    def get_source(self, name: str) -> Source | None:
        for source in self._sources:
            if source.name == name:
                return source
        return None

    def working_copy_path(self, source: GitSource) -> Path:
        """Directory holding the synced working copy of a git source."""
        tail = source.url.rstrip("/").split("/")[-1].removesuffix(".git") or "repo"
        digest = hashlib.sha1(source.url.encode("utf-8")).hexdigest()[:8]
        return self.repos_path / f"{tail}-{digest}"

    def list_enabled_sources(self) -> list[ResolvedSource]:
        """Resolve every enabled source to its scripts root, in registry order."""
        resolved: list[ResolvedSource] = []
        for source in self._sources:
            if not source.enabled:
                continue
            if isinstance(source, GitSource):
                base = self.working_copy_path(source)
                resolved.append(
                    ResolvedSource(
                        scripts_root=base / source.scripts_path,
                        source_name=source.name,
                        source_base_path=base,
                    )
                )
            else:
                path = source.resolved_path
                resolved.append(
                    ResolvedSource(scripts_root=path, source_name=source.name, source_base_path=path)
                )
        return resolved

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def _mutate(self, fn: Callable[[list[Source]], list[Source]]) -> None:
        def apply(records: list | None) -> list:
            return [source.to_config() for source in fn(parse_sources(records))]

        written = self._store.update(SOURCES_KEY, apply, scope=ConfigScope.GLOBAL, default=[])
        self._sources = parse_sources(written)

    def _validate(self, source: Source) -> None:
        if isinstance(source, GitSource):
            try:
                refs = self._syncer.list_remote_refs(source.url)
            except GitCommandError as e:
                raise SourceValidationError(source.name, f"repository unreachable: {e}") from e
            if source.branch and f"refs/heads/{source.branch}" not in refs:
                logger.warning(
                    f"Branch {source.branch} not found on {source.url}; "
                    "the default branch will be used when syncing"
                )
            return

        path = Path(source.path)
        if not path.is_absolute():
            raise SourceValidationError(source.name, f"path must be absolute: {source.path}")
        if not path.exists():
            raise SourceValidationError(source.name, f"path does not exist: {source.path}")
        if not path.is_dir():
            raise SourceValidationError(source.name, f"path is not a directory: {source.path}")
        if not os.access(path, os.R_OK | os.X_OK):
            raise SourceValidationError(source.name, f"path is not readable: {source.path}")

    async def add_source(self, source: Source) -> Source:
        """Validate and persist a new source.

        Raises:
            SourceValidationError: If the source is unreachable, invalid, or its
                name is already taken
        """
        if self.get_source(source.name) is not None:
            raise DuplicateSourceError(source.name)

        await asyncio.to_thread(self._validate, source)

        def append(current: list[Source]) -> list[Source]:
            if any(existing.name == source.name for existing in current):
                raise DuplicateSourceError(source.name)
            return [*current, source]

        self._mutate(append)
        logger.info(f"Added {source.type} source: {source.name}")
        return source

    def remove_source(self, name: str) -> None:
        removed: list[Source] = []

        def remove(current: list[Source]) -> list[Source]:
            kept = []
            for source in current:
                if source.name != name:
                    kept.append(source)
                elif source.built_in:
                    raise BuiltInSourceError(name)
                else:
                    removed.append(source)
            if not removed:
                raise SourceNotFoundError(name)
            return kept

        self._mutate(remove)

        for source in removed:
            if isinstance(source, GitSource):
                shutil.rmtree(self.working_copy_path(source), ignore_errors=True)
        logger.info(f"Removed source: {name}")

    def toggle_source(self, name: str, enabled: bool) -> None:
        def toggle(current: list[Source]) -> list[Source]:
            for source in current:
                if source.name == name:
                    source.enabled = enabled
                    return current
            raise SourceNotFoundError(name)

        self._mutate(toggle)
        logger.info(f"{'Enabled' if enabled else 'Disabled'} source: {name}")

    def ensure_builtin_source(self, path: Path, name: str = BUILTIN_SOURCE_NAME) -> None:
        """Register the bundled source, or point it at the current install location."""
        path_str = str(Path(path).resolve())
        existing = next((s for s in self._sources if s.built_in), None)
        if isinstance(existing, LocalSource) and existing.path == path_str:
            return

        def ensure(current: list[Source]) -> list[Source]:
            for source in current:
                if source.built_in and isinstance(source, LocalSource):
                    source.path = path_str
                    return current
            return [LocalSource(name=name, path=path_str, built_in=True), *current]

        self._mutate(ensure)
        logger.info(f"Registered built-in source at {path_str}")

    # -------------------------------------------------------------------------
    # Syncing
    # -------------------------------------------------------------------------

    def _sync_git(self, source: GitSource) -> SyncResult:
        working_copy = self.working_copy_path(source)
        logger.info(f"Syncing git repository: {source.url}")
        try:
            if working_copy.exists():
                shutil.rmtree(working_copy)

            self._syncer.clone(source.url, working_copy)
            branches = self._syncer.list_branches(working_copy)
            branch, fell_back = resolve_branch(source.branch, branches)
            if fell_back:
                logger.warning(
                    f"Configured branch {source.branch} not found in {source.url}, "
                    f"falling back to {branch}"
                )
            self._syncer.checkout(working_copy, branch)

            (working_copy / source.scripts_path).mkdir(parents=True, exist_ok=True)
        except (GitCommandError, OSError) as e:
            raise SourceSyncError(source.name, e) from e

        logger.info(f"Repository synced: {source.name} ({branch})")
        return SyncResult(
            source_name=source.name, working_copy=working_copy, branch=branch, fell_back=fell_back
        )

    async def sync_all(self) -> list[SyncResult]:
        """Resync every enabled git source, sequentially in registry order.

        Raises:
            NoSourcesConfiguredError: If the registry is empty
            SourceSyncError: If any git source fails to sync
        """
        self.reload()
        if not self._sources:
            raise NoSourcesConfiguredError()

        results: list[SyncResult] = []
        for source in self._sources:
            if not source.enabled:
                continue
            if isinstance(source, GitSource):
                results.append(await asyncio.to_thread(self._sync_git, source))
            elif not source.resolved_path.is_dir():
                logger.warning(f"Local source {source.name} path does not exist: {source.path}")
        return results

    # -------------------------------------------------------------------------
    # Workspace folders
    # -------------------------------------------------------------------------

    def reconcile_workspace_folders(
        self, folders: Iterable[Path | str]
    ) -> tuple[list[str], list[str]]:
        """Match workspace-derived sources to the currently open folders.

        Returns the names of the added and removed sources.
        """
        open_paths: list[str] = []
        for folder in folders:
            path_str = str(Path(folder).expanduser().resolve())
            if path_str not in open_paths:
                open_paths.append(path_str)

        added: list[str] = []
        removed: list[str] = []

        def reconcile(current: list[Source]) -> list[Source]:
            kept: list[Source] = []
            tracked: set[str] = set()
            for source in current:
                if source.is_workspace and isinstance(source, LocalSource):
                    if source.path not in open_paths:
                        removed.append(source.name)
                        continue
                    tracked.add(source.path)
                kept.append(source)

            names = {source.name for source in kept}
            for path_str in open_paths:
                if path_str in tracked:
                    continue
                name = f"{WORKSPACE_SOURCE_PREFIX}{Path(path_str).name}"
                suffix = 2
                while name in names:
                    name = f"{WORKSPACE_SOURCE_PREFIX}{Path(path_str).name} ({suffix})"
                    suffix += 1
                names.add(name)
                kept.append(LocalSource(name=name, path=path_str, is_workspace=True))
                added.append(name)
            return kept

        self._mutate(reconcile)
        if added or removed:
            logger.info(f"Workspace sources reconciled: +{len(added)} -{len(removed)}")
        return added, removed
