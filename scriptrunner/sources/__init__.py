"""Script sources: configuration models, git syncing, and the source registry."""

from .git import BranchListing, GitCliSyncer, GitCommandError, RepositorySyncer
from .models import (
    DEFAULT_SCRIPTS_PATH,
    GitSource,
    LocalSource,
    ResolvedSource,
    SourceConfig,
    parse_source,
    parse_sources,
)
from .registry import SourceRegistry, SyncResult, resolve_branch


__all__ = [
    # Models
    "DEFAULT_SCRIPTS_PATH",
    "GitSource",
    "LocalSource",
    "ResolvedSource",
    "SourceConfig",
    "parse_source",
    "parse_sources",
    # Git
    "BranchListing",
    "GitCliSyncer",
    "GitCommandError",
    "RepositorySyncer",
    # Registry
    "SourceRegistry",
    "SyncResult",
    "resolve_branch",
]
