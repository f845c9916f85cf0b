import json
from pathlib import Path

import pytest

from scriptrunner.config import ConfigStore
from scriptrunner.sources import BranchListing, GitCommandError


class FakeSyncer:
    """In-memory stand-in for the git CLI.

    ``repos`` maps a URL to the manifest written into ``scripts/`` on clone.
    """

    def __init__(self, repos=None, branches=None, current="main"):
        self.repos = repos or {}
        self.branches = branches if branches is not None else ["main"]
        self.current = current
        self.unreachable: set[str] = set()
        self.fail_clone: set[str] = set()
        self.calls: list[tuple] = []

    def clone(self, url, dest):
        self.calls.append(("clone", url, dest))
        if url in self.fail_clone:
            raise GitCommandError(["git", "clone", url], 128, "fatal: repository not found")
        dest.mkdir(parents=True)
        manifest = self.repos.get(url)
        if manifest is not None:
            scripts = dest / "scripts"
            scripts.mkdir()
            (scripts / "scripts.json").write_text(json.dumps(manifest))

    def list_branches(self, dest):
        self.calls.append(("list_branches", dest))
        return BranchListing(current=self.current, all=list(self.branches))

    def checkout(self, dest, branch):
        self.calls.append(("checkout", dest, branch))

    def list_remote_refs(self, url):
        self.calls.append(("list_remote_refs", url))
        if url in self.unreachable:
            raise GitCommandError(["git", "ls-remote", url], 128, "fatal: could not read")
        return [f"refs/heads/{b}" for b in self.branches]


class FakeTerminal:
    def __init__(self, name):
        self.name = name
        self.sent: list[str] = []
        self.shown = 0
        self.disposed = False
        self.closed_by_user = False

    def send_text(self, text):
        self.sent.append(text)

    def show(self):
        self.shown += 1

    def dispose(self):
        self.disposed = True

    def is_alive(self):
        return not (self.disposed or self.closed_by_user)


class FakeTerminalFactory:
    def __init__(self):
        self.created: list[FakeTerminal] = []

    def __call__(self, name):
        terminal = FakeTerminal(name)
        self.created.append(terminal)
        return terminal


def write_manifest(root: Path, entries, name="scripts.json") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    path = root / name
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


def write_script(path: Path, body="#!/bin/sh\necho hi\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    return path


@pytest.fixture
def store(tmp_path):
    return ConfigStore(tmp_path / "home" / "config.yaml")


@pytest.fixture
def workspace_store(tmp_path):
    return ConfigStore(
        tmp_path / "home" / "config.yaml", tmp_path / "workspace" / ".scriptrunner.yaml"
    )


@pytest.fixture
def syncer():
    return FakeSyncer()


@pytest.fixture
def terminals():
    return FakeTerminalFactory()
