"""Pytest configuration and fixtures for wipsquash tests."""

import os
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

from wipsquash.core.log import ConsoleSink, setup_logger


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only debug logging; nothing is sent to logfire.dev."""
    test_log_root = Path(tempfile.gettempdir()) / "wipsquash-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


def git(cwd: Path, *args: str) -> str:
    """Run git directly (not through the code under test)."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.rstrip("\n")


def commit_file(
    repo: Path, name: str, content: str, message: str
) -> str:
    """Write a file, stage it and commit it. Returns the new hash."""
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def commit_count(repo: Path) -> int:
    return int(git(repo, "rev-list", "--count", "HEAD"))


def head_message(repo: Path) -> str:
    return git(repo, "log", "-1", "--format=%B")


@pytest.fixture
def git_env(tmp_path, monkeypatch):
    """Isolate git and user directories from the developer's setup."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(home / ".state"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path.parent))
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Committer")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "committer@example.com")
    for name in list(os.environ):
        if name.startswith("WIPSQUASH_"):
            monkeypatch.delenv(name)
    return home


@pytest.fixture
def empty_repo(tmp_path, git_env):
    """A repository with no commits."""
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "commit.gpgsign", "false")
    return repo


@pytest.fixture
def repo_dir(empty_repo):
    """A repository with one ordinary commit."""
    commit_file(empty_repo, "README.md", "# project\n", "Initial commit")
    return empty_repo


@pytest.fixture
def make_state(tmp_path, monkeypatch):
    """Build a State without CLI parsing.

    Runs from an empty working directory so no project
    wipsquash.yaml or .env is picked up.

    Returns:
        Factory taking config overrides as a nested dict
    """
    from wipsquash.core.config import State

    workdir = tmp_path / "cwd"
    workdir.mkdir(exist_ok=True)
    monkeypatch.chdir(workdir)
    monkeypatch.setattr(sys, "argv", ["wipsquash"])

    def factory(**config):
        config.setdefault("log_root", str(tmp_path / "logs"))
        llm = config.setdefault("llm", {})
        llm.setdefault("retry_backoff", 0)
        return State(config=config)

    return factory


@pytest.fixture
def state(make_state, repo_dir):
    """State pointed at repo_dir with message generation disabled."""
    return make_state(
        git={"workdir": str(repo_dir)},
        squash={"auto_generate_message": False},
        auto_commit={"generate_message": False},
    )
