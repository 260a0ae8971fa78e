"""Tests for the squash-wip command."""

import asyncio

import pytest
from conftest import commit_count, commit_file, git, head_message

from wipsquash.command import squash_wip
from wipsquash.command.squash_wip import SquashWipCommand, format_preview
from wipsquash.git.repository import Repository
from wipsquash.git.scanner import find_wip_run

PREFIX = "[AUTO-WIP]"


def run_command(state, message=None):
    return asyncio.run(SquashWipCommand(message=message).run_workflow(state))


class TestScenarios:

    def test_override_collapses_three_commits(self, state, repo_dir, capsys):
        for name in ("a", "b", "c"):
            commit_file(repo_dir, f"{name}.txt", f"{name}\n", f"{PREFIX} add {name}")

        assert run_command(state, "feature X") == 0

        assert commit_count(repo_dir) == 2
        assert git(repo_dir, "log", "--format=%s") == "feature X\nInitial commit"
        out = capsys.readouterr().out
        assert "Found 3 WIP commit(s)" in out
        assert "Squashed 3 commit(s)" in out

    def test_nothing_to_squash(self, state, repo_dir, capsys):
        assert run_command(state) == 0

        assert commit_count(repo_dir) == 1
        assert "No [AUTO-WIP] commits to squash." in capsys.readouterr().out

    def test_single_commit_loses_marker(self, state, repo_dir):
        commit_file(repo_dir, "bug.txt", "fixed\n", f"{PREFIX} fix bug")

        assert run_command(state) == 0

        assert head_message(repo_dir) == "fix bug"
        assert commit_count(repo_dir) == 2

    def test_working_tree_survives(self, state, repo_dir):
        commit_file(repo_dir, "file.txt", "one\n", "Add file")
        commit_file(repo_dir, "a.txt", "a\n", f"{PREFIX} add a")
        commit_file(repo_dir, "b.txt", "b\n", f"{PREFIX} add b")
        (repo_dir / "file.txt").write_bytes(b"local edit\n")

        assert run_command(state) == 0

        assert (repo_dir / "file.txt").read_bytes() == b"local edit\n"
        assert commit_count(repo_dir) == 3


def test_fallback_message_when_generation_disabled(state, repo_dir):
    commit_file(repo_dir, "a.txt", "a\n", f"{PREFIX} add a (1 added)")
    commit_file(repo_dir, "b.txt", "b\n", f"{PREFIX} add b (1 added)")

    assert run_command(state) == 0

    assert head_message(repo_dir) == (
        "add b\n\nIncludes the following changes:\n- add a"
    )


def test_generated_message(make_state, repo_dir, monkeypatch):
    state = make_state(git={"workdir": str(repo_dir)})
    commit_file(repo_dir, "a.txt", "a\n", f"{PREFIX} add a")
    commit_file(repo_dir, "b.txt", "b\n", f"{PREFIX} add b")

    async def generator(prompt):
        return "Add a and b"

    monkeypatch.setattr(
        squash_wip, "build_generator", lambda llm, prompts, task: generator
    )

    assert run_command(state) == 0
    assert head_message(repo_dir) == "Add a and b"


def test_preview_can_be_disabled(make_state, repo_dir, capsys):
    state = make_state(
        git={"workdir": str(repo_dir)},
        squash={"show_preview": False, "auto_generate_message": False},
    )
    commit_file(repo_dir, "a.txt", "a\n", f"{PREFIX} add a")

    assert run_command(state) == 0

    assert "Found" not in capsys.readouterr().out


def test_not_a_repository(make_state, tmp_path, git_env, capsys):
    plain = tmp_path / "plain"
    plain.mkdir()
    state = make_state(git={"workdir": str(plain)})

    assert run_command(state) == 1

    assert "is not a git repository" in capsys.readouterr().err
    assert not (plain / ".git").exists()


def test_failure_exit_code(state, repo_dir, capsys):
    commit_file(repo_dir, "a.txt", "a\n", f"{PREFIX} add a")
    commit_file(repo_dir, "b.txt", "b\n", f"{PREFIX} add b")
    hook = repo_dir / ".git" / "hooks" / "pre-commit"
    hook.parent.mkdir(exist_ok=True)
    hook.write_text("#!/bin/sh\nexit 1\n")
    hook.chmod(0o755)

    assert run_command(state, "feature X") == 1

    assert commit_count(repo_dir) == 3
    assert "squash failed" in capsys.readouterr().err


def test_preview_format(repo_dir):
    commit_file(repo_dir, "a.txt", "a\n", f"{PREFIX} add a\n\nbody")
    run = find_wip_run(Repository(repo_dir), PREFIX)

    preview = format_preview(run, PREFIX)

    assert f"1. [{run.commits[0].short_hash}]" in preview
    assert "   add a" in preview
    assert "body" not in preview


@pytest.mark.parametrize("count", [2, 5])
def test_commit_count_drops_by_n_minus_one(state, repo_dir, count):
    for i in range(count):
        commit_file(repo_dir, f"{i}.txt", f"{i}\n", f"{PREFIX} step {i}")
    before = commit_count(repo_dir)

    assert run_command(state) == 0

    assert commit_count(repo_dir) == before - (count - 1)
