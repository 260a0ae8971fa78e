"""Helpers shared by commands."""

import sys

from wipsquash.core.log import logger
from wipsquash.core.runner import CommandFailed
from wipsquash.git.repository import Repository


def confirm(question: str) -> bool:
    """Ask a yes/no question on the terminal; anything but yes is no."""
    try:
        answer = input(f"{question} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def ensure_repository(repo: Repository, quiet: bool = False) -> bool:
    """Make sure repo.workdir is a git repository.

    In an interactive terminal the user may choose to run `git init`.
    Otherwise the answer is simply no.

    Args:
        repo: Repository to check
        quiet: Don't print anything when declining (hook mode)

    Returns:
        True if a repository is available
    """
    if repo.is_repository():
        return True

    logger.info("Not a git repository", workdir=str(repo.workdir))

    if sys.stdin.isatty() and sys.stdout.isatty():
        if confirm(f"{repo.workdir} is not a git repository. Initialize one?"):
            try:
                repo.init()
            except CommandFailed as e:
                print(f"Error: git init failed: {e.stderr or e}", file=sys.stderr)
                return False
            print(f"Initialized empty git repository in {repo.workdir}")
            return True

    if not quiet:
        print(
            f"Error: {repo.workdir} is not a git repository",
            file=sys.stderr,
        )
    return False
