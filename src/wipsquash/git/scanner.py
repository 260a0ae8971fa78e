"""Locate the run of WIP commits at the tip of the current branch."""

from collections.abc import Iterable

from wipsquash.core.log import logger
from wipsquash.git.repository import Repository
from wipsquash.git.types import Commit, WipRun


def is_wip(message: str, prefix: str) -> bool:
    """A commit is WIP when its message starts with the marker."""
    return message.startswith(prefix)


def strip_marker(message: str, prefix: str) -> str:
    """Remove a leading marker and the whitespace after it."""
    if message.startswith(prefix):
        return message[len(prefix):].lstrip()
    return message


def scan(commits: Iterable[Commit], prefix: str, limit: int | None = None) -> WipRun:
    """Walk commits newest to oldest collecting the WIP run.

    Collection stops at the first non-WIP commit, which becomes the
    run's base. If the commits run out first the base is None, and
    when they ran out because the window was full the run is marked
    truncated.

    Args:
        commits: Commits newest first, as returned by `git log`
        prefix: WIP marker
        limit: Size of the window the commits were read with

    Returns:
        WipRun, empty when the newest commit is not WIP
    """
    wip: list[Commit] = []
    seen = 0
    for commit in commits:
        seen += 1
        if not is_wip(commit.message, prefix):
            return WipRun(commits=tuple(wip), base_commit=commit)
        wip.append(commit)

    truncated = bool(
        wip and limit is not None and seen >= limit and not wip[-1].is_root
    )
    return WipRun(commits=tuple(wip), truncated=truncated)


def find_wip_run(repo: Repository, prefix: str, scan_limit: int = 100) -> WipRun:
    """Read recent history and return the WIP run at HEAD.

    Only the newest scan_limit commits are examined; WIP commits
    older than that are never part of the run.
    """
    commits = repo.recent_commits(limit=scan_limit, first_parent=True)
    run = scan(commits, prefix, limit=scan_limit)

    if run.truncated:
        logger.warn(
            "Every commit in the scan window is WIP; older WIP commits "
            "will be left in place",
            scan_limit=scan_limit,
        )
    logger.debug(
        "Scanned history",
        examined=len(commits),
        wip_commits=len(run),
        base=run.base_commit.short_hash if run.base_commit else None,
    )
    return run
