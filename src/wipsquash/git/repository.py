"""Read-side view of a git repository.

Every query here is best-effort: a git failure degrades to an empty
or falsy answer instead of raising, so callers can always continue.
"""

import re
from pathlib import Path

from wipsquash.core.log import logger
from wipsquash.core.runner import CommandFailed, Runner
from wipsquash.git.types import Commit, DiffStat, RepoStatus

# Field and record separators for `git log` output
_FS = "\x1f"
_RS = "\x1e"
_LOG_FORMAT = "--format=%H%x1f%P%x1f%aI%x1f%B%x1e"

STAGED_CODES = frozenset("AMDRC")

DESCRIBE_LIMIT = 4000

_SHORTSTAT = re.compile(
    r"(\d+) files? changed"
    r"(?:, (\d+) insertions?\(\+\))?"
    r"(?:, (\d+) deletions?\(-\))?"
)


class NoChangesError(Exception):
    """There is nothing uncommitted to describe."""


def parse_log(output: str) -> list[Commit]:
    """Parse records written with _LOG_FORMAT, newest first."""
    commits = []
    for record in output.split(_RS):
        record = record.lstrip("\n")
        if not record:
            continue
        fields = record.split(_FS, 3)
        if len(fields) != 4:
            logger.warn("Skipping unparseable log record", record=record[:80])
            continue
        hash_, parents, timestamp, message = fields
        commits.append(Commit(
            hash=hash_.strip(),
            message=message.strip(),
            timestamp=timestamp.strip(),
            parents=tuple(parents.split()),
        ))
    return commits


def parse_status(porcelain: str) -> RepoStatus:
    """Parse `git status --porcelain` (v1) output.

    Column one is the index, column two the working tree.
    """
    staged = unstaged = False
    for line in porcelain.splitlines():
        if len(line) < 2:
            continue
        if line.startswith("??"):
            unstaged = True
            continue
        if line[0] in STAGED_CODES:
            staged = True
        if line[1] != " ":
            unstaged = True
    return RepoStatus(
        has_changes=bool(porcelain.strip()),
        has_staged_changes=staged,
        has_unstaged_changes=unstaged,
        porcelain=porcelain,
    )


class Repository:
    """Queries against the repository rooted at (or above) workdir."""

    def __init__(self, workdir: Path, runner: Runner | None = None):
        self.workdir = Path(workdir)
        self.runner = runner or Runner()

    def git(self, *args: str, silent: bool = False) -> str:
        """Run git in this repository. Raises CommandFailed."""
        return self.runner.git(*args, cwd=self.workdir, silent=silent)

    def is_repository(self) -> bool:
        if not self.workdir.is_dir():
            return False
        try:
            self.git("rev-parse", "--git-dir", silent=True)
            return True
        except CommandFailed:
            return False

    def init(self) -> None:
        """Create a repository in workdir. Raises CommandFailed."""
        self.workdir.mkdir(parents=True, exist_ok=True)
        self.git("init")
        logger.info("Initialized git repository", workdir=str(self.workdir))

    def status(self) -> RepoStatus:
        """Working tree status; all-false if git fails."""
        try:
            porcelain = self.git("status", "--porcelain", silent=True)
        except CommandFailed as e:
            logger.debug("git status failed", error=str(e))
            return RepoStatus()
        return parse_status(porcelain)

    def recent_commits(
        self,
        limit: int = 10,
        pattern: str | None = None,
        first_parent: bool = False,
    ) -> list[Commit]:
        """Up to limit commits reachable from HEAD, newest first.

        Args:
            limit: Maximum number of commits
            pattern: Only commits whose message matches (git --grep)
            first_parent: Follow only first parents, so merged side
                branches are not interleaved

        Returns:
            Commits, or an empty list on any error (including a
            repository without commits)
        """
        args = ["log", _LOG_FORMAT, "-n", str(limit)]
        if first_parent:
            args.append("--first-parent")
        if pattern:
            args.append(f"--grep={pattern}")
        try:
            output = self.git(*args, silent=True)
        except CommandFailed as e:
            logger.debug("git log failed", error=str(e))
            return []
        return parse_log(output)

    def head(self) -> str | None:
        try:
            return self.git("rev-parse", "--verify", "HEAD", silent=True)
        except CommandFailed:
            return None

    def current_branch(self) -> str | None:
        """Branch name, or None when HEAD is detached or unreadable."""
        try:
            branch = self.git("symbolic-ref", "--short", "-q", "HEAD", silent=True)
        except CommandFailed:
            return None
        return branch or None

    def commit_count(self) -> int:
        """Number of commits reachable from HEAD; 0 if unknown."""
        try:
            return int(self.git("rev-list", "--count", "HEAD", silent=True))
        except (CommandFailed, ValueError):
            return 0

    def changed_files(self, staged: bool = False) -> list[str]:
        """Paths with unstaged (or staged) modifications."""
        args = ["diff", "--name-only"]
        if staged:
            args.append("--cached")
        try:
            output = self.git(*args, silent=True)
        except CommandFailed:
            return []
        return [line for line in output.splitlines() if line.strip()]

    def diff_stat(self, staged: bool = False) -> DiffStat:
        """Totals for unstaged (or staged) changes."""
        args = ["diff", "--shortstat"]
        if staged:
            args.append("--cached")
        try:
            summary = self.git(*args, silent=True).strip()
        except CommandFailed:
            return DiffStat()

        match = _SHORTSTAT.search(summary)
        if not match:
            return DiffStat(summary=summary)
        files, insertions, deletions = match.groups()
        return DiffStat(
            files=int(files),
            insertions=int(insertions or 0),
            deletions=int(deletions or 0),
            summary=summary,
        )

    def changed_files_summary(self) -> str:
        """Counts like "2 added, 1 modified, 1 deleted".

        Zero counts are left out. Untracked files count as added.
        Falls back to "N files changed" when status can't be read.

        Returns:
            The summary, or "" when nothing is known. An empty
            string means unknown, not clean.
        """
        try:
            porcelain = self.git("status", "--porcelain", silent=True)
        except CommandFailed:
            files = self.changed_files()
            return f"{len(files)} files changed" if files else ""

        added = modified = deleted = 0
        for line in porcelain.splitlines():
            if len(line) < 2:
                continue
            codes = line[:2]
            if codes == "??" or "A" in codes:
                added += 1
            elif "D" in codes:
                deleted += 1
            else:
                modified += 1

        parts = []
        if added:
            parts.append(f"{added} added")
        if modified:
            parts.append(f"{modified} modified")
        if deleted:
            parts.append(f"{deleted} deleted")
        return ", ".join(parts)

    def describe_changes(self) -> str:
        """Plain-text description of uncommitted work for an LLM.

        Raises:
            NoChangesError: If the working tree is clean
        """
        status = self.status()
        if not status.has_changes:
            raise NoChangesError("No uncommitted changes")

        sections = [f"Branch: {self.current_branch() or '(detached)'}"]
        sections.append(f"Status:\n{status.porcelain}")

        for label, staged in (("Staged", True), ("Unstaged", False)):
            files = self.changed_files(staged=staged)
            if files:
                stat = self.diff_stat(staged=staged)
                sections.append(
                    f"{label} files ({stat.summary or len(files)}):\n"
                    + "\n".join(f"  {path}" for path in files)
                )

        description = "\n\n".join(sections)
        if len(description) > DESCRIBE_LIMIT:
            description = description[:DESCRIBE_LIMIT] + "\n... (truncated)"
        return description
