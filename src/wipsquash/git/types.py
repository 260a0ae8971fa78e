"""Value types read from git."""

from pydantic import BaseModel, ConfigDict, Field


class Commit(BaseModel):
    """A commit as read from `git log`."""

    model_config = ConfigDict(frozen=True)

    hash: str
    message: str
    timestamp: str = Field(description="Author date, ISO-8601")
    parents: tuple[str, ...] = ()

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]

    @property
    def is_root(self) -> bool:
        return not self.parents


class WipRun(BaseModel):
    """Contiguous WIP commits at the tip of a branch, newest first.

    The oldest commit's first parent is base_commit. base_commit is
    None when the run reaches the root commit or runs past the scan
    window; truncated tells the two apart.
    """

    model_config = ConfigDict(frozen=True)

    commits: tuple[Commit, ...] = ()
    base_commit: Commit | None = None
    truncated: bool = False

    def __len__(self) -> int:
        return len(self.commits)

    @property
    def is_empty(self) -> bool:
        return not self.commits

    @property
    def newest(self) -> Commit | None:
        return self.commits[0] if self.commits else None

    @property
    def oldest(self) -> Commit | None:
        return self.commits[-1] if self.commits else None

    @property
    def reset_target(self) -> str | None:
        """First parent of the oldest commit; None at the root."""
        oldest = self.oldest
        if oldest is None or oldest.is_root:
            return None
        return oldest.parents[0]


class RepoStatus(BaseModel):
    """Working tree state parsed from `git status --porcelain`."""

    has_changes: bool = False
    has_staged_changes: bool = False
    has_unstaged_changes: bool = False
    porcelain: str = ""


class DiffStat(BaseModel):
    """Totals from `git diff --shortstat`."""

    files: int = 0
    insertions: int = 0
    deletions: int = 0
    summary: str = ""
