"""Result types for consolidation."""

from pydantic import BaseModel


class ConsolidationResult(BaseModel):
    """Outcome of collapsing a WIP run into one commit.

    A run with nothing to squash is a successful result with no new
    commit. A warning never turns success into failure.
    """

    success: bool
    new_commit_hash: str | None = None
    recovered_working_tree: bool = True
    error_detail: str | None = None
    warning: str | None = None
    squashed_count: int = 0

    @property
    def is_noop(self) -> bool:
        return self.success and self.new_commit_hash is None
