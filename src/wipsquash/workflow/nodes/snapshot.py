"""Snapshot node - shelve uncommitted work before rewriting history."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from wipsquash.core.config import State
from wipsquash.core.log import logger
from wipsquash.core.result import ConsolidationResult
from wipsquash.git.snapshot import SnapshotError, WorkingTreeSnapshot
from wipsquash.workflow.nodes.reset import Reset


@dataclass
class Snapshot(BaseNode[State, None, ConsolidationResult]):
    """Stash staged, unstaged and untracked changes."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> Reset | End[ConsolidationResult]:
        """Shelve the working tree, if there is anything to shelve.

        Returns:
            Reset: Working tree is clean or safely stashed
            End: Stashing failed; nothing has been changed
        """
        squash = ctx.state.runtime.squash
        squash.status = "running"
        squash.original_head = squash.repo.head()

        try:
            squash.snapshot = WorkingTreeSnapshot.capture(squash.repo)
        except SnapshotError as e:
            logger.error("Could not shelve working tree", error=str(e))
            squash.error = str(e)
            squash.status = "failed"
            return End(ConsolidationResult(
                success=False,
                error_detail=str(e),
            ))

        return Reset()
