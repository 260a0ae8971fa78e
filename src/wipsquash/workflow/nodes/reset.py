"""Reset node - move the branch back to the base of the WIP run."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from wipsquash.core.config import State
from wipsquash.core.log import logger
from wipsquash.core.runner import CommandFailed
from wipsquash.workflow.nodes.commit import Commit
from wipsquash.workflow.nodes.restore import Restore


@dataclass
class Reset(BaseNode[State]):
    """Soft reset so the WIP run's combined changes end up staged."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> Commit | Restore:
        """Reset to the first parent of the oldest WIP commit.

        When the run starts at the root commit there is no parent;
        the branch ref is deleted instead, so the next commit is a
        new root with the same staged content.

        Returns:
            Commit: Reset done
            Restore: Reset failed; skip straight to cleanup
        """
        squash = ctx.state.runtime.squash
        repo = squash.repo
        target = squash.wip_run.reset_target

        try:
            if target is not None:
                repo.git("reset", "--soft", target)
                logger.info("Reset branch to WIP base", target=target[:7])
            elif repo.current_branch() is None:
                squash.error = (
                    "Cannot squash WIP commits that reach the root commit "
                    "on a detached HEAD"
                )
                return Restore()
            else:
                repo.git("update-ref", "-d", "HEAD")
                logger.info("Unset branch to recreate root commit")
        except CommandFailed as e:
            squash.error = f"Reset failed: {e.stderr or e}"
            return Restore()

        return Commit()
