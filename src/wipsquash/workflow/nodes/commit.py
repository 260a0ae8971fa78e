"""Commit node - record the consolidated commit."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from wipsquash.core.config import State
from wipsquash.core.log import logger
from wipsquash.core.runner import CommandFailed
from wipsquash.workflow.nodes.restore import Restore


@dataclass
class Commit(BaseNode[State]):
    """Commit the staged result of the reset."""

    async def run(self, ctx: GraphRunContext[State]) -> Restore:
        """Commit with the synthesized message, kept byte for byte
        (no whitespace or comment cleanup).

        On failure the branch is put back where it was, so the WIP
        commits are not lost from it.
        """
        squash = ctx.state.runtime.squash
        repo = squash.repo

        try:
            repo.git("commit", "--cleanup=verbatim", "-m", squash.message)
        except CommandFailed as e:
            squash.error = f"Commit failed: {e.stderr or e}"
            self._put_back(squash)
            return Restore()

        squash.new_commit = repo.head()
        logger.info(
            "Created consolidated commit",
            commit=squash.new_commit,
            squashed=len(squash.wip_run),
        )
        return Restore()

    @staticmethod
    def _put_back(squash) -> None:
        """Best effort: point the branch at its original HEAD again."""
        if not squash.original_head:
            return
        repo = squash.repo
        try:
            if squash.wip_run.reset_target is None:
                repo.git("update-ref", "HEAD", squash.original_head)
            else:
                repo.git("reset", "--soft", squash.original_head)
            logger.info(
                "Restored branch after failed commit",
                head=squash.original_head[:7],
            )
        except CommandFailed as e:
            squash.error += (
                f"; could not move the branch back to "
                f"{squash.original_head} ({e.stderr or e})"
            )
