"""Restore node - bring back shelved work and report the outcome."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from wipsquash.core.config import State
from wipsquash.core.result import ConsolidationResult


@dataclass
class Restore(BaseNode[State, None, ConsolidationResult]):
    """Pop the working tree snapshot. Reached on every path that
    got past Snapshot.
    """

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> End[ConsolidationResult]:
        squash = ctx.state.runtime.squash

        if squash.snapshot is not None:
            squash.warning = squash.snapshot.restore(squash.repo)
            squash.recovered = squash.warning is None

        success = squash.error is None
        squash.status = "complete" if success else "failed"

        return End(ConsolidationResult(
            success=success,
            new_commit_hash=squash.new_commit if success else None,
            recovered_working_tree=squash.recovered,
            error_detail=squash.error,
            warning=squash.warning,
            squashed_count=len(squash.wip_run) if success else 0,
        ))
