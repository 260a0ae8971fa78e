"""Graph workflow definition."""

from pydantic_graph import Graph

from wipsquash.core.config import SquashState, State
from wipsquash.core.log import logger
from wipsquash.core.result import ConsolidationResult
from wipsquash.git.repository import Repository
from wipsquash.git.types import WipRun


def create_workflow():
    """Create the consolidation graph.

    Snapshot → Reset → Commit → Restore → End

    A failed Snapshot ends immediately; a failed Reset or Commit
    skips ahead to Restore, so shelved work always comes back.

    Returns:
        Graph workflow with State as state_type
    """
    logger.debug("Building workflow graph")

    from wipsquash.workflow.nodes import Commit, Reset, Restore, Snapshot

    return Graph(
        nodes=(Snapshot, Reset, Commit, Restore),
        state_type=State,
    )


async def consolidate(
    state: State,
    run: WipRun,
    message: str,
    repo: Repository | None = None,
) -> ConsolidationResult:
    """Collapse run into one commit with message.

    An empty run is a successful no-op that leaves the repository
    untouched.

    Args:
        state: Application state; runtime.squash is reset and filled in
        run: WIP run found at HEAD
        message: Message for the new commit
        repo: Repository to rewrite (default: config.git.workdir)

    Returns:
        ConsolidationResult describing what happened
    """
    if run.is_empty:
        return ConsolidationResult(success=True)

    from wipsquash.workflow.nodes import Snapshot

    state.runtime.squash = SquashState(
        repo=repo or Repository(state.config.git.workdir),
        wip_run=run,
        message=message,
    )

    with logger.span("Consolidating WIP commits", count=len(run)):
        result = await create_workflow().run(Snapshot(), state=state)

    return result.output
