"""squash-wip command - collapse WIP commits into one commit."""

import sys

from pydantic import BaseModel, Field

from wipsquash.command.base import ensure_repository
from wipsquash.core.log import logger
from wipsquash.core.result import ConsolidationResult
from wipsquash.git.repository import Repository
from wipsquash.git.scanner import find_wip_run, strip_marker
from wipsquash.git.types import WipRun
from wipsquash.model.generator import build_generator
from wipsquash.model.synthesizer import MessageSynthesizer
from wipsquash.workflow.graph import consolidate

RULE = "─" * 60


def format_preview(run: WipRun, prefix: str) -> str:
    """List the commits about to be squashed, newest first."""
    lines = [f"Found {len(run)} WIP commit(s):", RULE]
    for index, commit in enumerate(run.commits, start=1):
        lines.append(f"{index}. [{commit.short_hash}] {commit.timestamp}")
        lines.append(f"   {strip_marker(commit.subject, prefix)}")
    lines.append(RULE)
    if run.truncated:
        lines.append(
            "Note: every commit in the scan window is WIP; "
            "older WIP commits will stay as they are."
        )
    lines.append("They will be squashed into 1 commit.")
    return "\n".join(lines)


class SquashWipCommand(BaseModel):
    """Squash the WIP commits at the tip of the current branch into
    a single commit.

    Uncommitted changes are stashed first and restored afterwards,
    keeping what was staged staged. Without --message the commit
    message is generated from the WIP messages.
    """

    message: str | None = Field(
        default=None,
        description="Use this commit message instead of generating one",
    )

    async def run_workflow(self, state: "State") -> int:
        """Run the squash.

        Args:
            state: State instance

        Returns:
            Exit code (0=success or nothing to do, 1=failure)
        """
        config = state.config
        prefix = config.wip.prefix
        repo = Repository(config.git.workdir)

        if not ensure_repository(repo):
            return 1

        run = find_wip_run(repo, prefix, config.wip.scan_limit)
        if run.is_empty:
            print(f"No {prefix} commits to squash.")
            return 0

        if config.squash.show_preview:
            print(format_preview(run, prefix))

        generator = None
        if (
            len(run) > 1
            and not (self.message and self.message.strip())
            and config.squash.auto_generate_message
        ):
            generator = build_generator(config.llm, config.prompts, "synthesizer")

        message = await MessageSynthesizer(config, generator).synthesize(
            run, self.message
        )
        logger.info("Commit message chosen", message=message)

        count_before = repo.commit_count()
        result = await consolidate(state, run, message, repo)

        self.report(result, message, debug=config.debug)
        if result.success:
            verify(repo, result, count_before)

        return 0 if result.success else 1

    @staticmethod
    def report(result: ConsolidationResult, message: str, debug: bool = False):
        """Print the outcome for the user."""
        if result.success:
            print(
                f"Squashed {result.squashed_count} commit(s) into "
                f"{result.new_commit_hash[:7]}: {message.splitlines()[0]}"
            )
        else:
            print(f"Error: squash failed: {result.error_detail}", file=sys.stderr)
            if not debug:
                print("Run with --config.debug for details.", file=sys.stderr)

        if result.warning:
            print(f"Warning: {result.warning}", file=sys.stderr)


def verify(
    repo: Repository, result: ConsolidationResult, count_before: int
) -> bool:
    """Check the branch now ends in the new commit with
    squashed_count - 1 fewer commits. Mismatches are warnings.
    """
    newest = repo.recent_commits(limit=1)
    if not newest or newest[0].hash != result.new_commit_hash:
        logger.warn("HEAD is not the consolidated commit after squashing")
        return False

    expected = count_before - (result.squashed_count - 1)
    count_after = repo.commit_count()
    if count_before and count_after != expected:
        logger.warn(
            "Unexpected commit count after squashing",
            expected=expected,
            actual=count_after,
        )
        return False

    return True
