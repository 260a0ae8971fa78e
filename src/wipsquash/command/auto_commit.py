"""auto-commit command - record the working tree as a WIP commit.

Meant to be run from an editor or agent hook after every turn. The
hook passes a JSON object on stdin; only the user's prompt is used.
"""

import json
import sys
from datetime import datetime
from typing import TextIO

from pydantic import BaseModel, ConfigDict, ValidationError

from wipsquash.command.base import ensure_repository
from wipsquash.core.log import logger
from wipsquash.git.repository import NoChangesError, Repository
from wipsquash.model.generation import Generated, generate_with_retries
from wipsquash.model.generator import build_generator, clean_output

DESCRIPTION_LIMIT = 50


class HookInput(BaseModel):
    """Hook payload. Unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    prompt: str | None = None
    user_prompt: str | None = None
    session_id: str | None = None

    @property
    def text(self) -> str:
        return (self.prompt or self.user_prompt or "").strip()


def read_hook_input(stream: TextIO) -> HookInput:
    """Parse the hook JSON from stream; anything unreadable is empty."""
    if stream.isatty():
        return HookInput()
    try:
        raw = stream.read()
    except OSError:
        return HookInput()
    if not raw.strip():
        return HookInput()
    try:
        return HookInput.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        logger.debug("Ignoring unreadable hook input", error=str(e))
        return HookInput()


def format_wip_message(text: str, prefix: str, limit: int) -> str:
    """First line of text, prefixed with the marker and cut to limit."""
    lines = text.strip().splitlines()
    line = lines[0].strip() if lines else ""
    if not line.startswith(prefix):
        line = f"{prefix} {line}".rstrip()
    if len(line) > limit:
        line = line[:max(limit - 3, 0)] + "..."
    return line


def fallback_wip_message(
    hook: HookInput, prefix: str, now: datetime | None = None
) -> str:
    """Message built from the user's prompt, or a timestamp."""
    text = hook.text
    if text:
        text = " ".join(text.split())
        if len(text) > DESCRIPTION_LIMIT:
            text = text[:DESCRIPTION_LIMIT] + "..."
        return f"{prefix} {text}"
    now = now or datetime.now()
    return f"{prefix} auto-save {now:%Y-%m-%d %H:%M}"


def build_prompt(hook: HookInput, changes: str, instructions: str = "") -> str:
    parts = []
    if instructions:
        parts.append(instructions.strip())
    if hook.text:
        parts.append(f"What the user asked for:\n{hook.text}")
    parts.append(f"Changes:\n{changes}")
    return "\n\n".join(parts)


class AutoCommitCommand(BaseModel):
    """Commit every current change as a WIP commit.

    Reads the hook payload from stdin, stages everything, and commits
    with a generated one-line message starting with the WIP marker.
    Problems never fail the calling hook unless safe_mode is off.
    """

    async def run_workflow(self, state: "State") -> int:
        """Run the auto-commit.

        Args:
            state: State instance

        Returns:
            Exit code (always 0 in safe mode)
        """
        auto = state.runtime.auto_commit
        try:
            return await self.commit(state, read_hook_input(sys.stdin))
        except Exception as e:
            auto.status = "failed"
            logger.error("auto-commit failed", error=str(e))
            print(f"wipsquash auto-commit: {e}", file=sys.stderr)
            return 0 if state.config.auto_commit.safe_mode else 1

    async def commit(self, state: "State", hook: HookInput) -> int:
        """Stage and commit; raises on git failure."""
        config = state.config
        auto = state.runtime.auto_commit

        if not config.auto_commit.enabled:
            auto.status = "skipped"
            return 0

        repo = Repository(config.git.workdir)
        if not ensure_repository(repo, quiet=True):
            auto.status = "skipped"
            return 0

        if not repo.status().has_changes:
            logger.info("Nothing to commit")
            auto.status = "skipped"
            return 0

        if config.git.auto_stage:
            repo.git("add", "-A")

        if not repo.status().has_staged_changes:
            logger.info("Nothing staged to commit")
            auto.status = "skipped"
            return 0

        auto.message = await self.compose_message(state, repo, hook)
        repo.git("commit", "-m", auto.message)
        auto.commit_hash = repo.head()
        auto.status = "complete"

        logger.info("Created WIP commit", commit=auto.commit_hash, message=auto.message)
        return 0

    async def compose_message(
        self, state: "State", repo: Repository, hook: HookInput
    ) -> str:
        """Generated message, or the fallback when generation is off
        or fails.
        """
        config = state.config
        prefix = config.wip.prefix
        limit = config.auto_commit.max_message_length

        summary = ""
        if config.auto_commit.include_file_summary:
            summary = repo.changed_files_summary()

        text = None
        if config.auto_commit.generate_message:
            text = await self.generate(state, repo, hook, summary)

        if not text:
            text = fallback_wip_message(hook, prefix)
            if summary:
                text = f"{text} ({summary})"

        return format_wip_message(text, prefix, limit)

    async def generate(
        self, state: "State", repo: Repository, hook: HookInput, summary: str
    ) -> str | None:
        config = state.config
        generator = build_generator(config.llm, config.prompts, "auto_commit")
        if generator is None:
            return None

        try:
            changes = repo.describe_changes()
        except NoChangesError:
            changes = f"Summary: {summary or 'unknown changes'}"

        async def cleaned(prompt: str) -> str:
            return clean_output(await generator(prompt), config.wip.prefix)

        instructions = config.prompts.get("auto_commit", {}).get("instructions", "")
        outcome = await generate_with_retries(
            cleaned,
            build_prompt(hook, changes, instructions),
            attempts=config.llm.attempts,
            timeout=config.llm.timeout,
            backoff=config.llm.retry_backoff,
        )
        if isinstance(outcome, Generated):
            return outcome.text

        logger.warn("Using fallback WIP message", outcome=repr(outcome))
        return None
