"""Commit message for a consolidated WIP run."""

from __future__ import annotations

import re

from wipsquash.core.config import Config
from wipsquash.core.log import logger
from wipsquash.git.scanner import strip_marker
from wipsquash.git.types import Commit, WipRun
from wipsquash.model.generation import (
    Generated,
    TextGenerator,
    generate_with_retries,
)
from wipsquash.model.generator import clean_output

DEFAULT_TITLE = "Consolidate WIP commits"
HEADLINE_LIMIT = 50

_TRAILING_NOTE = re.compile(r"\s*\([^)]+\)$")


def describe(commit: Commit, prefix: str) -> str:
    """One-line description of a WIP commit without marker or
    trailing parenthetical note such as a file summary.
    """
    subject = strip_marker(commit.message, prefix).split("\n", 1)[0]
    return _TRAILING_NOTE.sub("", subject).strip()


def fallback_message(run: WipRun, prefix: str) -> str:
    """Build a message from the run's own commit messages.

    The newest description becomes the headline; the others, without
    repeats, are listed beneath it. Never empty.
    """
    descriptions: list[str] = []
    for commit in run.commits:
        text = describe(commit, prefix)
        if text and text not in descriptions:
            descriptions.append(text)

    if not descriptions:
        return DEFAULT_TITLE

    headline = descriptions[0]
    if len(headline) > HEADLINE_LIMIT:
        headline = headline[:HEADLINE_LIMIT] + "..."

    details = descriptions[1:]
    if not details:
        return headline
    return (
        f"{headline}\n\nIncludes the following changes:\n"
        + "\n".join(f"- {text}" for text in details)
    )


def build_prompt(run: WipRun, prefix: str, instructions: str = "") -> str:
    """Prompt listing every commit of the run, newest first."""
    lines = []
    if instructions:
        lines.extend([instructions.strip(), ""])
    lines.append("WIP commits:")
    for index, commit in enumerate(run.commits, start=1):
        message = strip_marker(commit.message, prefix)
        lines.append(f"{index}. [{commit.short_hash}] {commit.timestamp}")
        lines.extend(f"   {line}" for line in message.splitlines() or [""])
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


class MessageSynthesizer:
    """Chooses the message for a consolidated commit.

    In order of preference: an explicit override, the single
    commit's own message, generated text, and finally a message
    assembled from the commit subjects.
    """

    def __init__(
        self,
        config: Config,
        generator: TextGenerator | None = None,
    ):
        self.config = config
        self.generator = generator

    @property
    def prefix(self) -> str:
        return self.config.wip.prefix

    async def synthesize(self, run: WipRun, override: str | None = None) -> str:
        if override and override.strip():
            return override

        if run.is_empty:
            return DEFAULT_TITLE

        if len(run) == 1:
            message = strip_marker(run.commits[0].message, self.prefix).strip()
            return message or DEFAULT_TITLE

        if not self.config.squash.auto_generate_message:
            return fallback_message(run, self.prefix)

        if self.generator is None:
            logger.warn("No message generator available, using fallback")
            return fallback_message(run, self.prefix)

        llm = self.config.llm
        instructions = self.config.prompts.get("synthesizer", {}).get(
            "instructions", ""
        )

        async def cleaned(prompt: str) -> str:
            return clean_output(await self.generator(prompt), self.prefix)

        outcome = await generate_with_retries(
            cleaned,
            build_prompt(run, self.prefix, instructions),
            attempts=llm.attempts,
            timeout=llm.timeout,
            backoff=llm.retry_backoff,
        )

        if isinstance(outcome, Generated):
            return outcome.text

        logger.warn(
            "Message generation failed, using fallback",
            outcome=repr(outcome),
        )
        return fallback_message(run, self.prefix)
