"""Shelve and restore uncommitted work around a history rewrite."""

import os
import time

from pydantic import BaseModel

from wipsquash.core.log import logger
from wipsquash.core.runner import CommandFailed
from wipsquash.git.repository import Repository

LABEL_PREFIX = "wipsquash-autostash"


class SnapshotError(Exception):
    """The working tree could not be shelved."""


class WorkingTreeSnapshot(BaseModel):
    """Staged, unstaged and untracked changes held in a stash entry.

    The entry is found again by its label, since its stash@{n}
    position shifts if anything else is stashed meanwhile.
    """

    label: str
    ref: str

    @classmethod
    def capture(cls, repo: Repository) -> "WorkingTreeSnapshot | None":
        """Stash everything uncommitted, including untracked files.

        Returns:
            The snapshot, or None when there was nothing to stash

        Raises:
            SnapshotError: If git refused to stash
        """
        if not repo.status().has_changes:
            return None

        label = f"{LABEL_PREFIX}-{time.time_ns()}-{os.getpid()}"
        try:
            repo.git("stash", "push", "--include-untracked", "-m", label)
        except CommandFailed as e:
            raise SnapshotError(
                f"Could not stash uncommitted changes: {e.stderr or e}"
            ) from e

        ref = find_stash(repo, label)
        if ref is None:
            # git exits 0 with "No local changes to save"
            logger.debug("Nothing was stashed", label=label)
            return None

        logger.info("Stashed uncommitted changes", ref=ref, label=label)
        return cls(label=label, ref=ref)

    def restore(self, repo: Repository) -> str | None:
        """Pop the stash back, keeping the staged/unstaged split.

        Returns:
            None on success, otherwise a warning. On failure the
            stash entry is left in place for manual recovery.
        """
        ref = find_stash(repo, self.label) or self.ref
        try:
            repo.git("stash", "pop", "--index", ref, silent=True)
        except CommandFailed as e:
            logger.warn(
                "Could not restore uncommitted changes",
                ref=ref,
                stderr=e.stderr,
            )
            return (
                f"Uncommitted changes could not be restored automatically; "
                f"they are saved in {ref} ({self.label}). "
                f"Run 'git stash pop --index {ref}' after resolving."
            )

        logger.info("Restored uncommitted changes", ref=ref)
        return None


def find_stash(repo: Repository, label: str) -> str | None:
    """Return the stash@{n} ref whose message ends with label."""
    try:
        listing = repo.git("stash", "list", "--format=%gd%x1f%gs", silent=True)
    except CommandFailed:
        return None

    for line in listing.splitlines():
        ref, _, subject = line.partition("\x1f")
        if subject.endswith(label):
            return ref
    return None
