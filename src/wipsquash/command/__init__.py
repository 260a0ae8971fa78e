"""Command implementations for the CLI."""

from wipsquash.command.auto_commit import AutoCommitCommand
from wipsquash.command.squash_wip import SquashWipCommand

__all__ = ["AutoCommitCommand", "SquashWipCommand"]
