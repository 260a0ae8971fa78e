#!/usr/bin/env python3
"""wipsquash CLI - auto-commit WIP snapshots and squash them later."""

import asyncio
import sys
import traceback

from pydantic import Field
from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from wipsquash.command.auto_commit import AutoCommitCommand
from wipsquash.command.squash_wip import SquashWipCommand
from wipsquash.core.config import State
from wipsquash.core.log import logger


class CliState(State):
    """Keep work-in-progress commits while pairing with an AI
    assistant, then squash them into one clean commit.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.wip.prefix value)
    2. Environment variables
       (WIPSQUASH_CONFIG__WIP__PREFIX=value)
    3. .env file for secrets
    4. --include files, ./wipsquash.yaml, user config, package defaults
    """

    squash_wip: CliSubCommand[SquashWipCommand] = Field(alias="squash-wip")
    auto_commit: CliSubCommand[AutoCommitCommand] = Field(alias="auto-commit")

    def cli_cmd(self):
        """Dispatch to the active subcommand, or show help if none
        was given."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Closing the logger flushes file sinks before exit
        with logger:
            try:
                exit_code = asyncio.run(subcommand.run_workflow(self))
            except KeyboardInterrupt:
                print("Interrupted", file=sys.stderr)
                exit_code = 130
            except Exception as e:
                logger.error("Command failed", error=str(e))
                print(f"Error: {e}", file=sys.stderr)
                if self.config.debug:
                    traceback.print_exc()
                exit_code = 1
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
