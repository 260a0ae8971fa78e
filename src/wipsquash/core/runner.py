"""Subprocess execution on top of invoke."""

import contextlib
import os
import platform
import shlex
from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from wipsquash.core.log import logger


class CommandFailed(Exception):
    """A command ran and exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"'{command}' exited with code {exit_code}{detail}")


class Runner(Context):
    """invoke.Context with quiet, non-interactive execution and a
    git helper. Output is always captured, never echoed.
    """

    def kill(self) -> None:
        # signal.SIGKILL doesn't exist on Windows; os.kill() there
        # accepts the bare number.
        if platform.system() != "Windows":
            super().kill()
            return
        pid = self.pid if self.using_pty else self.process.pid
        with contextlib.suppress(ProcessLookupError):
            os.kill(pid, 9)

    def execute(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: int | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> Result:
        """Run a shell command with stdin closed.

        Args:
            command: Shell command line
            cwd: Directory to run in (default: current directory)
            timeout: Seconds before the command is killed
            check: Raise invoke.UnexpectedExit on non-zero exit
            env: Variables added to the inherited environment

        Returns:
            invoke.Result. exited is -1 when the command timed out.
        """
        options = {"hide": True, "warn": not check, "in_stream": False}
        if timeout:
            options["timeout"] = timeout
        if env:
            options["env"] = env

        with self.cd(str(cwd)) if cwd else contextlib.nullcontext():
            try:
                return self.run(command, **options)
            except CommandTimedOut as e:
                logger.warn("Command timed out", command=command, timeout=timeout)
                e.result.exited = -1
                return e.result

    def git(
        self,
        *args: str,
        cwd: Path | None = None,
        silent: bool = False,
    ) -> str:
        """Run git with args and return its output.

        Args:
            *args: Arguments after 'git'
            cwd: Repository directory
            silent: The caller expects failures; don't log them

        Returns:
            stdout, right-stripped only so porcelain columns survive

        Raises:
            CommandFailed: git exited non-zero
        """
        command = shlex.join(["git", *args])
        logger.trace("Running git", command=command, cwd=str(cwd or "."))

        result = self.execute(command, cwd=cwd, check=False)
        if result.exited == 0:
            return result.stdout.rstrip()

        stderr = result.stderr.strip()
        if not silent:
            logger.error(
                "Git command failed",
                command=command,
                exit_code=result.exited,
                stderr=stderr,
            )
        raise CommandFailed(command, result.exited, stderr)
