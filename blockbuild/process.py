"""External process gateway.

Every external tool (git, the Gradle wrapper, mvn, gpg) is invoked through
CommandRunner.run(). The runner captures exit status, stdout and stderr;
callers decide whether a non-zero exit is fatal and use require_success()
to raise uniformly when it is.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TypeVar

from blockbuild.errors import BlockbuildError, ProcessError
from blockbuild.types import CommandResult

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BlockbuildError)


class CommandRunner:
    """Runs external commands sequentially.

    Attributes:
        timeout: Timeout in seconds applied to every command (None = none).
        env_override: Environment variables merged over os.environ.
    """

    def __init__(
        self,
        timeout: int | None = None,
        env_override: dict[str, str] | None = None,
    ) -> None:
        self.timeout = timeout
        self.env_override = env_override or {}

    def run(
        self,
        args: Sequence[str],
        cwd: Path | None = None,
        echo: bool = False,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            args: Command and arguments.
            cwd: Working directory (current directory if None).
            echo: Mirror captured output to this process's stdout/stderr.

        Returns:
            CommandResult with exit code and captured output.

        Raises:
            ProcessError: If the command cannot be started or times out.
        """
        cmd_str = shlex.join(args)
        logger.debug("Executing: %s (cwd=%s)", cmd_str, cwd or ".")

        env: dict[str, str] | None = None
        if self.env_override:
            env = dict(os.environ)
            env.update(self.env_override)

        try:
            completed = subprocess.run(
                list(args),
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessError(
                f"Command timed out after {self.timeout} seconds: {cmd_str}",
                code="timeout",
            ) from e
        except OSError as e:
            raise ProcessError(
                f"Failed to execute {cmd_str}: {e}",
                code="execution_error",
            ) from e

        if echo:
            if completed.stdout:
                sys.stdout.write(completed.stdout)
            if completed.stderr:
                sys.stderr.write(completed.stderr)

        result = CommandResult(
            command=cmd_str,
            exit_code=completed.returncode,
            stdout=completed.stdout.strip(),
            stderr=completed.stderr.strip(),
        )
        if not result.ok:
            logger.debug("Command exited with %d: %s", result.exit_code, cmd_str)
        return result


def require_success(
    result: CommandResult,
    message: str,
    error_cls: type[E],
) -> CommandResult:
    """Raise error_cls with message if the command failed.

    Args:
        result: Result of the command.
        message: Error description used when the command failed.
        error_cls: BlockbuildError subclass to raise.

    Returns:
        The result unchanged when it succeeded.

    Raises:
        error_cls: If the command exited non-zero.
    """
    if result.ok:
        return result
    detail = result.stderr or result.stdout
    if detail:
        logger.error("%s\n%s", message, detail)
    raise error_cls(f"{message} (exit code {result.exit_code})")


__all__ = ["CommandRunner", "require_success"]
