"""Git queries used by the pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

from blockbuild.errors import VcsError
from blockbuild.process import CommandRunner, require_success

logger = logging.getLogger(__name__)


def head_commit(runner: CommandRunner, repo_dir: Path) -> str:
    """Return the HEAD commit hash of a repository.

    Raises:
        VcsError: If git fails or prints nothing.
    """
    result = runner.run(["git", "rev-parse", "HEAD"], cwd=repo_dir)
    require_success(result, f"Failed to get commit hash for {repo_dir}", VcsError)
    if not result.stdout:
        raise VcsError(f"git rev-parse returned no commit for {repo_dir}")
    return result.stdout.splitlines()[0].strip()


def latest_commit_message(runner: CommandRunner, repo_dir: Path) -> str:
    """Return the full message of the latest commit.

    Raises:
        VcsError: If git fails.
    """
    result = runner.run(["git", "log", "-1", "--pretty=%B"], cwd=repo_dir)
    require_success(result, "Failed to get commit description", VcsError)
    return result.stdout


__all__ = ["head_commit", "latest_commit_message"]
