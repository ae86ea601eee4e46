"""Build directive resolution.

Directives are control markers placed in the latest commit message of the
orchestrator repository:

    [blockbuild:skip]    skip the whole run (successful exit)
    [blockbuild:force]   rebuild every module
    [blockbuild:build]   rebuild every module whose name appears on that line

For each directive the first commit-message line containing the marker is
the directive value. When no line matches, the environment override
(BLOCKBUILD_DIRECTIVE_<NAME>) is used; otherwise the directive is absent.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from blockbuild.types import DirectiveSet

logger = logging.getLogger(__name__)

DIRECTIVE_MARKERS: dict[str, str] = {
    "build": "[blockbuild:build]",
    "force": "[blockbuild:force]",
    "skip": "[blockbuild:skip]",
}


def find_directive_line(commit_message: str, marker: str) -> str | None:
    """Return the first line of commit_message containing marker."""
    for line in commit_message.splitlines():
        if marker in line:
            return line
    return None


def resolve_directive_lines(
    commit_message: str,
    overrides: Mapping[str, str | None] | None = None,
) -> dict[str, str | None]:
    """Resolve the raw value of every directive.

    Args:
        commit_message: Latest commit message (multi-line).
        overrides: Environment override values keyed by directive name.
            Empty or whitespace-only values count as absent.

    Returns:
        Mapping of directive name to its line, or None when absent.
    """
    overrides = overrides or {}
    lines: dict[str, str | None] = {}
    for name, marker in DIRECTIVE_MARKERS.items():
        line = find_directive_line(commit_message, marker)
        if line is None:
            override = overrides.get(name)
            if override is not None and override.strip():
                logger.debug("Directive %s taken from environment", name)
                line = override
        lines[name] = line
    return lines


def resolve_directives(
    commit_message: str,
    overrides: Mapping[str, str | None] | None = None,
) -> DirectiveSet:
    """Resolve the directive set for a run."""
    lines = resolve_directive_lines(commit_message, overrides)
    directives = DirectiveSet(
        skip=lines["skip"] is not None,
        force_all=lines["force"] is not None,
        build_line=lines["build"],
    )
    if directives.skip:
        logger.info("Commit was set to skip all builds")
    elif directives.force_all:
        logger.info("Commit was set to force all builds")
    if directives.build_line is not None:
        logger.info("Build directive: %s", directives.build_line.strip())
    return directives


__all__ = [
    "DIRECTIVE_MARKERS",
    "find_directive_line",
    "resolve_directive_lines",
    "resolve_directives",
]
