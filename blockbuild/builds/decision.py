"""Rebuild decisions.

This module handles:
- Parsing the previous run's commit manifest
- The pure per-module decision from (current, prior, forced)
- Planning every configured module for a run

A module is skipped only when its current commit equals the last recorded
commit and no directive forces it. A module whose current commit cannot be
resolved is excluded from the run (outcome FAILED) without aborting it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from blockbuild.errors import VcsError
from blockbuild.types import BuildOutcome, CommitRecord, DirectiveSet, ModuleDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModulePlan:
    """Decision for one module.

    Attributes:
        module: The configured module.
        current_commit: HEAD commit, None when it could not be resolved.
        prior_commit: Commit recorded by the previous run, if unique.
        outcome: Decision for this run.
    """

    module: ModuleDescriptor
    current_commit: str | None
    prior_commit: str | None
    outcome: BuildOutcome

    @property
    def needs_build(self) -> bool:
        return self.outcome in (
            BuildOutcome.FORCED_REBUILT,
            BuildOutcome.CHANGED_REBUILT,
        )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "module": self.module.name,
            "project": self.module.project,
            "current_commit": self.current_commit,
            "prior_commit": self.prior_commit,
            "outcome": self.outcome.value,
        }


def parse_commit_manifest(content: str | None) -> list[CommitRecord]:
    """Parse `<commit> <module>` lines.

    Blank and malformed lines are ignored.
    """
    records: list[CommitRecord] = []
    if not content:
        return records
    for line in content.splitlines():
        parts = line.strip().split(maxsplit=1)
        if len(parts) != 2:
            continue
        commit, module = parts
        records.append(CommitRecord(module=module.strip(), commit=commit))
    return records


def find_prior_commit(records: Sequence[CommitRecord], name: str) -> str | None:
    """Return the recorded commit for a module.

    None if the module has no record or more than one.
    """
    matches = [r.commit for r in records if r.module == name]
    if len(matches) != 1:
        if matches:
            logger.warning(
                "Ignoring %d conflicting prior records for %s", len(matches), name
            )
        return None
    return matches[0]


def decide(current: str, prior: str | None, forced: bool) -> BuildOutcome:
    """Decide whether a module is rebuilt.

    Args:
        current: Current commit hash.
        prior: Commit recorded by the previous run (None if none).
        forced: Whether a force or build directive applies to the module.

    Returns:
        SKIPPED, FORCED_REBUILT or CHANGED_REBUILT.
    """
    if prior is not None and current == prior:
        return BuildOutcome.FORCED_REBUILT if forced else BuildOutcome.SKIPPED
    return BuildOutcome.CHANGED_REBUILT


def plan_builds(
    modules: Sequence[ModuleDescriptor],
    commit_lookup: Callable[[ModuleDescriptor], str],
    prior_commits: str | None,
    directives: DirectiveSet,
) -> list[ModulePlan]:
    """Plan every configured module in order.

    Args:
        modules: Configured modules.
        commit_lookup: Returns the module's current commit, raising
            VcsError when it cannot be resolved.
        prior_commits: Previous commit manifest text (None on first run).
        directives: Resolved directive set.

    Returns:
        One ModulePlan per module.
    """
    records = parse_commit_manifest(prior_commits)
    plans: list[ModulePlan] = []

    forced = directives.force_names([m.name for m in modules])
    if forced and not directives.force_all:
        logger.info("Forcing rebuild of: %s", ", ".join(sorted(forced)))

    for module in modules:
        prior = find_prior_commit(records, module.name)
        try:
            current = commit_lookup(module)
        except VcsError as e:
            logger.warning("Failed to get commit hash for %s: %s", module.name, e)
            plans.append(
                ModulePlan(
                    module=module,
                    current_commit=None,
                    prior_commit=prior,
                    outcome=BuildOutcome.FAILED,
                )
            )
            continue

        outcome = decide(current, prior, directives.forces(module.name))
        if outcome is BuildOutcome.SKIPPED:
            logger.info("Skipping %s as commit hash is unchanged", module.name)
        elif outcome is BuildOutcome.FORCED_REBUILT:
            logger.info(
                "%s's commit is unchanged, but force building anyways", module.name
            )
        else:
            logger.info(
                "%s changed (%s -> %s)",
                module.name,
                prior[:12] if prior else "none",
                current[:12],
            )

        plans.append(
            ModulePlan(
                module=module,
                current_commit=current,
                prior_commit=prior,
                outcome=outcome,
            )
        )

    return plans


__all__ = [
    "ModulePlan",
    "decide",
    "find_prior_commit",
    "parse_commit_manifest",
    "plan_builds",
]
