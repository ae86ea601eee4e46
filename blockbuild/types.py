"""Shared type definitions for blockbuild.

This module contains dataclasses, enums, and constants shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

# Recorded for a module whose current commit could not be resolved and
# which has no prior record to carry forward.
UNKNOWN_COMMIT = "0" * 40


class BuildOutcome(str, Enum):
    """Per-module decision for a single run."""

    SKIPPED = "skipped"
    FORCED_REBUILT = "forced_rebuilt"
    CHANGED_REBUILT = "changed_rebuilt"
    FAILED = "failed"


@dataclass(frozen=True)
class ModuleDescriptor:
    """A configured module.

    Attributes:
        name: Module name, also its directory under the mods directory.
        project: Gradle project path relative to the module directory.
    """

    name: str
    project: str = "."


@dataclass(frozen=True)
class DirectiveSet:
    """Build directives resolved once per run.

    Attributes:
        skip: Skip the whole run.
        force_all: Rebuild every module regardless of commit hashes.
        build_line: Line naming modules to force-rebuild (substring match).
    """

    skip: bool = False
    force_all: bool = False
    build_line: str | None = None

    def forces(self, name: str) -> bool:
        """Return True if the module must be rebuilt even when unchanged."""
        if self.force_all:
            return True
        return self.build_line is not None and name in self.build_line

    def force_names(self, names: list[str]) -> set[str]:
        """Return the subset of module names forced by the build directive."""
        return {name for name in names if self.forces(name)}


@dataclass(frozen=True)
class CommitRecord:
    """A (module, commit hash) pair."""

    module: str
    commit: str

    def to_line(self) -> str:
        return f"{self.commit} {self.module}"


@dataclass(frozen=True)
class HashRecord:
    """A (path, sha256) pair for a staged file."""

    path: str
    sha256: str

    def to_line(self) -> str:
        return f"{self.sha256} {self.path}"


@dataclass(frozen=True)
class SignatureRecord:
    """A detached signature produced for a staged file."""

    path: Path
    signer: str
    signature_path: Path


@dataclass
class CommandResult:
    """Outcome of an external command.

    Attributes:
        command: The command as a shell-quoted string.
        exit_code: Process exit code.
        stdout: Captured standard output (stripped).
        stderr: Captured standard error (stripped).
    """

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


__all__ = [
    "UNKNOWN_COMMIT",
    "BuildOutcome",
    "CommandResult",
    "CommitRecord",
    "DirectiveSet",
    "HashRecord",
    "ModuleDescriptor",
    "SignatureRecord",
]
