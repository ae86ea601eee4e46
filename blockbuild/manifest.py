"""Manifest generation.

This module handles:
- Removing the previous run's own manifest, key and bundle files from the
  staging area
- Hashing every staged file into hashes.txt
- Recording every configured module's commit into commits.txt
- Rendering the human-readable run summary (info.txt)

hashes.txt is both the change-detection artifact for the next run and the
integrity manifest for consumers.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from blockbuild.builds.decision import ModulePlan
from blockbuild.types import UNKNOWN_COMMIT, CommitRecord, HashRecord

logger = logging.getLogger(__name__)

HASHES_FILE = "hashes.txt"
COMMITS_FILE = "commits.txt"
INFO_FILE = "info.txt"

# Prefixes of top-level staging entries owned by the previous run
MANIFEST_PREFIXES = ("hashes.", "commits.", "info.", "out.tar.gz")
KEYS_DIR = "gpg"

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def clean_previous_outputs(staging_dir: Path) -> list[str]:
    """Remove the previous run's manifests, signatures, keys and bundle.

    Args:
        staging_dir: Staging root.

    Returns:
        Names of removed entries.
    """
    logger.info("Removing previous build artifacts...")
    removed: list[str] = []
    if not staging_dir.exists():
        return removed

    for entry in sorted(staging_dir.iterdir()):
        if entry.name == KEYS_DIR or entry.name.startswith(MANIFEST_PREFIXES):
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed.append(entry.name)

    if removed:
        logger.debug("Removed %s", ", ".join(removed))
    return removed


def list_files(root: Path) -> list[Path]:
    """List every file below root, depth-first in name order."""
    files: list[Path] = []
    for entry in sorted(root.iterdir()):
        if entry.is_dir():
            files.extend(list_files(entry))
        else:
            files.append(entry)
    return files


def build_hash_manifest(staging_dir: Path) -> list[HashRecord]:
    """Hash every file currently in the staging area.

    Paths are posix paths relative to the staging root.
    """
    logger.info("Generating hash file...")
    return [
        HashRecord(
            path=path.relative_to(staging_dir).as_posix(),
            sha256=compute_file_hash(path),
        )
        for path in list_files(staging_dir)
    ]


def build_commit_manifest(plans: Sequence[ModulePlan]) -> list[CommitRecord]:
    """Record one commit per configured module.

    Uses the freshly resolved commit; a module whose commit could not be
    resolved keeps its prior record, or UNKNOWN_COMMIT without one.
    """
    logger.info("Generating commit file...")
    records: list[CommitRecord] = []
    for plan in plans:
        commit = plan.current_commit or plan.prior_commit or UNKNOWN_COMMIT
        records.append(CommitRecord(module=plan.module.name, commit=commit))
    return records


def parse_hash_manifest(content: str | None) -> list[HashRecord]:
    """Parse `<sha256> <path>` lines."""
    records: list[HashRecord] = []
    if not content:
        return records
    for line in content.splitlines():
        parts = line.strip().split(maxsplit=1)
        if len(parts) == 2:
            records.append(HashRecord(path=parts[1].strip(), sha256=parts[0]))
    return records


def write_lines(path: Path, lines: Sequence[str]) -> Path:
    """Write newline-joined lines without a trailing newline."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Wrote %s (%d entries)", path.name, len(lines))
    return path


def write_manifests(
    staging_dir: Path,
    plans: Sequence[ModulePlan],
) -> tuple[list[HashRecord], list[CommitRecord]]:
    """Generate and write hashes.txt and commits.txt.

    The hash manifest is computed before either file is written, so it
    never lists the manifests themselves.

    Returns:
        Tuple of (hash records, commit records).
    """
    hashes = build_hash_manifest(staging_dir)
    write_lines(staging_dir / HASHES_FILE, [h.to_line() for h in hashes])

    commits = build_commit_manifest(plans)
    write_lines(staging_dir / COMMITS_FILE, [c.to_line() for c in commits])
    return hashes, commits


def format_timestamp(moment: datetime) -> str:
    """Format a timestamp as UTC ISO-8601 with milliseconds and a Z suffix."""
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


@dataclass
class RunInfo:
    """Human-readable summary of a run."""

    orchestrator_commit: str
    hashes: list[HashRecord]
    commits: list[CommitRecord]
    job_url: str | None = None
    key_listing: str | None = None
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def render(self) -> str:
        hashes = "\n".join(h.to_line() for h in self.hashes)
        commits = "\n".join(c.to_line() for c in self.commits)
        text = (
            f"Build date: {format_timestamp(self.built_at)}\n"
            f"Commit hash: {self.orchestrator_commit}\n"
            f"CI log file: {self.job_url or 'N/A'}\n"
            "\n"
            f"{HASHES_FILE}:\n{hashes}\n"
            "\n"
            f"{COMMITS_FILE}:\n{commits}\n"
        )
        if self.key_listing is not None:
            text += f"\nGPG keys:\n{self.key_listing.strip()}\n"
        return text.strip()


def write_info(staging_dir: Path, info: RunInfo) -> Path:
    """Write info.txt into the staging root."""
    path = staging_dir / INFO_FILE
    path.write_text(info.render(), encoding="utf-8")
    logger.info("Wrote %s", path.name)
    return path


__all__ = [
    "COMMITS_FILE",
    "HASHES_FILE",
    "HASH_CHUNK_SIZE",
    "INFO_FILE",
    "RunInfo",
    "build_commit_manifest",
    "build_hash_manifest",
    "clean_previous_outputs",
    "compute_file_hash",
    "format_timestamp",
    "list_files",
    "parse_hash_manifest",
    "write_info",
    "write_lines",
    "write_manifests",
]
