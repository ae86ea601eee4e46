"""Bundle packaging and restore.

The whole staging area is published as out.tar.gz with the staging
directory as archive root. The next run downloads that bundle and
extracts it into its fresh staging area so modules that are not rebuilt
keep their artifacts.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
from pathlib import Path

from blockbuild.errors import ArchiveError, ExtractionError

logger = logging.getLogger(__name__)

BUNDLE_NAME = "out.tar.gz"


def extract_bundle(archive_path: Path, dest_dir: Path) -> None:
    """Extract a previously published bundle into dest_dir.

    Args:
        archive_path: Path to the gzipped tarball.
        dest_dir: Staging root to extract into.

    Raises:
        ExtractionError: If the archive is unreadable or unsafe.
    """
    logger.info("Extracting previous build artifacts...")
    dest_dir.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            for member in tar.getmembers():
                # Security: prevent path traversal
                member_path = Path(member.name)
                if member_path.is_absolute() or ".." in member_path.parts:
                    raise ExtractionError(
                        f"Refusing to extract {member.name}: path traversal detected",
                        code="path_traversal",
                    )
            tar.extractall(dest_dir, filter="data")
    except tarfile.TarError as e:
        raise ExtractionError(
            f"Failed to extract {archive_path}: {e}",
            code="tar_error",
        ) from e
    except OSError as e:
        raise ExtractionError(
            f"OS error extracting {archive_path}: {e}",
            code="os_error",
        ) from e


def create_bundle(staging_dir: Path, tmp_dir: Path) -> Path:
    """Compress the staging area and move the bundle into it.

    The archive is written outside the staging area first so it does not
    contain itself, then relocated to <staging_dir>/out.tar.gz.

    Args:
        staging_dir: Staging root (archive root).
        tmp_dir: Scratch directory for the intermediate archive.

    Returns:
        Final bundle path inside the staging area.

    Raises:
        ArchiveError: If compression or relocation fails.
    """
    logger.info("Compressing build artifacts...")
    tmp_dir.mkdir(parents=True, exist_ok=True)
    tmp_bundle = tmp_dir / BUNDLE_NAME
    final_path = staging_dir / BUNDLE_NAME

    try:
        with tarfile.open(tmp_bundle, "w:gz") as tar:
            for entry in sorted(staging_dir.iterdir()):
                tar.add(entry, arcname=entry.name, recursive=True)
        shutil.move(str(tmp_bundle), str(final_path))
    except (tarfile.TarError, OSError) as e:
        tmp_bundle.unlink(missing_ok=True)
        raise ArchiveError(f"Failed to compress build artifacts: {e}") from e

    logger.info("Wrote bundle %s", final_path)
    return final_path


__all__ = ["BUNDLE_NAME", "create_bundle", "extract_bundle"]
