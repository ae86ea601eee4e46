"""Build executor for Gradle modules.

This module handles:
- Locating the module's Gradle wrapper
- Composing Gradle commands
- Running `gradlew build` for a module
- Staging the produced binaries under the staging area

A failed build is fatal to the whole run: a broken module must halt
publication rather than be silently skipped.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import sys
from dataclasses import dataclass, field
from pathlib import Path

from blockbuild.errors import BuildError
from blockbuild.process import CommandRunner, require_success
from blockbuild.types import ModuleDescriptor

logger = logging.getLogger(__name__)

GRADLE_WRAPPER = "gradlew"

# Gradle's default output directory for jars, relative to the project
BUILD_OUTPUT_SUBDIR = Path("build") / "libs"


@dataclass
class BuildResult:
    """Result of building one module.

    Attributes:
        module: The module built.
        command: The build command that was executed.
        output_dir: Gradle output directory.
        staging_dir: Directory the artifacts were copied to.
        files: Staged artifact paths.
    """

    module: ModuleDescriptor
    command: str
    output_dir: Path
    staging_dir: Path
    files: list[Path] = field(default_factory=list)


def gradle_command(
    module_dir: Path,
    platform: str | None = None,
) -> str:
    """Return the Gradle wrapper invocation for a module.

    Makes the wrapper executable when it is not.

    Args:
        module_dir: Module checkout directory.
        platform: Platform name (defaults to sys.platform).

    Returns:
        Path to the wrapper as it should be executed.

    Raises:
        BuildError: If the wrapper does not exist.
    """
    platform = platform or sys.platform
    wrapper = module_dir / GRADLE_WRAPPER

    if platform == "win32":
        wrapper_bat = module_dir / f"{GRADLE_WRAPPER}.bat"
        if not wrapper_bat.exists():
            raise BuildError(f"Gradle not found in {module_dir}", code="gradle_missing")
        return str(wrapper_bat)

    if not wrapper.exists():
        raise BuildError(f"Gradle not found in {module_dir}", code="gradle_missing")

    mode = wrapper.stat().st_mode
    if not mode & stat.S_IXUSR:
        logger.info("Setting execute on %s", wrapper)
        os.chmod(wrapper, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    return str(wrapper)


def compose_gradle_args(
    gradle: str,
    task: str,
    project: str,
    quiet: bool = False,
    extra_args: list[str] | None = None,
) -> list[str]:
    """Compose a Gradle wrapper command.

    Args:
        gradle: Wrapper path.
        task: Task name (build, properties, tasks, ...).
        project: Project path passed with -p.
        quiet: Add -q.
        extra_args: Additional arguments appended at the end.

    Returns:
        Command as list of strings.
    """
    cmd = [gradle, task]
    if quiet:
        cmd.append("-q")
    cmd.extend(["-p", project])
    if extra_args:
        cmd.extend(extra_args)
    return cmd


def output_dir_for(module_dir: Path, module: ModuleDescriptor) -> Path:
    """Return the Gradle output directory of a module's project."""
    return (module_dir / module.project / BUILD_OUTPUT_SUBDIR).resolve()


def stage_artifacts(output_dir: Path, staging_dir: Path) -> list[Path]:
    """Copy every file in output_dir into a freshly recreated staging_dir.

    Args:
        output_dir: Gradle output directory.
        staging_dir: Per-module staging directory.

    Returns:
        Staged file paths, sorted by name.

    Raises:
        BuildError: If the output directory does not exist.
    """
    if not output_dir.is_dir():
        raise BuildError(
            f"Build output directory does not exist: {output_dir}",
            code="missing_output",
        )

    logger.info("Copying build artifacts...")
    if staging_dir.exists():
        shutil.rmtree(staging_dir)
    staging_dir.mkdir(parents=True)

    staged: list[Path] = []
    for path in sorted(output_dir.iterdir()):
        if not path.is_file():
            logger.debug("Skipping non-file output: %s", path.name)
            continue
        dest = staging_dir / path.name
        shutil.copy2(path, dest)
        staged.append(dest)

    logger.info("Staged %d artifact(s) in %s", len(staged), staging_dir)
    return staged


def run_build(
    runner: CommandRunner,
    module: ModuleDescriptor,
    module_dir: Path,
    staging_dir: Path,
) -> BuildResult:
    """Build a module and stage its artifacts.

    Args:
        runner: Command runner.
        module: Module to build.
        module_dir: Module checkout directory.
        staging_dir: Per-module staging directory.

    Returns:
        BuildResult describing the staged artifacts.

    Raises:
        BuildError: If the wrapper is missing, the build fails or
            produced no output directory.
    """
    logger.info("Building %s...", module.name)
    output_dir = output_dir_for(module_dir, module)
    if output_dir.exists():
        logger.info("Cleaning build directory...")
        shutil.rmtree(output_dir)

    gradle = gradle_command(module_dir)
    cmd = compose_gradle_args(gradle, "build", module.project)
    result = runner.run(cmd, cwd=module_dir, echo=True)
    require_success(result, f"Failed to build {module.name}", BuildError)

    files = stage_artifacts(output_dir, staging_dir)
    return BuildResult(
        module=module,
        command=result.command,
        output_dir=output_dir,
        staging_dir=staging_dir,
        files=files,
    )


__all__ = [
    "BUILD_OUTPUT_SUBDIR",
    "GRADLE_WRAPPER",
    "BuildResult",
    "compose_gradle_args",
    "gradle_command",
    "output_dir_for",
    "run_build",
    "stage_artifacts",
]
