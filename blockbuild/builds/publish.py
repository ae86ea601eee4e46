"""Maven publishing for built modules.

Each rebuilt module is deployed into the Maven-layout repository inside
the staging area. Modules that apply Gradle's maven-publish plugin are
published with their own publishToMavenLocal task; other modules are
deployed jar by jar with `mvn deploy:deploy-file`, using the coordinates
reported by `gradlew properties`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from blockbuild.builds.executor import compose_gradle_args, gradle_command
from blockbuild.errors import PublishError
from blockbuild.process import CommandRunner, require_success
from blockbuild.types import ModuleDescriptor

logger = logging.getLogger(__name__)

NATIVE_PUBLISH_TASK = "publishToMavenLocal"
REPOSITORY_ID = "blockbuild"

# Property keys, in lookup order, for each Maven coordinate
GROUP_KEYS = ("group",)
ARTIFACT_KEYS = ("archivesBaseName", "archivesName")
VERSION_KEYS = ("version",)


@dataclass(frozen=True)
class MavenCoordinates:
    """Maven coordinates of a module."""

    group: str
    artifact: str
    version: str


def find_property(properties: str, key: str) -> str | None:
    """Find a value in `gradlew properties` output.

    Lines look like `key: value`; surrounding single or double quotes are
    stripped from the value.

    Args:
        properties: Raw properties output.
        key: Property name.

    Returns:
        The value, or None if the key is not listed.
    """
    for line in properties.splitlines():
        name, sep, value = line.partition(":")
        if not sep or name.strip() != key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        return value
    return None


def _first_property(properties: str, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = find_property(properties, key)
        if value and value != "null":
            return value
    return None


def parse_coordinates(properties: str, module_name: str) -> MavenCoordinates:
    """Extract group, artifact id and version from the property list.

    Raises:
        PublishError: If any coordinate is missing.
    """
    group = _first_property(properties, GROUP_KEYS)
    artifact = _first_property(properties, ARTIFACT_KEYS)
    version = _first_property(properties, VERSION_KEYS)

    if not group or not artifact or not version:
        logger.error("group=%s, artifact=%s, version=%s", group, artifact, version)
        raise PublishError(
            f"Failed to find Maven information for {module_name}",
            code="missing_coordinates",
        )
    return MavenCoordinates(group=group, artifact=artifact, version=version)


def has_native_publish(tasks: str) -> bool:
    """Return True if `gradlew tasks` lists publishToMavenLocal."""
    return any(
        line.split(" - ", 1)[0].strip() == NATIVE_PUBLISH_TASK
        for line in tasks.splitlines()
    )


def sources_jar_for(jar: Path) -> Path:
    """Return the -sources.jar sibling path of a jar."""
    return jar.with_name(f"{jar.stem}-sources.jar")


def select_deploy_files(files: list[Path]) -> list[tuple[Path, Path | None]]:
    """Pair each deployable jar with its sources jar.

    A `-sources.jar` whose main jar is present is attached to it rather
    than deployed on its own. Non-jar files are not deployable.

    Returns:
        List of (jar, sources jar or None).
    """
    present = {f.name for f in files}
    pairs: list[tuple[Path, Path | None]] = []
    for f in sorted(files):
        if f.suffix != ".jar":
            logger.debug("Not deploying non-jar file %s", f.name)
            continue
        if f.stem.endswith("-sources"):
            main_name = f"{f.stem[: -len('-sources')]}.jar"
            if main_name in present:
                continue
        sources = sources_jar_for(f)
        pairs.append((f, sources if sources.name in present else None))
    return pairs


def compose_deploy_command(
    coordinates: MavenCoordinates,
    jar: Path,
    sources: Path | None,
    maven_dir: Path,
) -> list[str]:
    """Compose an `mvn deploy:deploy-file` command for one jar."""
    cmd = [
        "mvn",
        "deploy:deploy-file",
        f"-DgroupId={coordinates.group}",
        f"-DartifactId={coordinates.artifact}",
        f"-Dversion={coordinates.version}",
        "-Dpackaging=jar",
        f"-DrepositoryId={REPOSITORY_ID}",
        f"-Dfile={jar}",
    ]
    if sources is not None:
        cmd.append(f"-Dsources={sources}")
    cmd.append(f"-Durl={maven_dir.resolve().as_uri()}")
    return cmd


def publish_module(
    runner: CommandRunner,
    module: ModuleDescriptor,
    module_dir: Path,
    artifacts: list[Path],
    maven_dir: Path,
) -> str:
    """Deploy a rebuilt module to the local Maven repository.

    Args:
        runner: Command runner.
        module: Module to publish.
        module_dir: Module checkout directory.
        artifacts: Staged artifacts of the module.
        maven_dir: Maven repository inside the staging area.

    Returns:
        "native" or "manual", the publishing method used.

    Raises:
        PublishError: If a query, publish or deploy command fails, or the
            coordinates cannot be determined.
    """
    logger.info("Deploying %s to Maven...", module.name)
    gradle = gradle_command(module_dir)
    maven_dir.mkdir(parents=True, exist_ok=True)

    properties = runner.run(
        compose_gradle_args(gradle, "properties", module.project, quiet=True),
        cwd=module_dir,
    )
    require_success(
        properties, f"Failed to read Gradle properties of {module.name}", PublishError
    )
    tasks = runner.run(
        compose_gradle_args(gradle, "tasks", module.project, quiet=True),
        cwd=module_dir,
    )
    require_success(tasks, f"Failed to list Gradle tasks of {module.name}", PublishError)

    if has_native_publish(tasks.stdout):
        logger.info("Using maven-publish...")
        result = runner.run(
            compose_gradle_args(
                gradle,
                NATIVE_PUBLISH_TASK,
                module.project,
                quiet=True,
                extra_args=[f"-Dmaven.repo.local={maven_dir}"],
            ),
            cwd=module_dir,
        )
        require_success(result, f"Failed to publish {module.name} to Maven", PublishError)
        return "native"

    logger.info("Using manual publish...")
    coordinates = parse_coordinates(properties.stdout, module.name)
    for jar, sources in select_deploy_files(artifacts):
        cmd = compose_deploy_command(coordinates, jar, sources, maven_dir)
        result = runner.run(cmd, cwd=module_dir, echo=True)
        require_success(
            result, f"Failed to publish {module.name} ({jar.name}) to Maven", PublishError
        )
    return "manual"


__all__ = [
    "NATIVE_PUBLISH_TASK",
    "REPOSITORY_ID",
    "MavenCoordinates",
    "compose_deploy_command",
    "find_property",
    "has_native_publish",
    "parse_coordinates",
    "publish_module",
    "select_deploy_files",
    "sources_jar_for",
]
