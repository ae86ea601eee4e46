"""Tests for builds/publish.py module."""

from pathlib import Path

import pytest

from blockbuild.builds.publish import (
    MavenCoordinates,
    compose_deploy_command,
    find_property,
    has_native_publish,
    parse_coordinates,
    publish_module,
    select_deploy_files,
)
from blockbuild.errors import PublishError
from blockbuild.types import ModuleDescriptor

PROPERTIES = """
------------------------------------------------------------
Root project 'alpha'
------------------------------------------------------------

archivesBaseName: alpha-core
group: com.example
groupId: ignored
version: '1.2.0'
versionSuffix: -SNAPSHOT
"""

TASKS_WITH_PUBLISH = """
Publishing tasks
----------------
publish - Publishes all publications produced by this project.
publishToMavenLocal - Publishes all Maven publications produced by this project to the local Maven cache.
"""

TASKS_WITHOUT_PUBLISH = """
Build tasks
-----------
assemble - Assembles the outputs of this project.
build - Assembles and tests this project.
"""


class TestFindProperty:
    """Tests for find_property function."""

    def test_exact_key(self):
        """Keys sharing a prefix do not match."""
        assert find_property(PROPERTIES, "group") == "com.example"
        assert find_property(PROPERTIES, "version") == "1.2.0"

    def test_missing(self):
        """Unknown keys return None."""
        assert find_property(PROPERTIES, "description") is None

    def test_double_quotes(self):
        """Double quotes are stripped too."""
        assert find_property('version: "2.0"', "version") == "2.0"


class TestParseCoordinates:
    """Tests for parse_coordinates function."""

    def test_coordinates(self):
        """Should extract group, artifact and version."""
        assert parse_coordinates(PROPERTIES, "alpha") == MavenCoordinates(
            group="com.example", artifact="alpha-core", version="1.2.0"
        )

    def test_archives_name_fallback(self):
        """archivesName is used when archivesBaseName is absent."""
        props = "archivesName: beta\ngroup: org.example\nversion: 3"
        assert parse_coordinates(props, "beta").artifact == "beta"

    @pytest.mark.parametrize(
        "props",
        [
            "group: com.example\nversion: 1.0",
            "archivesBaseName: a\nversion: 1.0",
            "archivesBaseName: a\ngroup: com.example\nversion: null",
        ],
    )
    def test_missing_coordinate(self, props):
        """Any missing coordinate aborts publishing."""
        with pytest.raises(PublishError) as exc_info:
            parse_coordinates(props, "alpha")
        assert exc_info.value.code == "missing_coordinates"


class TestHasNativePublish:
    """Tests for has_native_publish function."""

    def test_present(self):
        assert has_native_publish(TASKS_WITH_PUBLISH)

    def test_absent(self):
        assert not has_native_publish(TASKS_WITHOUT_PUBLISH)

    def test_mentioned_in_description_only(self):
        """Only the task name column counts."""
        tasks = "publish - Runs publishToMavenLocal and more."
        assert not has_native_publish(tasks)


class TestSelectDeployFiles:
    """Tests for select_deploy_files function."""

    def test_sources_attached(self):
        """A sources jar is attached to its main jar."""
        files = [Path("/s/alpha.jar"), Path("/s/alpha-sources.jar")]
        assert select_deploy_files(files) == [
            (Path("/s/alpha.jar"), Path("/s/alpha-sources.jar"))
        ]

    def test_orphan_sources_deployed(self):
        """A sources jar without its main jar is deployed on its own."""
        files = [Path("/s/alpha-sources.jar")]
        assert select_deploy_files(files) == [(Path("/s/alpha-sources.jar"), None)]

    def test_non_jars_skipped(self):
        files = [Path("/s/alpha.jar"), Path("/s/README.txt")]
        assert select_deploy_files(files) == [(Path("/s/alpha.jar"), None)]


class TestComposeDeployCommand:
    """Tests for compose_deploy_command function."""

    def test_command(self, tmp_path):
        """Should target the staging Maven repository."""
        coords = MavenCoordinates("com.example", "alpha-core", "1.2.0")
        cmd = compose_deploy_command(
            coords, Path("/s/alpha.jar"), Path("/s/alpha-sources.jar"), tmp_path
        )
        assert cmd[:2] == ["mvn", "deploy:deploy-file"]
        assert "-DgroupId=com.example" in cmd
        assert "-DartifactId=alpha-core" in cmd
        assert "-Dversion=1.2.0" in cmd
        assert "-DrepositoryId=blockbuild" in cmd
        assert "-Dfile=/s/alpha.jar" in cmd
        assert "-Dsources=/s/alpha-sources.jar" in cmd
        assert cmd[-1] == f"-Durl={tmp_path.resolve().as_uri()}"


class TestPublishModule:
    """Tests for publish_module function."""

    @pytest.fixture
    def module_dir(self, tmp_path):
        module_dir = tmp_path / "mods" / "alpha"
        module_dir.mkdir(parents=True)
        (module_dir / "gradlew").write_text("#!/bin/sh\n")
        (module_dir / "gradlew").chmod(0o755)
        return module_dir

    def test_native(self, tmp_path, runner, module_dir):
        """Modules with maven-publish use their own task."""
        runner.on("properties", stdout=PROPERTIES)
        runner.on("tasks", stdout=TASKS_WITH_PUBLISH)
        maven_dir = tmp_path / "out" / "mvn"

        method = publish_module(
            runner, ModuleDescriptor("alpha"), module_dir, [], maven_dir
        )

        assert method == "native"
        [publish] = runner.commands_with("publishToMavenLocal")
        assert f"-Dmaven.repo.local={maven_dir}" in publish
        assert not runner.commands_with("mvn")

    def test_manual(self, tmp_path, runner, module_dir):
        """Other modules are deployed jar by jar."""
        runner.on("properties", stdout=PROPERTIES)
        runner.on("tasks", stdout=TASKS_WITHOUT_PUBLISH)
        staging = tmp_path / "out" / "alpha"
        artifacts = [
            staging / "alpha-core-1.2.0-sources.jar",
            staging / "alpha-core-1.2.0.jar",
            staging / "alpha-core-extra.jar",
        ]

        method = publish_module(
            runner, ModuleDescriptor("alpha"), module_dir, artifacts,
            tmp_path / "out" / "mvn",
        )

        assert method == "manual"
        deploys = runner.commands_with("deploy:deploy-file")
        assert len(deploys) == 2
        assert f"-Dsources={artifacts[0]}" in deploys[0]

    def test_missing_coordinates(self, tmp_path, runner, module_dir):
        """Manual publishing without coordinates is fatal."""
        runner.on("properties", stdout="group: com.example")
        runner.on("tasks", stdout=TASKS_WITHOUT_PUBLISH)

        with pytest.raises(PublishError):
            publish_module(
                runner, ModuleDescriptor("alpha"), module_dir,
                [tmp_path / "alpha.jar"], tmp_path / "mvn",
            )

    def test_query_failure(self, tmp_path, runner, module_dir):
        """A failing properties query is fatal."""
        runner.on("properties", exit_code=1)

        with pytest.raises(PublishError):
            publish_module(
                runner, ModuleDescriptor("alpha"), module_dir, [], tmp_path / "mvn"
            )

    def test_deploy_failure(self, tmp_path, runner, module_dir):
        """A failing deploy is fatal."""
        runner.on("properties", stdout=PROPERTIES)
        runner.on("tasks", stdout=TASKS_WITHOUT_PUBLISH)
        runner.on("deploy:deploy-file", exit_code=1)

        with pytest.raises(PublishError):
            publish_module(
                runner, ModuleDescriptor("alpha"), module_dir,
                [tmp_path / "alpha.jar"], tmp_path / "mvn",
            )
