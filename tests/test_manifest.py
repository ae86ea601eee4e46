"""Tests for manifest.py module.

Tests cleanup of previous outputs, hash and commit manifests, and the
run summary.
"""

import hashlib
from datetime import datetime, timedelta, timezone

from blockbuild.builds.decision import ModulePlan
from blockbuild.manifest import (
    RunInfo,
    build_commit_manifest,
    build_hash_manifest,
    clean_previous_outputs,
    compute_file_hash,
    format_timestamp,
    parse_hash_manifest,
    write_info,
    write_manifests,
)
from blockbuild.types import (
    UNKNOWN_COMMIT,
    BuildOutcome,
    CommitRecord,
    HashRecord,
    ModuleDescriptor,
)


def plan(name, current, prior, outcome):
    return ModulePlan(
        module=ModuleDescriptor(name),
        current_commit=current,
        prior_commit=prior,
        outcome=outcome,
    )


class TestComputeFileHash:
    """Tests for compute_file_hash function."""

    def test_matches_hashlib(self, tmp_path):
        """Chunked hashing matches a one-shot digest."""
        data = b"x" * 200_000
        path = tmp_path / "big.jar"
        path.write_bytes(data)
        assert compute_file_hash(path, chunk_size=1024) == hashlib.sha256(data).hexdigest()


class TestCleanPreviousOutputs:
    """Tests for clean_previous_outputs function."""

    def test_removes_run_owned_entries(self, tmp_path):
        """Manifests, signatures, keys and bundle are removed; artifacts stay."""
        for name in (
            "hashes.txt",
            "hashes.txt.sig",
            "hashes.txt.tmp.sig",
            "commits.txt",
            "info.txt",
            "out.tar.gz",
            "out.tar.gz.sig",
        ):
            (tmp_path / name).write_text("old")
        (tmp_path / "gpg").mkdir()
        (tmp_path / "gpg" / "main.asc").write_text("key")
        (tmp_path / "alpha").mkdir()
        (tmp_path / "alpha" / "alpha.jar").write_bytes(b"jar")

        removed = clean_previous_outputs(tmp_path)

        assert "gpg" in removed
        assert sorted(p.name for p in tmp_path.iterdir()) == ["alpha"]
        assert (tmp_path / "alpha" / "alpha.jar").exists()

    def test_missing_staging(self, tmp_path):
        assert clean_previous_outputs(tmp_path / "absent") == []


class TestBuildHashManifest:
    """Tests for build_hash_manifest function."""

    def test_every_file_listed(self, tmp_path):
        """Each file appears once with a correct digest."""
        (tmp_path / "alpha").mkdir()
        (tmp_path / "alpha" / "alpha.jar").write_bytes(b"alpha")
        (tmp_path / "mvn" / "com" / "example").mkdir(parents=True)
        (tmp_path / "mvn" / "com" / "example" / "alpha.pom").write_bytes(b"pom")

        records = build_hash_manifest(tmp_path)

        expected = {
            p.relative_to(tmp_path).as_posix(): hashlib.sha256(p.read_bytes()).hexdigest()
            for p in tmp_path.rglob("*")
            if p.is_file()
        }
        assert {r.path: r.sha256 for r in records} == expected
        assert len(records) == len(expected)

    def test_empty_staging(self, tmp_path):
        assert build_hash_manifest(tmp_path) == []


class TestBuildCommitManifest:
    """Tests for build_commit_manifest function."""

    def test_one_record_per_module(self):
        """Skipped and rebuilt modules both record their current commit."""
        plans = [
            plan("A", "h1", "h1", BuildOutcome.SKIPPED),
            plan("B", "h3", "h2", BuildOutcome.CHANGED_REBUILT),
        ]
        assert build_commit_manifest(plans) == [
            CommitRecord("A", "h1"),
            CommitRecord("B", "h3"),
        ]

    def test_failed_module_keeps_prior(self):
        """A module whose commit is unknown carries the prior record."""
        plans = [
            plan("A", None, "h1", BuildOutcome.FAILED),
            plan("B", None, None, BuildOutcome.FAILED),
        ]
        assert build_commit_manifest(plans) == [
            CommitRecord("A", "h1"),
            CommitRecord("B", UNKNOWN_COMMIT),
        ]


class TestWriteManifests:
    """Tests for write_manifests function."""

    def test_files_written(self, tmp_path):
        """hashes.txt does not list itself or commits.txt."""
        (tmp_path / "A").mkdir()
        (tmp_path / "A" / "a.jar").write_bytes(b"a")
        plans = [plan("A", "h1", None, BuildOutcome.CHANGED_REBUILT)]

        hashes, commits = write_manifests(tmp_path, plans)

        content = (tmp_path / "hashes.txt").read_text()
        assert [r.path for r in parse_hash_manifest(content)] == ["A/a.jar"]
        assert (tmp_path / "commits.txt").read_text() == "h1 A"
        assert len(hashes) == 1
        assert commits == [CommitRecord("A", "h1")]


class TestParseHashManifest:
    """Tests for parse_hash_manifest function."""

    def test_parse(self):
        content = "aa A/a.jar\nbb mvn/com/x.pom\n\n"
        assert parse_hash_manifest(content) == [
            HashRecord("A/a.jar", "aa"),
            HashRecord("mvn/com/x.pom", "bb"),
        ]

    def test_empty(self):
        assert parse_hash_manifest(None) == []


class TestFormatTimestamp:
    """Tests for format_timestamp function."""

    def test_utc_with_milliseconds(self):
        moment = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "2024-05-06T07:08:09.123Z"

    def test_converts_to_utc(self):
        """Offsets are normalised to UTC."""
        moment = datetime(2024, 5, 6, 9, 8, 9, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(moment) == "2024-05-06T07:08:09.000Z"


class TestRunInfo:
    """Tests for RunInfo rendering."""

    def test_render(self, tmp_path):
        """The summary lists date, commit, log link, manifests and keys."""
        info = RunInfo(
            orchestrator_commit="abc123",
            hashes=[HashRecord("A/a.jar", "ff")],
            commits=[CommitRecord("A", "h1")],
            job_url="https://ci.example.com/job/1",
            key_listing="pub rsa4096\n",
            built_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )
        path = write_info(tmp_path, info)
        text = path.read_text()

        assert text.startswith("Build date: 2024-01-02T03:04:05.000Z")
        assert "Commit hash: abc123" in text
        assert "CI log file: https://ci.example.com/job/1" in text
        assert "hashes.txt:\nff A/a.jar" in text
        assert "commits.txt:\nh1 A" in text
        assert text.endswith("GPG keys:\npub rsa4096")

    def test_render_without_signing(self):
        """Unsigned runs omit the key section."""
        info = RunInfo(orchestrator_commit="abc", hashes=[], commits=[])
        text = info.render()
        assert "GPG keys" not in text
        assert "CI log file: N/A" in text
