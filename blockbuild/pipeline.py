"""Run pipeline.

A run is an ordered sequence of stages:

    bootstrap -> fetch -> restore -> clean -> plan -> build
              -> manifest -> keys -> info -> sign -> archive

Stages execute sequentially; any BlockbuildError raised by a stage stops
the run before the next stage starts. The skip directive ends the run
successfully before the first stage. Per-module commit failures are the
only recoverable condition and only exclude that module.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from blockbuild.archive import create_bundle, extract_bundle
from blockbuild.builds.decision import ModulePlan, plan_builds
from blockbuild.builds.executor import BuildResult, run_build
from blockbuild.builds.publish import publish_module
from blockbuild.context import RunContext
from blockbuild.errors import ProcessError, VcsError
from blockbuild.manifest import (
    RunInfo,
    clean_previous_outputs,
    write_info,
    write_manifests,
)
from blockbuild.process import CommandRunner
from blockbuild.signing import Signer
from blockbuild.state.fetch import (
    COMMITS_FILE,
    PriorState,
    RemoteStateFetcher,
    fetch_prior_state,
)
from blockbuild.types import CommitRecord, HashRecord, ModuleDescriptor, SignatureRecord
from blockbuild.vcs import head_commit

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Accumulated state and outcome of a run."""

    skipped_all: bool = False
    prior: PriorState | None = None
    plans: list[ModulePlan] = field(default_factory=list)
    builds: list[BuildResult] = field(default_factory=list)
    publish_methods: dict[str, str] = field(default_factory=dict)
    hashes: list[HashRecord] = field(default_factory=list)
    commits: list[CommitRecord] = field(default_factory=list)
    key_listing: str | None = None
    info: RunInfo | None = None
    signatures: list[SignatureRecord] = field(default_factory=list)
    bundle_path: Path | None = None
    completed_stages: list[str] = field(default_factory=list)

    @property
    def rebuilt(self) -> list[str]:
        return [p.module.name for p in self.plans if p.needs_build]


def prepare_workspace(context: RunContext) -> None:
    """Recreate the staging and scratch directories."""
    logger.info("Setting up filesystem...")
    for directory in (context.out_dir, context.tmp_dir):
        if directory.exists():
            logger.debug("Cleaning %s", directory)
            shutil.rmtree(directory)
        directory.mkdir(parents=True)
    context.maven_dir.mkdir()
    context.tmp_gpg_dir.mkdir()


class Pipeline:
    """Executes the stages of one run.

    Attributes:
        context: Immutable run inputs.
        runner: External command runner.
        fetcher: Remote state fetcher rooted at the configured host.
    """

    def __init__(
        self,
        context: RunContext,
        runner: CommandRunner,
        fetcher: RemoteStateFetcher,
    ) -> None:
        self.context = context
        self.runner = runner
        self.fetcher = fetcher
        self.result = PipelineResult()
        self._signer: Signer | None = None

    def stages(self) -> list[tuple[str, Callable[[], None]]]:
        return [
            ("bootstrap", self._bootstrap),
            ("fetch", self._fetch),
            ("restore", self._restore),
            ("clean", self._clean),
            ("plan", self._plan),
            ("build", self._build),
            ("manifest", self._manifest),
            ("keys", self._keys),
            ("info", self._info),
            ("sign", self._sign),
            ("archive", self._archive),
        ]

    def run(self) -> PipelineResult:
        """Run every stage in order.

        Returns:
            PipelineResult of the completed run.

        Raises:
            BlockbuildError: From the first failing stage.
        """
        if self.context.directives.skip:
            logger.info("Skipping run: no modules will be built")
            self.result.skipped_all = True
            return self.result

        for name, stage in self.stages():
            logger.debug("Stage %s", name)
            stage()
            self.result.completed_stages.append(name)

        logger.info("Done!")
        return self.result

    def plan(self) -> list[ModulePlan]:
        """Compute decisions without touching the staging area."""
        prior_commits = self.fetcher.fetch_text(COMMITS_FILE)
        return plan_builds(
            self.context.modules,
            self._module_commit,
            prior_commits,
            self.context.directives,
        )

    def _module_commit(self, module: ModuleDescriptor) -> str:
        module_dir = self.context.module_dir(module)
        if not module_dir.is_dir():
            raise VcsError(f"Module directory does not exist: {module_dir}")
        try:
            return head_commit(self.runner, module_dir)
        except ProcessError as e:
            if e.code == "timeout":
                raise
            raise VcsError(e.message) from e

    def _bootstrap(self) -> None:
        prepare_workspace(self.context)

    def _fetch(self) -> None:
        self.result.prior = fetch_prior_state(self.fetcher, self.context.tmp_dir)

    def _restore(self) -> None:
        prior = self.result.prior
        if prior is not None and prior.bundle_path is not None:
            extract_bundle(prior.bundle_path, self.context.out_dir)

    def _clean(self) -> None:
        clean_previous_outputs(self.context.out_dir)

    def _plan(self) -> None:
        prior_commits = self.result.prior.commits if self.result.prior else None
        self.result.plans = plan_builds(
            self.context.modules,
            self._module_commit,
            prior_commits,
            self.context.directives,
        )

    def _build(self) -> None:
        for plan in self.result.plans:
            if not plan.needs_build:
                continue
            module = plan.module
            module_dir = self.context.module_dir(module)
            build = run_build(
                self.runner,
                module,
                module_dir,
                self.context.staging_dir(module),
            )
            self.result.builds.append(build)
            self.result.publish_methods[module.name] = publish_module(
                self.runner,
                module,
                module_dir,
                build.files,
                self.context.maven_dir,
            )

    def _manifest(self) -> None:
        self.result.hashes, self.result.commits = write_manifests(
            self.context.out_dir, self.result.plans
        )

    def _keys(self) -> None:
        secret_key = self.context.secret_key
        if secret_key is None:
            logger.info("No signing key provided, skipping signing")
            return
        logger.info("Signing hashes...")
        self._signer = Signer(
            self.runner,
            self.context.config.gpg,
            gnupg_home=self.context.gnupg_home,
        )
        self.result.key_listing = self._signer.prepare_keys(
            secret_key,
            self.context.tmp_gpg_dir,
            self.context.keys_dir,
        )

    def _info(self) -> None:
        info = RunInfo(
            orchestrator_commit=head_commit(self.runner, self.context.work_dir),
            hashes=self.result.hashes,
            commits=self.result.commits,
            job_url=self.context.job_url,
            key_listing=self.result.key_listing,
        )
        write_info(self.context.out_dir, info)
        logger.info("Run info:\n%s", info.render())
        self.result.info = info

    def _sign(self) -> None:
        if self._signer is not None:
            self.result.signatures = self._signer.sign_staging(self.context.out_dir)

    def _archive(self) -> None:
        self.result.bundle_path = create_bundle(
            self.context.out_dir, self.context.tmp_dir
        )


__all__ = ["Pipeline", "PipelineResult", "prepare_workspace"]
