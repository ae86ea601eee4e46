"""Run context.

All external inputs (settings, the build configuration file and the latest
commit message) are read once at process start into an immutable
RunContext that is passed to every stage. Stages never read the process
environment themselves.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path

from blockbuild.config import BuildConfig, Settings, load_build_config
from blockbuild.directives import resolve_directives
from blockbuild.errors import ConfigError
from blockbuild.process import CommandRunner
from blockbuild.types import DirectiveSet, ModuleDescriptor
from blockbuild.vcs import latest_commit_message

logger = logging.getLogger(__name__)

MAVEN_DIR_NAME = "mvn"
KEYS_DIR_NAME = "gpg"


@dataclass(frozen=True)
class RunContext:
    """Immutable inputs of a single run.

    Attributes:
        config: Validated build configuration.
        modules: Configured modules in order.
        directives: Resolved directive set.
        commit_message: Latest orchestrator commit message.
        work_dir: Orchestrator repository root.
        mods_dir: Directory holding one checkout per module.
        out_dir: Staging area.
        tmp_dir: Scratch directory.
        secret_key: Decoded primary signing key, None disables signing.
        job_url: CI log URL for the run info.
        gnupg_home: Optional GnuPG home directory.
    """

    config: BuildConfig
    modules: tuple[ModuleDescriptor, ...]
    directives: DirectiveSet
    commit_message: str
    work_dir: Path
    mods_dir: Path
    out_dir: Path
    tmp_dir: Path
    secret_key: bytes | None = None
    job_url: str | None = None
    gnupg_home: Path | None = None

    @property
    def maven_dir(self) -> Path:
        return self.out_dir / MAVEN_DIR_NAME

    @property
    def keys_dir(self) -> Path:
        return self.out_dir / KEYS_DIR_NAME

    @property
    def tmp_gpg_dir(self) -> Path:
        return self.tmp_dir / KEYS_DIR_NAME

    @property
    def signing_enabled(self) -> bool:
        return self.secret_key is not None

    def module_dir(self, module: ModuleDescriptor) -> Path:
        return self.mods_dir / module.name

    def staging_dir(self, module: ModuleDescriptor) -> Path:
        return self.out_dir / module.name


def decode_secret_key(value: str) -> bytes:
    """Decode base64 key material.

    Raises:
        ConfigError: If the value is not valid base64 or decodes to nothing.
    """
    try:
        decoded = base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigError(f"GPG secret key is not valid base64: {e}") from e
    if not decoded:
        raise ConfigError("GPG secret key is empty")
    return decoded


def load_context(settings: Settings, runner: CommandRunner) -> RunContext:
    """Assemble the run context from settings, config file and git.

    Args:
        settings: Application settings.
        runner: Command runner used to read the latest commit message.

    Returns:
        RunContext for the run.

    Raises:
        ConfigError: If the configuration or key material is invalid.
        VcsError: If the commit message cannot be read.
    """
    work_dir = settings.work_dir.resolve()
    config = load_build_config(settings.resolve(settings.config_file))

    logger.info("Parsing commit directives...")
    commit_message = latest_commit_message(runner, work_dir)
    directives = resolve_directives(commit_message, settings.directive_overrides())

    secret_key: bytes | None = None
    # Key material is irrelevant to a skipped run
    if settings.gpg_secret_key is not None and not directives.skip:
        raw = settings.gpg_secret_key.get_secret_value()
        if raw.strip():
            secret_key = decode_secret_key(raw)

    return RunContext(
        config=config,
        modules=tuple(config.modules()),
        directives=directives,
        commit_message=commit_message,
        work_dir=work_dir,
        mods_dir=settings.resolve(settings.mods_dir),
        out_dir=settings.resolve(settings.out_dir),
        tmp_dir=settings.resolve(settings.tmp_dir),
        secret_key=secret_key,
        job_url=settings.job_url,
        gnupg_home=settings.resolve(settings.gnupg_home)
        if settings.gnupg_home
        else None,
    )


__all__ = ["RunContext", "decode_secret_key", "load_context"]
