"""Shared fixtures for blockbuild tests.

External processes are never spawned: FakeRunner records every command and
answers from scripted rules.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from blockbuild.config import BuildConfig
from blockbuild.context import RunContext
from blockbuild.process import CommandRunner
from blockbuild.types import CommandResult, DirectiveSet

SideEffect = Callable[[list[str], Path | None], None]


@dataclass
class Rule:
    """Scripted answer for commands containing all of `tokens`."""

    tokens: tuple[str, ...]
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    side_effect: SideEffect | None = None
    cwd: Path | None = None


@dataclass
class FakeRunner(CommandRunner):
    """Command runner that never spawns processes."""

    rules: list[Rule] = field(default_factory=list)
    calls: list[tuple[list[str], Path | None]] = field(default_factory=list)
    timeout: int | None = None
    env_override: dict[str, str] = field(default_factory=dict)

    def on(
        self,
        *tokens: str,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        side_effect: SideEffect | None = None,
        cwd: Path | None = None,
    ) -> "FakeRunner":
        """Register a rule; earlier rules win."""
        self.rules.append(
            Rule(tokens, exit_code, stdout, stderr, side_effect, cwd)
        )
        return self

    def run(
        self,
        args: Sequence[str],
        cwd: Path | None = None,
        echo: bool = False,
    ) -> CommandResult:
        args = list(args)
        self.calls.append((args, cwd))
        for rule in self.rules:
            if rule.cwd is not None and rule.cwd != cwd:
                continue
            if all(token in args for token in rule.tokens):
                if rule.side_effect is not None:
                    rule.side_effect(args, cwd)
                return CommandResult(
                    command=" ".join(args),
                    exit_code=rule.exit_code,
                    stdout=rule.stdout,
                    stderr=rule.stderr,
                )
        return CommandResult(command=" ".join(args), exit_code=0)

    def commands_with(self, *tokens: str) -> list[list[str]]:
        """Return recorded commands containing all tokens."""
        return [args for args, _ in self.calls if all(t in args for t in tokens)]


@pytest.fixture
def runner() -> FakeRunner:
    """Create a fake command runner."""
    return FakeRunner()


@pytest.fixture
def build_config() -> BuildConfig:
    """Create a build configuration with two modules and both identities."""
    return BuildConfig.model_validate(
        {
            "host": "https://builds.example.com/",
            "builds": ["alpha", {"name": "beta", "project": "."}],
            "gpg": {"main": "main@example.com", "temp": "temp@example.com"},
        }
    )


@pytest.fixture
def make_context(tmp_path, build_config) -> Callable[..., RunContext]:
    """Factory for run contexts rooted in tmp_path."""

    def _make(
        directives: DirectiveSet | None = None,
        secret_key: bytes | None = None,
        config: BuildConfig | None = None,
    ) -> RunContext:
        cfg = config or build_config
        return RunContext(
            config=cfg,
            modules=tuple(cfg.modules()),
            directives=directives or DirectiveSet(),
            commit_message="Update modules",
            work_dir=tmp_path,
            mods_dir=tmp_path / "mods",
            out_dir=tmp_path / "out",
            tmp_dir=tmp_path / "tmp",
            secret_key=secret_key,
            job_url="https://ci.example.com/job/1",
        )

    return _make
