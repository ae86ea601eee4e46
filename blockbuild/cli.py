"""Thin CLI wrapper for blockbuild.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from blockbuild import __version__
from blockbuild.config import Settings, get_settings, print_settings_json
from blockbuild.context import load_context
from blockbuild.errors import BlockbuildError
from blockbuild.pipeline import Pipeline, PipelineResult
from blockbuild.process import CommandRunner
from blockbuild.state.fetch import RemoteStateFetcher, create_client

app = typer.Typer(
    name="blockbuild",
    help="blockbuild - incremental multi-module build orchestrator",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger("blockbuild")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"blockbuild version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _settings(work_dir: Path | None, config_file: Path | None) -> Settings:
    settings = get_settings()
    update: dict[str, Any] = {}
    if work_dir is not None:
        update["work_dir"] = work_dir
    if config_file is not None:
        update["config_file"] = config_file
    return settings.model_copy(update=update) if update else settings


WorkDirOption = Annotated[
    Path | None,
    typer.Option("--work-dir", "-C", help="Orchestrator repository root"),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Build configuration file"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """blockbuild - incremental multi-module build orchestrator."""


@app.command()
def config(json_output: JsonOption = False) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
        return

    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Work directory:      {settings.work_dir}")
    console.print(f"  Config file:         {settings.config_file}")
    console.print(f"  Modules directory:   {settings.mods_dir}")
    console.print(f"  Output directory:    {settings.out_dir}")
    console.print(f"  Temp directory:      {settings.tmp_dir}")
    console.print(f"  GnuPG home:          {settings.gnupg_home or '(gpg default)'}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Signing:             {settings.gpg_secret_key is not None}")
    console.print(f"  CI log URL:          {settings.job_url or 'N/A'}")
    console.print()
    console.print("[bold]Timeouts:[/bold]")
    build_timeout = settings.build_timeout or "none"
    console.print(f"  Build timeout:       {build_timeout}")
    console.print(f"  Fetch timeout:       {settings.fetch_timeout}")
    console.print(f"  Fetch retries:       {settings.fetch_retries}")


def _result_to_dict(result: PipelineResult) -> dict[str, Any]:
    return {
        "skipped_all": result.skipped_all,
        "modules": [p.to_dict() for p in result.plans],
        "publish_methods": result.publish_methods,
        "hashes": len(result.hashes),
        "signatures": len(result.signatures),
        "bundle": str(result.bundle_path) if result.bundle_path else None,
    }


@app.command()
def run(
    work_dir: WorkDirOption = None,
    config_file: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """Build changed modules, write manifests, sign and package outputs."""
    settings = _settings(work_dir, config_file)
    configure_logging(settings.log_level)
    runner = CommandRunner(timeout=settings.build_timeout)

    try:
        context = load_context(settings, runner)
        with create_client(context.config.host, settings.fetch_timeout) as client:
            fetcher = RemoteStateFetcher(client, retries=settings.fetch_retries)
            result = Pipeline(context, runner, fetcher).run()
    except BlockbuildError as e:
        logger.error("%s", e.message)
        if json_output:
            console.print(json.dumps({"code": e.code, "message": e.message}))
        raise typer.Exit(code=1) from None

    if json_output:
        console.print(json.dumps(_result_to_dict(result), indent=2))
        return

    if result.skipped_all:
        console.print("[yellow]Commit was set to skip all builds.[/yellow]")
        return

    console.print()
    console.print("[bold]Run Results:[/bold]")
    for plan in result.plans:
        color = "green" if plan.needs_build else "blue"
        if plan.current_commit is None:
            color = "yellow"
        console.print(f"  [{color}]{plan.module.name}: {plan.outcome.value}[/{color}]")
    console.print(f"  Files hashed: {len(result.hashes)}")
    if result.signatures:
        console.print(f"  Signatures: {len(result.signatures)}")
    if result.bundle_path is not None:
        console.print(f"  Bundle: {result.bundle_path}")


@app.command()
def plan(
    work_dir: WorkDirOption = None,
    config_file: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show which modules would be rebuilt, without building anything."""
    settings = _settings(work_dir, config_file)
    configure_logging(settings.log_level)
    runner = CommandRunner(timeout=settings.build_timeout)

    try:
        context = load_context(settings, runner)
        if context.directives.skip:
            plans = []
        else:
            with create_client(context.config.host, settings.fetch_timeout) as client:
                fetcher = RemoteStateFetcher(client, retries=settings.fetch_retries)
                plans = Pipeline(context, runner, fetcher).plan()
    except BlockbuildError as e:
        logger.error("%s", e.message)
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "skip": context.directives.skip,
            "force_all": context.directives.force_all,
            "modules": [p.to_dict() for p in plans],
        }
        console.print(json.dumps(output, indent=2))
        return

    if context.directives.skip:
        console.print("[yellow]Commit was set to skip all builds.[/yellow]")
        return

    console.print(f"[bold]Plan for {len(plans)} module(s):[/bold]")
    for p in plans:
        marker = "build" if p.needs_build else p.outcome.value
        console.print(f"  {p.module.name}: {marker} ({p.outcome.value})")
