"""Thin CLI wrapper for kernelpack.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from kernelpack import __version__
from kernelpack.config import (
    LogLevel,
    Settings,
    get_settings,
    print_settings_json,
)

app = typer.Typer(
    name="kernelpack",
    help="Kernel packager - build Android kernels into flashable zips",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"kernelpack version {__version__}")
        raise typer.Exit()


def print_json(text: str) -> None:
    """Print JSON without Rich wrapping or markup."""
    console.print(text, soft_wrap=True, markup=False, highlight=False)


def configure_logging(level: str) -> None:
    """Route log records through Rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


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
    log_level: Annotated[
        LogLevel | None,
        typer.Option(
            "--log-level",
            case_sensitive=False,
            help="Override the configured log level",
        ),
    ] = None,
) -> None:
    """Kernel packager - build Android kernels into flashable zips."""
    configure_logging((log_level or get_settings().log_level).value)


def _apply_overrides(settings: Settings, **overrides: object) -> Settings:
    update = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=update) if update else settings


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        print_json(print_settings_json(settings))
        return

    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Toolchain:[/bold]")
    console.print(f"  Toolchain path:      {settings.toolchain_path}")
    console.print(f"  Cross compile:       {settings.cross_compile}")
    console.print(f"  Cross compile arm32: {settings.cross_compile_arm32}")
    console.print(f"  LLVM / LLVM_IAS:     {settings.llvm} / {settings.llvm_ias}")
    console.print()
    console.print("[bold]Kernel:[/bold]")
    console.print(f"  Arch / subarch:      {settings.arch} / {settings.subarch}")
    console.print(f"  Defconfig:           {settings.defconfig}")
    console.print(f"  Build user@host:     {settings.build_user}@{settings.build_host}")
    console.print(f"  Jobs:                {settings.jobs or '(processor count)'}")
    console.print(f"  Boot image:          {settings.output_subdir}/{settings.boot_image}")
    console.print()
    console.print("[bold]Release:[/bold]")
    console.print(f"  Version label:       {settings.version_label}")
    console.print(f"  Version suffix:      {settings.version_suffix or '(none)'}")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Kernel directory:    {settings.kernel_dir}")
    console.print(f"  Repack directory:    {settings.repack_dir}")
    console.print(f"  Dist directory:      {settings.dist_dir}")
    console.print(f"  Log directory:       {settings.log_dir}")
    console.print()
    console.print("[bold]Import:[/bold]")
    console.print(f"  Remote:              {settings.import_remote}")
    console.print(f"  URL:                 {settings.import_url}")
    console.print(f"  Branch:              {settings.import_branch}")
    console.print(f"  Prefix:              {settings.import_prefix}")


@app.command()
def build(
    kernel_dir: Annotated[
        Path | None,
        typer.Option("--kernel-dir", "-k", help="Kernel source tree"),
    ] = None,
    suffix: Annotated[
        str | None,
        typer.Option("--suffix", "-s", help="Version suffix for the zip name"),
    ] = None,
    jobs: Annotated[
        int | None,
        typer.Option("--jobs", "-j", min=1, help="Parallel make jobs"),
    ] = None,
    skip_clean: Annotated[
        bool,
        typer.Option("--skip-clean", help="Keep the previous build tree"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Clean, compile and package the kernel into a flashable zip."""
    from kernelpack.build.orchestrator import BuildLockedError, run_build
    from kernelpack.build.stages import CollectFailure, StageError

    settings = _apply_overrides(
        get_settings(),
        kernel_dir=kernel_dir,
        version_suffix=suffix,
        jobs=jobs,
    )

    if not json_output:
        console.print("[green]Making Kernel:[/green]")

    try:
        result = run_build(settings, skip_clean=skip_clean)
    except StageError as e:
        if json_output:
            output = {
                "success": False,
                "stage": e.stage.value,
                "code": e.code,
                "message": str(e),
                "exit_code": e.exit_code,
                "log_path": str(e.log_path) if e.log_path else None,
            }
            print_json(json.dumps(output, indent=2))
        else:
            console.print(f"[red]{e.stage.value} stage failed: {escape(str(e))}[/red]")
            if e.exit_code is not None:
                console.print(f"  Exit code: {e.exit_code}")
            if e.log_path is not None:
                console.print(f"  Log: {e.log_path}")
            if isinstance(e, CollectFailure) and e.retryable:
                console.print("  The boot image is missing; re-run the compile.")
        raise typer.Exit(code=1) from None
    except BuildLockedError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        print_json(json.dumps({"success": True, **result.to_dict()}, indent=2))
        return

    console.print()
    console.print(
        f"[green]{result.newest_file or result.archive_path}[/green]", soft_wrap=True
    )
    console.print(
        f"[green]### build completed in ({result.elapsed_display} (mm:ss)).[/green]"
    )


@app.command("import")
def import_cmd(
    repo: Annotated[
        Path | None,
        typer.Option("--repo", "-r", help="Kernel repository (defaults to kernel dir)"),
    ] = None,
    fetch: Annotated[
        bool,
        typer.Option("--fetch", help="Fetch the remote even if it already exists"),
    ] = False,
) -> None:
    """Import the vendored module tree with git read-tree."""
    from kernelpack.types import ImportState
    from kernelpack.vendor.git import GitCommandError
    from kernelpack.vendor.importer import import_module

    settings = get_settings()
    repo_dir = repo if repo is not None else settings.kernel_dir

    console.print(f"Importing {settings.import_remote}...")
    try:
        outcome = import_module(repo_dir, settings, fetch=fetch)
    except GitCommandError as e:
        console.print(f"[red]Import failed: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if outcome.state is ImportState.PENDING_REMOVAL:
        console.print(f"[yellow]{outcome.prefix} removed.[/yellow]")
    else:
        if outcome.remote_added:
            console.print(f"  Added remote {settings.import_remote}")
        if outcome.fetched:
            console.print(f"  Fetched {settings.import_remote}")
    console.print(outcome.message)


if __name__ == "__main__":
    app()
