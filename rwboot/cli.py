"""Command-line entry point for rwboot."""

from __future__ import annotations

import traceback
from pathlib import Path

import click
import typer
from rich.console import Console

from rwboot import __version__
from rwboot.config import SKIP_ENV_VAR, BootstrapConfig
from rwboot.errors import BootstrapError, InternalError
from rwboot.exit_codes import ExitCode
from rwboot.logging import setup_logging
from rwboot.orchestrator import SetupOrchestrator
from rwboot.output import OUTPUT_CHOICES, OutputMode, resolve_no_color, resolve_output_mode
from rwboot.report import render_error, render_error_json, render_json, render_text

app = typer.Typer(
    add_completion=False,
    help="Bootstrap a RedwoodSDK sandbox project with Cloudflare bindings.",
)


def _version_callback(value: bool) -> None:
    if value:
        click.echo(f"rwboot {__version__}")
        raise typer.Exit()


def _build_orchestrator(config: BootstrapConfig) -> SetupOrchestrator:
    return SetupOrchestrator(config)


def _fail(error: BootstrapError, mode: OutputMode, err_console: Console, orchestrator: SetupOrchestrator | None) -> None:
    if mode is OutputMode.JSON:
        click.echo(render_error_json(error, orchestrator.result if orchestrator else None))
    else:
        render_error(error, err_console)
    raise typer.Exit(error.exit_code)


@app.command()
def bootstrap(
    project_name: str | None = typer.Argument(
        None,
        help="Name of the project directory to create (default: rwsdk-sandbox).",
    ),
    directory: Path | None = typer.Option(
        None,
        "--directory",
        "-C",
        exists=True,
        file_okay=False,
        resolve_path=True,
        help="Existing parent directory for the project (default: current directory).",
    ),
    skip_cloud: bool = typer.Option(
        False,
        "--skip-cloud",
        help=f"Skip Cloudflare provisioning (same as {SKIP_ENV_VAR}=true).",
    ),
    output: str | None = typer.Option(
        None,
        "--output",
        "-o",
        click_type=click.Choice(OUTPUT_CHOICES, case_sensitive=False),
        help="Report format.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Detect tooling, scaffold the project and wire up Cloudflare bindings."""
    no_color = resolve_no_color(no_color)
    setup_logging("verbose" if verbose else "quiet" if quiet else "normal", no_color=no_color)
    console = Console(no_color=no_color)
    err_console = Console(stderr=True, no_color=no_color)

    mode = OutputMode.TEXT
    orchestrator: SetupOrchestrator | None = None
    try:
        config = BootstrapConfig(
            overrides={
                "project_name": project_name,
                "skip_cloud": True if skip_cloud else None,
            }
        )
        mode = resolve_output_mode(output, config.output)
        orchestrator = _build_orchestrator(config)

        if mode is OutputMode.TEXT:
            console.print("[bold]RedwoodSDK Coding Agent Sandbox Setup[/bold]")
            if config.skip_cloud:
                console.print("Cloudflare setup disabled - focusing on core development environment")
            else:
                console.print(f"To skip Cloudflare setup: export {SKIP_ENV_VAR}=true")

        result = orchestrator.run(parent_dir=directory)
    except KeyboardInterrupt:
        err_console.print()
        err_console.print("[yellow]Warning:[/yellow] Setup interrupted by user")
        raise typer.Exit(int(ExitCode.INTERRUPTED)) from None
    except BootstrapError as exc:
        _fail(exc, mode, err_console, orchestrator)
        return
    except click.ClickException:
        raise
    except Exception as exc:
        details = {"traceback": traceback.format_exc()} if verbose else None
        _fail(InternalError(f"Internal error: {exc}", details=details), mode, err_console, orchestrator)
        return

    if mode is OutputMode.JSON:
        click.echo(render_json(result))
    else:
        render_text(result, console)
        console.print()
        console.print("[green]RedwoodSDK coding agent sandbox environment ready![/green]")

    if result.exit_code:
        raise typer.Exit(result.exit_code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
