"""End-of-run report rendering."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from rwboot.errors import BootstrapError
from rwboot.orchestrator import SetupResult, StepStatus

_STATUS_STYLE = {
    StepStatus.SUCCESS: ("✔ success", "green"),
    StepStatus.SKIPPED: ("– skipped", "cyan"),
    StepStatus.FAILED_NON_FATAL: ("! failed (non-fatal)", "yellow"),
    StepStatus.FAILED_FATAL: ("✘ failed", "bold red"),
}


def quick_start(result: SetupResult) -> list[str]:
    pm = result.package_manager or "npm"
    return [
        f"cd {result.project_name}",
        f"{pm} dev                    # Start development server",
        f"{pm} test                   # Run tests",
        "./scripts/test.sh                # Alternative test runner",
        "npm run release                  # Build and deploy to Cloudflare",
    ]


def _steps_table(result: SetupResult) -> Table:
    table = Table(title="Setup steps", show_lines=False)
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Detail", overflow="fold")
    for outcome in result.steps:
        label, style = _STATUS_STYLE[outcome.status]
        detail = outcome.detail
        if outcome.cause is not None and outcome.status is StepStatus.FAILED_NON_FATAL:
            detail = f"[{outcome.cause.value}] {detail}"
        table.add_row(Text(outcome.name), Text(label, style=style), Text(detail))
    return table


def render_text(result: SetupResult, console: Console) -> None:
    """Print the itemized report followed by quick-start and next steps."""
    console.print()
    console.print(_steps_table(result))
    console.print()

    completed = sum(1 for s in result.steps if s.status is StepStatus.SUCCESS)
    skipped = sum(1 for s in result.steps if s.status is StepStatus.SKIPPED)
    failed = sum(1 for s in result.steps if s.status is StepStatus.FAILED_NON_FATAL)
    console.print(f"Completed: {completed}  Skipped: {skipped}  Failed (non-fatal): {failed}")
    console.print(f"Project created at: {escape(result.project_dir)}", highlight=False)
    if result.environment is not None:
        signal = f" ({result.environment.signal})" if result.environment.signal else ""
        console.print(f"Environment: {result.environment.environment_class}{escape(signal)}", highlight=False)

    console.print()
    console.print("[bold]Quick start:[/bold]")
    for line in quick_start(result):
        console.print(f"  {line}", highlight=False, markup=False)

    if result.next_steps:
        console.print()
        console.print("[bold]Next steps:[/bold]")
        for index, line in enumerate(result.next_steps, 1):
            console.print(f"  {index}. {line}", highlight=False, markup=False)


def render_json(result: SetupResult) -> str:
    payload: dict[str, Any] = {"ok": True, "result": result.model_dump(mode="json")}
    return json.dumps(payload, indent=2, ensure_ascii=False)


def render_error_json(error: BootstrapError, result: SetupResult | None) -> str:
    payload: dict[str, Any] = {
        "ok": False,
        "error": error.to_dict(),
        "result": result.model_dump(mode="json") if result is not None else None,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def render_error(error: BootstrapError, console: Console) -> None:
    """Diagnostic text for a fatal error, including the remediation list."""
    console.print(f"[bold red]Error:[/bold red] {escape(error.message)}", highlight=False)
    missing = error.details.get("missing")
    if missing:
        for item in missing:
            found = f" (current: {item['found']})" if item.get("found") else ""
            console.print(f"  - {item['name']}{found}", highlight=False, markup=False)
        console.print()
        console.print("Installation guides:")
        for item in missing:
            if item.get("remedy"):
                console.print(f"  - {item['remedy']}", highlight=False, markup=False)
    attempts = error.details.get("attempts")
    if attempts:
        console.print("Attempted:")
        for attempt in attempts:
            console.print(f"  - {attempt}", highlight=False, markup=False)
    if error.suggestion:
        console.print(f"[bold blue]Suggestion:[/bold blue] {escape(error.suggestion.fix)}", highlight=False)
