"""
CLI interface for devswarm.

Commands:
- run: run a swarm over a JSON task list with the offline provider
- route: show the routing decision for a prompt
- validate: run the quality gate over a JSON solution
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Optional

import structlog
import typer
from rich.console import Console
from rich.markup import escape as rich_escape
from rich.panel import Panel
from rich.table import Table

from devswarm import __version__
from devswarm.agents.models import AgentSolution
from devswarm.config.manager import load_settings
from devswarm.config.settings import ModelTier, SwarmSettings
from devswarm.errors import DevSwarmError
from devswarm.logging_config import configure_logging
from devswarm.providers.echo import EchoInferenceProvider
from devswarm.providers.routed import RoutedInferenceProvider
from devswarm.quality.gate import QualityGate
from devswarm.quality.models import QualityReport
from devswarm.routing.router import ModelRouter
from devswarm.swarm.orchestrator import SwarmOrchestrator
from devswarm.tasks.models import Task, TaskPriority
from devswarm.workspace import FileSystemWorkspace

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="devswarm",
    help="devswarm - a swarm of autonomous software-development agents",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]devswarm[/bold blue] version {__version__}")
        raise typer.Exit()


def _settings(log_level: str | None) -> SwarmSettings:
    try:
        settings = load_settings()
    except DevSwarmError as e:
        console.print(f"[red]Error: {rich_escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    configure_logging(log_level or settings.logging.log_level, settings.logging.json_logs)
    return settings


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read {path}: {rich_escape(str(e))}[/red]")
        raise typer.Exit(1) from e


def _parse_priority(value: str) -> TaskPriority:
    try:
        return TaskPriority(value.lower())
    except ValueError:
        choices = ", ".join(p.value for p in TaskPriority)
        raise typer.BadParameter(f"expected one of {choices}") from None


def print_statistics(stats: dict[str, Any]) -> None:
    """Print queue, worker and router statistics."""
    tasks = Table(title="Tasks", show_header=True)
    tasks.add_column("Status", style="cyan")
    tasks.add_column("Count", justify="right")
    for status, count in stats["queue"]["by_status"].items():
        tasks.add_row(status, str(count))
    console.print(tasks)

    workers = Table(title="Workers", show_header=True)
    workers.add_column("Worker", style="cyan")
    workers.add_column("Specialization")
    workers.add_column("State")
    workers.add_column("Completed", justify="right")
    workers.add_column("Failed", justify="right")
    workers.add_column("Restarts", justify="right")
    for record in stats["workers"]:
        state = record["state"] if record["healthy"] else f"[red]{record['state']}[/red]"
        workers.add_row(
            record["worker_id"],
            record["specialization"],
            state,
            str(record["completed"]),
            str(record["failed"]),
            str(record["restarts"]),
        )
    console.print(workers)

    router = stats.get("router")
    if router:
        table = Table(title="Model Usage", show_header=True)
        table.add_column("Tier", style="cyan")
        table.add_column("Calls", justify="right")
        table.add_column("Cost (USD)", justify="right")
        for tier in ModelTier:
            table.add_row(
                tier.value,
                str(router["calls_by_tier"][tier.value]),
                f"{router['cost_by_tier'][tier.value]:.4f}",
            )
        console.print(table)
        console.print(
            f"[dim]Budget used: {router['budget_used_percentage']:.1f}% "
            f"of ${router['monthly_budget']:.2f}[/dim]"
        )


def print_report(report: QualityReport) -> None:
    """Print a quality report."""
    color = "green" if report.passed else "red"
    verdict = "PASSED" if report.passed else "FAILED"
    console.print(
        Panel(
            f"[bold {color}]{verdict}[/bold {color}]  "
            f"score {report.score:.0f} / threshold {report.threshold:.0f}",
            title="[bold]Quality Gate[/bold]",
            border_style=color,
        )
    )

    if report.issues:
        table = Table(show_header=True)
        table.add_column("Type", style="cyan")
        table.add_column("Severity")
        table.add_column("Penalty", justify="right")
        table.add_column("File", style="dim")
        table.add_column("Message")
        for issue in report.issues:
            table.add_row(
                issue.issue_type.value,
                issue.severity.value,
                f"{issue.penalty:.0f}",
                issue.file or "",
                rich_escape(issue.message),
            )
        console.print(table)

    for recommendation in report.recommendations:
        console.print(f"  [yellow]>[/yellow] {rich_escape(recommendation)}")


@app.command()
def run(
    tasks_file: Annotated[
        Path,
        typer.Argument(help="JSON file with a list of tasks"),
    ],
    workers: Annotated[
        Optional[str],
        typer.Option(
            "--workers", "-w",
            help="Comma-separated worker ids to start (default: all configured)",
        ),
    ] = None,
    duration: Annotated[
        float,
        typer.Option(
            "--duration", "-d",
            help="Maximum seconds to run before stopping",
        ),
    ] = 60.0,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Override the configured log level"),
    ] = None,
) -> None:
    """
    Run a swarm over a task list.

    Uses the offline echo provider behind the model router, so no model
    backend is required.

    Examples:

        devswarm run tasks.json

        devswarm run tasks.json --workers backend,qa --duration 30
    """
    settings = _settings(log_level)

    raw_tasks = _read_json(tasks_file)
    if not isinstance(raw_tasks, list):
        console.print("[red]Task file must contain a JSON list[/red]")
        raise typer.Exit(1)
    try:
        tasks = [Task.from_dict(item) for item in raw_tasks]
    except (TypeError, ValueError, AttributeError) as e:
        console.print(f"[red]Invalid task: {rich_escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    if workers:
        wanted = [w.strip() for w in workers.split(",") if w.strip()]
        known = {w.worker_id for w in settings.orchestrator.workers}
        unknown = [w for w in wanted if w not in known]
        if unknown:
            console.print(f"[red]Unknown workers: {', '.join(unknown)}[/red]")
            raise typer.Exit(1)
        settings.orchestrator.workers = [
            w for w in settings.orchestrator.workers if w.worker_id in wanted
        ]

    router = ModelRouter(settings.router)
    echo = EchoInferenceProvider()
    provider = RoutedInferenceProvider(router, {tier: echo for tier in ModelTier})

    async def _run() -> tuple[dict[str, Any], bool]:
        orchestrator = SwarmOrchestrator(provider, settings=settings, router=router)
        await orchestrator.start()
        try:
            for task in tasks:
                await orchestrator.submit_task(task)
            finished = await orchestrator.wait_until_idle(timeout=duration)
        finally:
            await orchestrator.stop(timeout=10)
        return orchestrator.get_statistics(), finished

    console.print(
        f"[bold]Running {len(tasks)} task(s) with "
        f"{len(settings.orchestrator.workers)} worker(s)[/bold]"
    )
    try:
        with console.status("[bold green]Swarm working..."):
            stats, finished = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)
    except DevSwarmError as e:
        console.print(f"[red]Error: {rich_escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    print_statistics(stats)
    if not finished:
        console.print(f"[yellow]Stopped after {duration:.0f}s with work remaining[/yellow]")


@app.command()
def route(
    prompt: Annotated[
        str,
        typer.Argument(help="Prompt to route"),
    ],
    priority: Annotated[
        str,
        typer.Option("--priority", "-p", help="Task priority (immediate, high, medium, low)"),
    ] = "medium",
    task_type: Annotated[
        str,
        typer.Option("--task-type", "-t", help="Task type, e.g. feature, bug, analysis"),
    ] = "feature",
) -> None:
    """Show which model tier a prompt would be routed to."""
    settings = _settings(None)
    router = ModelRouter(settings.router)
    task = Task(description=prompt, priority=_parse_priority(priority), task_type=task_type)

    choice = router.select_model(task, prompt)
    router.cancel(choice)

    table = Table(title="Routing Decision", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Tier", f"[bold]{choice.tier.value}[/bold]")
    table.add_row("Suggested", choice.suggested_tier.value)
    table.add_row("Complexity", f"{choice.complexity.score:.2f}")
    table.add_row("Keywords", ", ".join(choice.complexity.keywords) or "-")
    table.add_row("Estimated cost", f"${choice.estimated_cost:.4f}")
    table.add_row("Reasoning", rich_escape(choice.reasoning))
    console.print(table)


@app.command()
def validate(
    solution_file: Annotated[
        Path,
        typer.Argument(help="JSON file with an agent solution"),
    ],
    workspace: Annotated[
        Optional[Path],
        typer.Option(
            "--workspace",
            help="Project root for file-level checks",
            exists=True,
            file_okay=False,
            dir_okay=True,
        ),
    ] = None,
    threshold: Annotated[
        Optional[float],
        typer.Option("--threshold", help="Override the minimum acceptable score"),
    ] = None,
) -> None:
    """Run the quality gate over a solution; exits non-zero when it fails."""
    settings = _settings(None)
    data = _read_json(solution_file)
    if not isinstance(data, dict):
        console.print("[red]Solution file must contain a JSON object[/red]")
        raise typer.Exit(1)
    try:
        solution = AgentSolution.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        console.print(f"[red]Invalid solution: {rich_escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    gate = QualityGate(
        settings.quality,
        workspace=FileSystemWorkspace(workspace) if workspace is not None else None,
    )
    if threshold is not None:
        gate.set_min_acceptable_score(threshold)

    report = asyncio.run(gate.validate(solution))
    print_report(report)
    if not report.passed:
        raise typer.Exit(1)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version", "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version",
        ),
    ] = None,
) -> None:
    """
    devswarm - a swarm of autonomous software-development agents.

    Agents claim tasks from a priority queue, reason about them, and have
    their solutions checked by a quality gate.
    """


def cli() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
