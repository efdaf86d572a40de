"""Command-line interface for pr-pilot."""

import asyncio
import logging
import sys

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pr_pilot import __version__
from pr_pilot.checks import CheckSummary, CheckTimeoutError, ProgressUpdate, WaitResult
from pr_pilot.checks.models import DEFAULT_RETRY_PATTERNS
from pr_pilot.config import ConfigurationError, PrPilotConfig
from pr_pilot.models import CIRunSummary
from pr_pilot.orchestrator import PrPilotOrchestrator

app = typer.Typer(
    name="pr-pilot",
    help="Wait on pull request CI checks and auto-fix what fails",
    add_completion=False,
)
console = Console()

# Help text constants
VERBOSE_OUTPUT_HELP = "Verbose output"
ENV_FILE_HELP = "Path to custom environment file (default: .env.prpilot or .env)"
PR_NUMBER_HELP = "Pull request number"


def setup_logging(verbose: bool) -> None:
    """Setup logging configuration.

    Args:
        verbose: If True, enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    # HTTP request logs drown out poll progress
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def print_progress(update: ProgressUpdate) -> None:
    """Print a one-line progress report for a poll tick.

    Args:
        update: Progress snapshot from the poller
    """
    seconds = update.elapsed // 1000
    console.print(
        f"[dim]{seconds:>4}s[/dim] "
        f"[green]{update.passed} passed[/green], "
        f"[red]{update.failed} failed[/red], "
        f"[yellow]{update.pending} pending[/yellow] "
        f"of {update.total}"
    )
    for name in update.new_failures:
        console.print(f"      [red]✗ {name} failed[/red]")
    for name in update.new_passes:
        console.print(f"      [green]✓ {name} recovered[/green]")


def display_summary(summary: CheckSummary, show_files: bool = False, show_details: bool = False) -> None:
    """Display a check summary.

    Args:
        summary: Check summary to display
        show_files: List affected files under each failure
        show_details: Show suggested fixes, links and annotations
    """
    console.print(f"\n[bold]Checks: {summary.overall_status.value}[/bold]")
    console.print(
        f"  Total: {summary.total}  [green]Passed: {summary.passed}[/green]  "
        f"[red]Failed: {summary.failed}[/red]  [yellow]Pending: {summary.pending}[/yellow]  "
        f"Skipped: {summary.skipped}"
    )

    if not summary.failure_details:
        return

    table = Table(title="Failures")
    table.add_column("Check")
    table.add_column("Type")
    table.add_column("Summary")
    for detail in summary.failure_details:
        table.add_row(detail.check_name, detail.error_type.value, detail.summary)
    console.print(table)

    for detail in summary.failure_details:
        if not (show_files or show_details):
            break
        console.print(f"\n[bold]{detail.check_name}[/bold]")
        if show_files:
            for path in detail.affected_files:
                console.print(f"  - {path}")
        if show_details:
            if detail.suggested_fix:
                console.print(f"  Suggested fix: [cyan]{detail.suggested_fix}[/cyan]")
            if detail.url:
                console.print(f"  Details: {detail.url}")
            for annotation in detail.annotations:
                console.print(f"  {annotation.path}:{annotation.start_line}: {annotation.message}")


def display_wait_result(result: WaitResult) -> None:
    """Display how a wait ended.

    Args:
        result: Wait result to display
    """
    seconds = result.duration / 1000
    if result.success:
        console.print(f"\n[green]✓ Checks finished ({result.reason.value}) in {seconds:.0f}s[/green]")
    else:
        console.print(f"\n[red]✗ Checks failed ({result.reason.value}) after {seconds:.0f}s[/red]")
    if result.retries_used:
        console.print(f"  Retries used: {result.retries_used}")
    if result.summary is not None:
        display_summary(result.summary)


def display_run_summary(summary: CIRunSummary) -> None:
    """Display the outcome of an auto-fix run.

    Args:
        summary: Run summary to display
    """
    if summary.wait_result is not None:
        display_wait_result(summary.wait_result)
    elif summary.summary is not None:
        display_summary(summary.summary)

    if summary.fix_results:
        console.print("\n[bold]Auto-fix Summary:[/bold]")
        console.print(f"  Attempted: {len(summary.fix_results)}")
        console.print(f"  [green]Fixed: {summary.fixed}[/green]")


@app.command()
def checks(
    pr_number: int = typer.Argument(..., help=PR_NUMBER_HELP),
    files: bool = typer.Option(False, "--files", help="Show affected files"),
    details: bool = typer.Option(False, "--details", help="Show suggested fixes and annotations"),
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        help=ENV_FILE_HELP,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help=VERBOSE_OUTPUT_HELP,
    ),
) -> None:
    """Show the current CI check status of a pull request."""
    setup_logging(verbose)

    try:
        config = PrPilotConfig(env_file=env_file)
        orchestrator = PrPilotOrchestrator(config, console=console)

        summary = asyncio.run(orchestrator.get_status(pr_number, with_annotations=details))
        display_summary(summary, show_files=files, show_details=details)

        if summary.failed > 0:
            sys.exit(1)

    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@app.command()
def wait(
    pr_number: int = typer.Argument(..., help=PR_NUMBER_HELP),
    timeout: int | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Timeout in minutes (overrides ci.timeout)",
    ),
    no_fail_fast: bool = typer.Option(
        False,
        "--no-fail-fast",
        help="Keep waiting after critical failures",
    ),
    retry_flaky: bool = typer.Option(
        False,
        "--retry-flaky",
        help="Keep waiting on failures that look flaky",
    ),
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        help=ENV_FILE_HELP,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help=VERBOSE_OUTPUT_HELP,
    ),
) -> None:
    """Wait for a pull request's CI checks to finish."""
    setup_logging(verbose)

    try:
        config = PrPilotConfig(env_file=env_file)
        orchestrator = PrPilotOrchestrator(config, console=console)

        overrides: dict[str, object] = {}
        if timeout is not None:
            overrides["timeout"] = timeout * 60 * 1000
        if no_fail_fast:
            overrides["fail_fast"] = False
        if retry_flaky:
            overrides["retry_patterns"] = list(DEFAULT_RETRY_PATTERNS)

        console.print(f"[yellow]Waiting for checks on PR #{pr_number}...[/yellow]")
        result = asyncio.run(orchestrator.wait(pr_number, on_progress=print_progress, **overrides))
        display_wait_result(result)

        if not result.success:
            sys.exit(1)

    except CheckTimeoutError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@app.command()
def autofix(
    pr_number: int = typer.Argument(..., help=PR_NUMBER_HELP),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show fix commands without running them",
    ),
    metrics: bool = typer.Option(
        False,
        "--metrics",
        help="Print auto-fix metrics as JSON",
    ),
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        help=ENV_FILE_HELP,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help=VERBOSE_OUTPUT_HELP,
    ),
) -> None:
    """Wait for CI on a pull request, then auto-fix failing checks."""
    setup_logging(verbose)

    try:
        config = PrPilotConfig(env_file=env_file)
        orchestrator = PrPilotOrchestrator(config, console=console)

        summary = asyncio.run(
            orchestrator.run(
                pr_number,
                dry_run=True if dry_run else None,
                on_progress=print_progress,
            )
        )
        display_run_summary(summary)

        if metrics:
            console.print_json(orchestrator.metrics.export())

        if summary.has_failures:
            sys.exit(1)

    except CheckTimeoutError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@app.command()
def config(
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        help=ENV_FILE_HELP,
    ),
) -> None:
    """Show current configuration."""
    try:
        cfg = PrPilotConfig(env_file=env_file)
        console.print("[bold]Current Configuration:[/bold]\n")
        console.print(f"  GitHub API: {cfg.github_api_url}")
        if cfg.github_owner and cfg.github_repo:
            console.print(f"  Repository: {cfg.github_owner}/{cfg.github_repo}")
        else:
            console.print("  Repository: from origin remote")
        console.print("\n[bold]CI:[/bold]")
        console.print(f"  Wait for checks: {cfg.ci.wait_for_checks}")
        console.print(f"  Fail fast: {cfg.ci.fail_fast}")
        console.print(f"  Retry flaky: {cfg.ci.retry_flaky}")
        console.print(f"  Timeout: {cfg.ci.timeout} min")
        console.print("\n[bold]Auto-fix:[/bold]")
        console.print(f"  Enabled: {cfg.auto_fix.enabled}")
        console.print(f"  Max attempts: {cfg.auto_fix.max_attempts}")
        console.print(f"  Max changed lines: {cfg.auto_fix.max_changed_lines}")
        console.print(f"  Require tests: {cfg.auto_fix.require_tests}")
        console.print(f"  Create PR: {cfg.auto_fix.create_pr}")
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"pr-pilot version {__version__}")


if __name__ == "__main__":
    app()
