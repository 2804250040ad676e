"""Command-line interface for the Milepost tool."""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

import typer
from dotenv import find_dotenv, load_dotenv
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import trackers
from .errors import InvalidInterval, InvariantViolation, TrackerError
from .schedule import Interval, generate_descriptors
from .sync import SyncReport, run_sync

app = typer.Typer(help="Keep recurring GitLab/GitHub milestones ahead of schedule")

DEFAULT_INTERVAL = Interval.DAILY.value
DEFAULT_ADVANCE_DAYS = 30
DEFAULT_URL = "gitlab.com"
LOGGER_NAME = "milepost"


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.handlers.clear()
    package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=verbose, markup=False))
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    package_logger.propagate = False


def _parse_interval(value: str) -> Interval:
    try:
        return Interval.parse(value)
    except InvalidInterval as exc:
        raise typer.BadParameter(str(exc), param_hint="--interval") from exc


def _parse_reference_date(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise typer.BadParameter(f"'{value}' is not an ISO date (YYYY-MM-DD).", param_hint="--reference-date") from exc


def _format_date(value: Optional[date]) -> str:
    return value.isoformat() if value else "-"


def _render_report(report: SyncReport) -> None:
    plan = report.planned
    if plan.is_noop and report.ok:
        typer.echo(f"All {len(plan.satisfied)} milestones in the window are already open; nothing to do.")
        return

    title = "Planned milestone changes (dry run)" if report.dry_run else "Milestone changes"
    table = Table(title=title)
    table.add_column("Action", style="cyan")
    table.add_column("Title")
    table.add_column("Due")
    if report.dry_run:
        for descriptor in plan.to_create:
            table.add_row("would create", escape(descriptor.title), _format_date(descriptor.due_date))
        for milestone in plan.to_reactivate:
            table.add_row("would reopen", escape(milestone.title), _format_date(milestone.due_date))
    else:
        for milestone in report.created:
            table.add_row("created", escape(milestone.title), _format_date(milestone.due_date))
        for milestone in report.reopened:
            table.add_row("reopened", escape(milestone.title), _format_date(milestone.due_date))
        for failure in report.failures:
            table.add_row(f"[red]{failure.action} failed[/red]", escape(failure.title), escape(failure.error))
    rprint(table)
    typer.echo(f"{len(plan.satisfied)} milestones already open.")


@app.callback()
def main() -> None:
    """Milepost creates upcoming milestones and reopens closed ones in the window."""

    load_dotenv(find_dotenv(usecwd=True))


@app.command("plan")
def plan_command(
    interval: str = typer.Option(DEFAULT_INTERVAL, "--interval", "-i", help="Milestone interval: daily, weekly or monthly"),
    advance: int = typer.Option(DEFAULT_ADVANCE_DAYS, "--advance", "-a", min=0, help="Days ahead to generate milestones for"),
    reference_date: Optional[str] = typer.Option(None, "--reference-date", help="ISO date the window starts on (defaults to today)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show the milestones a sync would want, without contacting a tracker."""

    _configure_logging(verbose)
    kind = _parse_interval(interval)
    start = _parse_reference_date(reference_date)
    descriptors = generate_descriptors(kind, advance, start)

    table = Table(title=f"{kind.value.capitalize()} milestones from {start.isoformat()}")
    table.add_column("Title", style="cyan")
    table.add_column("Start")
    table.add_column("Due")
    for descriptor in descriptors:
        table.add_row(descriptor.title, descriptor.start_date.isoformat(), descriptor.due_date.isoformat())
    rprint(table)


@app.command("sync")
def sync_command(
    token: str = typer.Option(..., "--token", envvar="MILEPOST_TOKEN", help="GitLab or GitHub API token"),
    url: str = typer.Option(DEFAULT_URL, "--url", envvar="MILEPOST_URL", help="GitLab or GitHub API base URL"),
    namespace: str = typer.Option(..., "--namespace", envvar="MILEPOST_NAMESPACE", help="Namespace (group or owner) of the project"),
    project: str = typer.Option(..., "--project", envvar="MILEPOST_PROJECT", help="Project or repository name"),
    interval: str = typer.Option(DEFAULT_INTERVAL, "--interval", "-i", help="Milestone interval: daily, weekly or monthly"),
    advance: int = typer.Option(DEFAULT_ADVANCE_DAYS, "--advance", "-a", min=0, help="Days ahead to generate milestones for"),
    reference_date: Optional[str] = typer.Option(None, "--reference-date", help="ISO date the window starts on (defaults to today)"),
    api: Optional[str] = typer.Option(None, "--api", help="Skip detection and use 'gitlab' or 'github'"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report planned changes without writing to the tracker"),
    timeout: float = typer.Option(trackers.DEFAULT_TIMEOUT, "--timeout", help="HTTP timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Create upcoming milestones and reopen closed ones inside the window."""

    if api is not None and api.strip().lower() not in trackers.FLAVORS:
        raise typer.BadParameter(f"Unknown API '{api}'. Use gitlab or github.", param_hint="--api")
    _configure_logging(verbose)
    kind = _parse_interval(interval)
    start = _parse_reference_date(reference_date)

    try:
        gateway = trackers.build_gateway(url, token, namespace, project, api=api, timeout=timeout)
        report = run_sync(gateway, kind, advance, start, dry_run=dry_run)
    except (TrackerError, InvariantViolation) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    _render_report(report)
    if not report.ok:
        failed: List[str] = [failure.title for failure in report.failures]
        typer.echo(f"{len(failed)} milestone(s) failed: {', '.join(failed)}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
