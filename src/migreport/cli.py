"""CLI entry point for migreport.

Provides commands:
  - report: Discover project files and generate a Content SDK migration report
  - files: List discovered files and their roles without contacting the service
  - config: Manage the service API key in the system keyring
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import keyring
import typer
from keyring.errors import KeyringError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from migreport import __version__
from migreport.config import (
    DEFAULT_FINALIZE_TIMEOUT_MS,
    DEFAULT_SERVICE_VERSION,
    KEY_NAME,
    SERVICE_NAME,
    build_service_config,
    build_upload_limits,
    throttle_advisories,
)
from migreport.discovery.engine import DiscoveryResult
from migreport.exceptions import ConfigError, MigReportError
from migreport.models import (
    DEFAULT_THROTTLE,
    FileRole,
    JobSummary,
    RetrySettings,
)
from migreport.pipeline import discover_project, run_analysis_job
from migreport.upload.progress import UploadProgressTracker

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Analyse a Sitecore JSS Next.js codebase and generate a Content SDK migration report",
    rich_markup_mode="rich",
)
console = Console()

config_app = typer.Typer(help="Manage configuration (API key)")
app.add_typer(config_app, name="config")

PREVIEW_LIMIT = 50


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"migreport {__version__}")
        raise typer.Exit()


@app.callback()
def app_callback(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit",
        ),
    ] = None,
) -> None:
    """Content SDK migration report tooling."""


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Route migreport logs through Rich; optionally mirror to a debug file."""
    pkg_logger = logging.getLogger("migreport")
    pkg_logger.setLevel(logging.DEBUG if (verbose or debug) else logging.WARNING)
    pkg_logger.handlers.clear()

    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    pkg_logger.addHandler(handler)

    if debug:
        debug_dir = Path.home() / ".migreport"
        debug_dir.mkdir(exist_ok=True)
        fh = logging.FileHandler(debug_dir / "debug.log")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        pkg_logger.addHandler(fh)


def _parse_roles(roles: list[str] | None) -> frozenset[FileRole] | None:
    """Map ``--role`` values (case-insensitive wire names) to FileRoles."""
    if not roles:
        return None
    by_name = {role.value.lower(): role for role in FileRole}
    parsed: set[FileRole] = set()
    for name in roles:
        role = by_name.get(name.strip().lower())
        if role is None:
            raise ConfigError(
                f"Unknown role {name!r}. Choose from: "
                + ", ".join(r.value for r in FileRole if r is not FileRole.MODULE)
            )
        if role is FileRole.MODULE:
            raise ConfigError("Module files are never sent for analysis")
        parsed.add(role)
    return frozenset(parsed)


def _print_discovery(result: DiscoveryResult) -> None:
    console.print(
        f"[green]Found {result.relevant_count} relevant source files.[/green]"
    )
    console.print(
        f"[blue]Filtered to {result.selected_count} files for analysis.[/blue]"
    )


def _print_file_table(result: DiscoveryResult, title: str) -> None:
    count = result.selected_count
    table = Table(title=f"{title} (showing first {min(PREVIEW_LIMIT, count)})")
    table.add_column("File Path", style="cyan", no_wrap=True)
    table.add_column("Role", style="green")
    for record in result.records[:PREVIEW_LIMIT]:
        table.add_row(record.relative_path, record.role.value)
    if count > PREVIEW_LIMIT:
        table.add_row(f"... and {count - PREVIEW_LIMIT} more", "")
    console.print(table)


def _print_summary(summary: JobSummary) -> None:
    summary_table = Table(title="Analysis Summary")
    summary_table.add_column("Metric", style="bold")
    summary_table.add_column("Count", justify="right")

    summary_table.add_row("Total files", str(summary.total_files))
    summary_table.add_row("Succeeded", f"[green]{summary.completed}[/green]")
    summary_table.add_row("Timed out", f"[yellow]{len(summary.timed_out)}[/yellow]")
    summary_table.add_row("Failed", f"[red]{len(summary.failed)}[/red]")
    summary_table.add_row("Elapsed", f"{summary.elapsed_seconds:.1f}s")
    console.print(Panel(summary_table, title=f"Job {summary.job_id}"))

    if summary.timed_out or summary.failed:
        problems = Table(title="Files Not Analysed")
        problems.add_column("File Path", style="cyan", no_wrap=True)
        problems.add_column("Outcome")
        problems.add_column("Error", style="dim")
        for path in summary.timed_out:
            problems.add_row(path, "[yellow]timed out[/yellow]", "")
        for failure in summary.failed:
            problems.add_row(failure.relative_path, "[red]failed[/red]", failure.error_message)
        console.print(problems)

    console.print("\n[bold green]Your migration analysis report is ready![/bold green]")
    console.print(f"  Report:     [underline cyan]{summary.reports.report_url}[/underline cyan]")
    console.print(f"  PDF:        [underline cyan]{summary.reports.pdf_url}[/underline cyan]")
    console.print(
        f"  LLM prompt: [underline cyan]{summary.reports.llm_prompt_url}[/underline cyan]"
    )


@app.command()
def report(
    path: Annotated[
        Path,
        typer.Option("--path", "-p", help="Path to the root of the JSS project"),
    ],
    gitignore: Annotated[
        Optional[Path],
        typer.Option("--gitignore", help="Ignore file to apply instead of the project's .gitignore"),
    ] = None,
    api_key: Annotated[
        Optional[str],
        typer.Option("--api-key", help="API key (defaults to keyring, then MIGREPORT_API_KEY)"),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", "-d", help="Use the local service host and write a debug log"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show detailed log output"),
    ] = False,
    what_if: Annotated[
        bool,
        typer.Option("--what-if", help="Discover and list files without contacting the service"),
    ] = False,
    max_concurrent: Annotated[
        int,
        typer.Option("--max-concurrent", help="Max in-flight requests"),
    ] = DEFAULT_THROTTLE.max_concurrent,
    interval_cap: Annotated[
        int,
        typer.Option("--interval-cap", help="Max requests started per interval"),
    ] = DEFAULT_THROTTLE.interval_cap,
    interval_ms: Annotated[
        int,
        typer.Option("--interval-ms", help="Interval window in milliseconds"),
    ] = DEFAULT_THROTTLE.interval_ms,
    timeout_ms: Annotated[
        int,
        typer.Option("--timeout-ms", help="Per-file request timeout in milliseconds"),
    ] = DEFAULT_THROTTLE.timeout_ms,
    retries: Annotated[
        int,
        typer.Option("--retries", help="Max attempts per file upload"),
    ] = RetrySettings().retries,
    service_version: Annotated[
        str,
        typer.Option("--service-version", help="Service version to use"),
    ] = DEFAULT_SERVICE_VERSION,
    roles: Annotated[
        Optional[list[str]],
        typer.Option("--role", "-r", help="Role to analyse (repeatable; default: all but Module)"),
    ] = None,
) -> None:
    """Analyse a local codebase and generate a Content SDK migration report."""
    _configure_logging(verbose, debug)

    try:
        throttle, retry = build_upload_limits(
            max_concurrent, interval_cap, interval_ms, timeout_ms, retries
        )
        config = build_service_config(
            api_key,
            debug=debug,
            verbose=verbose,
            what_if=what_if,
            service_version=service_version,
            throttle=throttle,
            retry=retry,
            finalize_timeout_ms=DEFAULT_FINALIZE_TIMEOUT_MS,
            roles_of_interest=_parse_roles(roles),
        )
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    for advisory in throttle_advisories(throttle):
        logger.warning(advisory)
        console.print(f"[black on yellow]WARNING: {advisory}[/black on yellow]")

    console.print(f"[blue]Starting analysis of codebase at: {path}[/blue]")

    try:
        discovery, _rules = discover_project(path, config, gitignore)
    except MigReportError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    _print_discovery(discovery)

    if config.what_if:
        console.print(Panel("No requests were sent to the analysis service.", title="What If"))
        _print_file_table(discovery, "Files That Would Be Analysed")
        return

    if not discovery.records:
        console.print("[yellow]No files selected for analysis.[/yellow]")
        return

    tracker = UploadProgressTracker(total_files=discovery.selected_count, console=console)
    try:
        with tracker:
            summary = asyncio.run(
                run_analysis_job(discovery.records, config, events=tracker)
            )
    except MigReportError as e:
        console.print(f"\n[red]Analysis failed:[/red] {e}")
        raise typer.Exit(code=1)

    _print_summary(summary)


@app.command()
def files(
    path: Annotated[
        Path,
        typer.Option("--path", "-p", help="Path to the root of the JSS project"),
    ],
    gitignore: Annotated[
        Optional[Path],
        typer.Option("--gitignore", help="Ignore file to apply instead of the project's .gitignore"),
    ] = None,
    roles: Annotated[
        Optional[list[str]],
        typer.Option("--role", "-r", help="Role to include (repeatable; default: all but Module)"),
    ] = None,
) -> None:
    """List the files a report would analyse, with their roles."""
    try:
        config = build_service_config(what_if=True, roles_of_interest=_parse_roles(roles))
        discovery, rules = discover_project(path, config, gitignore)
    except MigReportError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    _print_discovery(discovery)

    selected = {record.relative_path for record in discovery.records}
    table = Table(title="Relevant Files")
    table.add_column("File Path", style="cyan", no_wrap=True)
    table.add_column("Role", style="green")
    table.add_column("Analysed", justify="center")
    for record in discovery.relevant:
        mark = "[green]yes[/green]" if record.relative_path in selected else "[dim]no[/dim]"
        table.add_row(record.relative_path, record.role.value, mark)
    console.print(table)

    by_role = Table(title=f"Relevant Files by Role (ignore rules: {rules.source})")
    by_role.add_column("Role", style="bold")
    by_role.add_column("Count", justify="right")
    for role in FileRole:
        if role in discovery.by_role:
            by_role.add_row(role.value, str(discovery.by_role[role]))
    console.print(by_role)


@config_app.command("set-api-key")
def set_api_key(
    key: Annotated[
        str,
        typer.Argument(help="Service API key to store in system keyring"),
    ],
) -> None:
    """Store the service API key in the system keyring (service: migreport)."""
    if not key or key.strip() == "":
        console.print("[red]Error:[/red] API key cannot be empty")
        raise typer.Exit(code=1)

    try:
        keyring.set_password(SERVICE_NAME, KEY_NAME, key)
        console.print(
            f"[green]OK[/green] API key stored in system keyring (service: {SERVICE_NAME})"
        )
    except KeyringError as e:
        console.print(f"[red]Error:[/red] Failed to store API key: {e}")
        raise typer.Exit(code=1)


@config_app.command("get-api-key")
def show_api_key() -> None:
    """Display the stored service API key (masked)."""
    try:
        api_key = keyring.get_password(SERVICE_NAME, KEY_NAME)
    except KeyringError as e:
        console.print(f"[red]Error:[/red] Failed to read API key: {e}")
        raise typer.Exit(code=1)
    if not api_key:
        console.print(
            "[yellow]No API key found in keyring.[/yellow]\n"
            "Set it with: [bold]migreport config set-api-key YOUR_KEY[/bold]"
        )
        raise typer.Exit(code=1)

    console.print(f"[green]API key:[/green] {mask_key(api_key)}")
    console.print(f"[dim](stored in service: {SERVICE_NAME})[/dim]")


@config_app.command("remove-api-key")
def remove_api_key() -> None:
    """Delete the stored service API key from the system keyring."""
    try:
        existing = keyring.get_password(SERVICE_NAME, KEY_NAME)
        if not existing:
            console.print(
                "[yellow]Warning:[/yellow] No API key found in keyring.\n"
                "Nothing to remove."
            )
            return

        keyring.delete_password(SERVICE_NAME, KEY_NAME)
        console.print(
            f"[green]OK[/green] API key removed from system keyring (service: {SERVICE_NAME})"
        )
    except KeyringError as e:
        console.print(f"[red]Error:[/red] Failed to remove API key: {e}")
        raise typer.Exit(code=1)


def mask_key(api_key: str) -> str:
    """Mask all but the first 8 characters of a key."""
    if len(api_key) > 8:
        return api_key[:8] + "*" * (len(api_key) - 8)
    return api_key[:2] + "*" * max(1, len(api_key) - 2)


if __name__ == "__main__":
    app()
