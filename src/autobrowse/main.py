"""
Autobrowse - CLI Entry Point.

Configuration Priority:
    1. CLI arguments (--visible, --limit, etc.)
    2. Environment variables (AUTOBROWSE__NAVIGATION__MAX_ITERATIONS, etc.)
    3. Config file (autobrowse.yaml)

Usage:
    autobrowse search "playwright python docs"
    autobrowse browse "What does acme.io charge for the pro plan?"
    autobrowse extract https://example.com
    autobrowse approve conv-1 <action-digest>
"""

import asyncio
import json
import logging
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from autobrowse import __version__
from autobrowse.config import load_config
from autobrowse.control.security.approval import sign_approval_token
from autobrowse.core.navigation import NavigationPlanner, TurnResult
from autobrowse.llm.openai_provider import OpenAIProvider
from autobrowse.search.service import SearchService
from autobrowse.tools.web_tools import WebToolRuntime
from autobrowse.utils.logging import setup_logging

logger = logging.getLogger(__name__)

# Create the CLI app
app = typer.Typer(
    name="autobrowse",
    help="Autonomous web-browsing agent core",
    add_completion=False,
)

console = Console()


def _load_settings(config: Optional[str], verbose: bool, visible: bool = False) -> Any:
    settings = load_config(config_path=config)
    if visible:
        settings = settings.merge_with({"browser": {"headless": False}})
    setup_logging("DEBUG" if verbose else settings.logging.level, settings.logging.file)
    return settings


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of results (1-20)"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose output"),
):
    """
    Run an aggregated web search.

    Examples:
        autobrowse search "python 3.13 release notes" -n 5
    """
    settings = _load_settings(config, verbose)

    async def _search():
        service = SearchService.from_settings(settings)
        try:
            return await service.search(query, limit=limit)
        finally:
            await service.close()

    try:
        results = asyncio.run(_search())
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    if as_json:
        _print_json({"query": query, "results": [r.to_dict() for r in results]})
        return

    if not results:
        console.print("[yellow]⚠ No results[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("#", width=3)
    table.add_column("Title")
    table.add_column("URL", style="dim")
    table.add_column("Engine", width=16)
    table.add_column("Score", width=7)
    for result in results:
        table.add_row(str(result.rank), result.title[:60], result.url, result.engine, f"{result.score:.2f}")
    console.print(table)


def _print_turn(result: TurnResult) -> None:
    status = "green" if result.stop_reason.value == "enough_info" else "yellow"
    console.print(f"\n[{status}]■ Stopped: {result.stop_reason.value}[/{status}]")
    console.print(f"  Pages visited: {len(result.visited_urls)} (iterations: {result.iterations})")

    missing = result.task_frame.missing_inputs
    if missing:
        console.print(f"  [yellow]Needs input:[/yellow] {', '.join(missing)}")

    for doc in result.documents:
        console.print(Panel(
            doc.main_text[:600] + ("..." if len(doc.main_text) > 600 else ""),
            title=f"[bold]{doc.title or doc.url}[/bold]",
            subtitle=doc.url,
            border_style="blue",
        ))

    for error in result.errors:
        console.print(f"  [red]✗ {error}[/red]")


@app.command()
def browse(
    message: str = typer.Argument(..., help="What you want found on the web"),
    session: str = typer.Option("cli", "--session", "-s", help="Session id"),
    visible: bool = typer.Option(False, "--visible", "-v", help="Run with visible browser"),
    use_llm: bool = typer.Option(False, "--llm", help="Use the configured LLM as judge and planner"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose output"),
):
    """
    Browse for one message: search or discover pages, read them, stop when enough.

    Examples:
        autobrowse browse "pricing on acme.io" --visible
    """
    settings = _load_settings(config, verbose, visible)
    if use_llm:
        settings = settings.merge_with({"llm": {"enabled": True}})

    if not as_json:
        console.print(Panel.fit(
            f"[bold blue]🌐 Autobrowse[/bold blue]\n"
            f"[dim]Session:[/dim] {session}\n"
            f"[dim]Message:[/dim] {message}"
            + (f"\n[dim]Judge:[/dim] {settings.llm.model}" if use_llm else ""),
            border_style="blue",
        ))

    async def _browse() -> TurnResult:
        runtime = WebToolRuntime.from_settings(settings)
        llm = OpenAIProvider.from_settings(settings) if use_llm else None
        planner = NavigationPlanner.from_settings(settings, runtime, llm=llm)
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                disable=as_json,
            ) as progress:
                task = progress.add_task("Browsing...", total=None)
                result = await planner.run_turn(session, message)
                progress.update(task, completed=True)
            return result
        finally:
            await runtime.close()
            if llm is not None:
                await llm.close()

    try:
        result = asyncio.run(_browse())
    except KeyboardInterrupt:
        console.print("[dim]Interrupted[/dim]")
        raise typer.Exit(130)

    if as_json:
        _print_json(result.to_dict())
    else:
        _print_turn(result)


@app.command()
def extract(
    url: str = typer.Argument(..., help="Page to extract"),
    session: str = typer.Option("cli", "--session", "-s", help="Session id"),
    visible: bool = typer.Option(False, "--visible", "-v", help="Run with visible browser"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose output"),
):
    """Open a page and print its main content, headings and links."""
    settings = _load_settings(config, verbose, visible)

    async def _extract():
        runtime = WebToolRuntime.from_settings(settings)
        try:
            await runtime.invoke("web_session_start", {"startUrl": url}, session)
            return await runtime.invoke("web_extract_structured", {"url": url}, session)
        finally:
            await runtime.close()

    data = asyncio.run(_extract())

    if as_json:
        _print_json(data)
        return

    console.print(Panel(
        data.get("mainText", "")[:2000],
        title=f"[bold]{data.get('title') or data.get('url')}[/bold]",
        subtitle=data.get("url"),
        border_style="blue",
    ))
    if data.get("headings"):
        console.print("\n[bold]Headings:[/bold]")
        for heading in data["headings"]:
            console.print(f"  • {heading}")
    console.print(f"\n[dim]{len(data.get('links') or [])} links[/dim]")


@app.command()
def approve(
    session_id: str = typer.Argument(..., help="Session the action belongs to"),
    action_digest: str = typer.Argument(..., help="Digest printed with the confirmation request"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Print the confirmation token for a gated high-risk action."""
    settings = load_config(config_path=config)
    token = sign_approval_token(
        session_id,
        action_digest.strip(),
        settings.policy.confirm_secret.get_secret_value(),
    )
    typer.echo(token)


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]Autobrowse[/bold] v{__version__}")


if __name__ == "__main__":
    app()
