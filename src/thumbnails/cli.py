"""Local trigger for the thumbnail pipeline.

Feeds a saved Event Grid event to the pipeline, the way the event delivery
does in production, and inspects the audit log.

Example:
    python -m src.thumbnails handle event.json
    python -m src.thumbnails audit https://account.blob.core.windows.net/images/photo.jpg
"""
import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.thumbnails.audit import AuditStore
from src.thumbnails.errors import PipelineError, SettingsError
from src.thumbnails.models import RunOutcome, RunState
from src.thumbnails.pipeline import ThumbnailPipeline
from src.thumbnails.settings import PipelineSettings

app = typer.Typer(help="Moderation-gated thumbnail pipeline")
console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Global options for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def _load_settings() -> PipelineSettings:
    try:
        return PipelineSettings.from_env()
    except SettingsError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(code=1)


@app.command()
def handle(
    event_file: Path = typer.Argument(..., help="Event Grid event JSON (object or one-element array)", exists=True, dir_okay=False),
):
    """Run the pipeline once for a blob-created event."""
    settings = _load_settings()

    try:
        with open(event_file, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid event JSON: {e}[/red]")
        raise typer.Exit(code=1)

    pipeline = ThumbnailPipeline(settings)
    try:
        outcome = asyncio.run(pipeline.handle_payload(payload))
    except (PipelineError, ValueError) as e:
        console.print(f"[bold red]✗ Run failed:[/bold red] {e}")
        raise typer.Exit(code=1)

    _print_outcome(outcome)


@app.command()
def audit(
    image_url: str = typer.Argument(..., help="URL of the evaluated image"),
    as_json: bool = typer.Option(False, "--json", help="Print the stored moderation results as JSON"),
):
    """Show the audit records of one image."""
    settings = _load_settings()
    store = AuditStore(settings.audit_db_path)

    if as_json:
        console.print_json(store.export_json(image_url))
        return

    records = store.get_by_url(image_url)
    if not records:
        console.print(f"[yellow]No audit records for {image_url}[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"Moderation audit: {image_url}")
    table.add_column("#", style="cyan")
    table.add_column("Evaluated")
    table.add_column("Adult")
    table.add_column("Racy")
    table.add_column("Faces")
    table.add_column("Text")
    table.add_column("Decision")

    for r in records:
        c = r.result.classification
        decision = "[green]APPROVED[/green]" if r.approved else f"[red]REJECTED[/red] {'; '.join(r.reasons)}"
        table.add_row(
            str(r.id),
            r.evaluated_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"{c.adult_score:.3f}" if c.adult_score is not None else "N/A",
            f"{c.racy_score:.3f}" if c.racy_score is not None else "N/A",
            str(r.result.face_detection.face_count),
            (r.result.text_detection.text or "-").strip()[:40],
            decision,
        )

    console.print(table)


def _print_outcome(outcome: RunOutcome):
    if outcome.state == RunState.WRITTEN:
        console.print(f"[bold green]✓ Thumbnail written:[/bold green] {outcome.destination}")
    else:
        console.print(f"[yellow]Skipped:[/yellow] {outcome.reason}")

    if outcome.decision is not None:
        for reason in outcome.decision.reasons:
            console.print(f"  - {reason}")

    path = " → ".join(s.value for s in outcome.history + [outcome.state])
    console.print(f"[dim]{path}[/dim]")


if __name__ == "__main__":
    app()
