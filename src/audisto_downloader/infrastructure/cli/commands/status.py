"""Inspect the checkpoint of an unfinished download."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from audisto_downloader.domain.errors import CheckpointReadError
from audisto_downloader.infrastructure.adapters.checkpoint_manager import CheckpointManagerAdapter
from audisto_downloader.infrastructure.config.settings import Settings

app = typer.Typer(help="Show progress recorded for an output file")
console = Console()


@app.command()
def show(
    output: str = typer.Argument(..., help="Output file of the download"),
    config_path: str = typer.Option("audisto.toml", envvar="AUDISTO_CONFIG", help="Path to audisto.toml configuration file"),
) -> None:
    """
    Display the checkpoint sidecar of an output file.

    Examples:
        audisto-downloader status show pages.tsv
    """
    try:
        settings = Settings.from_toml(config_path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        raise typer.Exit(1)

    manager = CheckpointManagerAdapter(
        suffix=settings.paths.checkpoint_suffix,
        default_chunk_size=settings.transfer.initial_chunk_size,
    )

    try:
        checkpoint = manager.load_checkpoint(output)
    except CheckpointReadError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if checkpoint is None:
        console.print(f"[yellow]No download to resume for {output}[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"Checkpoint for {output}", show_header=True, header_style="bold")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Sidecar", str(manager.get_checkpoint_path(output)))
    table.add_row("Done", str(checkpoint.done_elements))
    table.add_row("Total", str(checkpoint.total_elements))
    table.add_row("Progress", f"{round(checkpoint.progress_percent(), 1):.1f}%")
    table.add_row("Chunk size", str(checkpoint.chunk_size))
    table.add_row("No details", str(checkpoint.no_details).lower())
    console.print(table)
