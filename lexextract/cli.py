"""CLI interface for lexextract."""

import asyncio
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from . import __version__
from .config import WORKER_MODES, Config
from .exceptions import ExtractionError
from .models import DocumentFile, ExtractionProgress, ExtractionResult, QualityReport
from .ocr import OCRWorkerCoordinator
from .processor import DocumentProcessor
from .quality import validate_ocr_quality
from .utils import clean_extracted_text, setup_logging

console = Console()
progress_console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__, prog_name="lexextract")
def cli() -> None:
    """lexextract CLI - Extract text from PDFs, images and text files."""
    # Values from a local .env never override the real environment
    load_dotenv(dotenv_path=Path.cwd() / ".env")


def _load_config(
    verbose: bool, worker: Optional[str] = None, language: Optional[str] = None
) -> Config:
    config = Config.from_env()
    overrides: Dict[str, Any] = {}
    if verbose:
        overrides["verbose"] = True
    if worker:
        overrides["worker_mode"] = worker
    if language:
        overrides["ocr_language"] = language
    return dataclasses.replace(config, **overrides) if overrides else config


async def _extract(
    file: DocumentFile, config: Config, ocr_scanned_pdfs: bool, progress: Progress
) -> ExtractionResult:
    task = progress.add_task("Starting...", total=100)

    def on_progress(event: ExtractionProgress) -> None:
        progress.update(
            task, completed=event.progress, description=event.message or event.status.value
        )

    # The worker is only created if the document actually needs OCR.
    coordinator = OCRWorkerCoordinator(config=config)
    processor = DocumentProcessor(
        config, coordinator=coordinator, ocr_scanned_pdfs=ocr_scanned_pdfs
    )
    try:
        return await processor.extract(file, on_progress)
    finally:
        coordinator.terminate()


def run_extraction(
    file_path: str,
    config: Config,
    mime_type: Optional[str] = None,
    ocr_scanned_pdfs: bool = False,
) -> ExtractionResult:
    """Extract a file from disk while showing a progress bar."""
    file = DocumentFile.from_path(Path(file_path), mime_type=mime_type)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=progress_console,
        transient=True,
    ) as progress:
        return asyncio.run(_extract(file, config, ocr_scanned_pdfs, progress))


def _quality_table(report: QualityReport) -> Table:
    table = Table(title="Extraction quality")
    table.add_column("Check", style="cyan")
    table.add_column("Value")
    verdict = "[green]good[/green]" if report.is_good_quality else "[red]poor[/red]"
    table.add_row("Quality", verdict)
    table.add_row("Score", f"{report.quality_score:.2f}")
    for suggestion in report.suggestions:
        table.add_row("Suggestion", suggestion)
    return table


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write the extracted text (or JSON) to this file instead of stdout",
)
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
@click.option("--clean", is_flag=True, help="Normalize the extracted text")
@click.option(
    "--quality", "show_quality", is_flag=True, help="Report extraction quality"
)
@click.option(
    "--worker",
    type=click.Choice(WORKER_MODES),
    help="Execution context for OCR work (default: process)",
)
@click.option("--language", "-l", help="OCR language code, e.g. eng or eng+deu")
@click.option("--mime-type", help="Override the MIME type guessed from the name")
@click.option(
    "--ocr-scanned-pdfs",
    is_flag=True,
    help="Run OCR on PDF pages that have no text layer",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def extract(
    file_path: str,
    output: Optional[str],
    as_json: bool,
    clean: bool,
    show_quality: bool,
    worker: Optional[str],
    language: Optional[str],
    mime_type: Optional[str],
    ocr_scanned_pdfs: bool,
    verbose: bool,
) -> None:
    """Extract text from a PDF, image or plain text file."""
    try:
        config = _load_config(verbose, worker, language)
        setup_logging(config.verbose)
        result = run_extraction(file_path, config, mime_type, ocr_scanned_pdfs)
    except ExtractionError as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)

    text = clean_extracted_text(result.text) if clean else result.text
    report = validate_ocr_quality(result) if show_quality else None

    if as_json:
        payload = result.to_dict()
        if clean:
            payload["clean_text"] = text
        if report is not None:
            payload["quality"] = report.to_dict()
        rendered = json.dumps(payload, indent=2, ensure_ascii=False)
    else:
        rendered = text

    if output:
        Path(output).write_text(rendered, encoding="utf-8")
        console.print(
            f"[green]Extracted {result.metadata.page_count} page(s) to {output}[/green]"
        )
    else:
        click.echo(rendered)

    if report is not None and not as_json:
        console.print(_quality_table(report))


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--worker",
    type=click.Choice(WORKER_MODES),
    help="Execution context for OCR work (default: process)",
)
@click.option("--language", "-l", help="OCR language code, e.g. eng or eng+deu")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def quality(
    file_path: str, worker: Optional[str], language: Optional[str], verbose: bool
) -> None:
    """Extract a file and report how trustworthy the text looks."""
    try:
        config = _load_config(verbose, worker, language)
        setup_logging(config.verbose)
        result = run_extraction(file_path, config)
    except ExtractionError as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)

    report = validate_ocr_quality(result)
    console.print(
        f"[green]Pages:[/green] {result.metadata.page_count}  "
        f"[green]Confidence:[/green] {result.confidence:.2f}"
    )
    console.print(_quality_table(report))


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
