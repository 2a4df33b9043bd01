#!/usr/bin/env python3
"""
CLI interface for the statement ingestion pipeline.
"""
import logging
import typer
from pathlib import Path
from typing import Optional
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .core.errors import ColumnMappingIncomplete, StatementParseError
from .core.loader import load_workbook
from .core.runner import ParseOptions, parse_statement
from .models.schema import StatementImport
from .tools.sheet_dump import dump_workbook

app = typer.Typer(help="Korean bank and card statement parser")
console = Console()


def _configure_logging(verbose: bool):
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


def _require_file(file_path: Path):
    if not file_path.exists():
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(1)


def _report_parse_error(e: StatementParseError):
    console.print(f"[red]Error: {e.user_message}[/red]")
    console.print(f"[dim]{e}[/dim]")
    if isinstance(e, ColumnMappingIncomplete):
        console.print(f"Headers: {', '.join(e.header_map.headers)}")
        for role, header in e.header_map.describe().items():
            console.print(f"  {role}: {header}")
        console.print(f"[yellow]Missing: {', '.join(e.missing)}[/yellow]")


@app.command()
def parse(
    file_path: Path = typer.Argument(..., help="Path to .xls, .xlsx or .csv statement"),
    output: Optional[Path] = typer.Option(None, "--out", "-o", help="Output JSON file path"),
    dedupe: bool = typer.Option(False, "--dedupe", help="Remove duplicate transactions within the file"),
    strict: bool = typer.Option(False, "--strict", help="Match duplicates on date and amount only"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output")
):
    """Parse a statement export into canonical transaction JSON."""
    _configure_logging(verbose)
    _require_file(file_path)

    try:
        options = ParseOptions(deduplicate=dedupe, strict_duplicates=strict)
        result = parse_statement(file_path, options=options)
    except StatementParseError as e:
        _report_parse_error(e)
        raise typer.Exit(1)

    if output:
        output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        console.print(
            f"[green]✓ Parsed {len(result.transactions)} transactions. Output written to: {output}[/green]"
        )
    else:
        console.print_json(result.model_dump_json())


@app.command()
def detect(
    file_path: Path = typer.Argument(..., help="Path to statement file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output")
):
    """Show how a statement's sheet, header and columns are detected."""
    _configure_logging(verbose)
    _require_file(file_path)

    try:
        diagnostics = parse_statement(file_path).diagnostics
    except StatementParseError as e:
        _report_parse_error(e)
        raise typer.Exit(1)

    table = Table(title=f"Detection: {file_path.name}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Sheet", f"{diagnostics.sheet_name} ({diagnostics.sheet_reason})")
    table.add_row("Issuer", diagnostics.issuer or "-")
    if diagnostics.marker_text:
        table.add_row(
            "Marker",
            f"'{diagnostics.marker_text}' at row {diagnostics.marker_row + 1} "
            f"({diagnostics.section_format.value})"
        )
    table.add_row("Strategy", diagnostics.strategy.value)
    table.add_row("Header row", str(diagnostics.header_row + 1))
    table.add_row("Subheader rows merged", str(diagnostics.subheader_rows_merged))
    for role, header in diagnostics.header_map.describe().items():
        table.add_row(f"Column: {role}", header)
    table.add_row("Rows scanned", str(diagnostics.rows_scanned))
    table.add_row("Rows skipped", str(diagnostics.rows_skipped))
    console.print(table)


@app.command()
def inspect(
    file_path: Path = typer.Argument(..., help="Path to statement file"),
    rows: int = typer.Option(20, "--rows", "-n", help="Rows to show per sheet")
):
    """Dump the first rows of every sheet with marker and header annotations."""
    _require_file(file_path)

    try:
        workbook = load_workbook(file_path)
    except StatementParseError as e:
        console.print(f"[red]Error: {e.user_message}[/red]")
        raise typer.Exit(1)

    dump_workbook(workbook, max_rows=rows, console=console)


@app.command()
def validate(
    json_path: Path = typer.Argument(..., help="Path to JSON file to validate")
):
    """Validate a saved parse result against the schema."""
    try:
        data = StatementImport.model_validate_json(json_path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        console.print(f"[red]Validation failed: {e}[/red]")
        raise typer.Exit(1)

    summary = data.summary()
    console.print("[green]✓ JSON is valid[/green]")
    console.print(f"Sheet: {data.diagnostics.sheet_name}")
    console.print(f"Transactions: {summary['transaction_count']}")
    console.print(f"Income: {summary['income']:,.0f}")
    console.print(f"Expense: {summary['expense']:,.0f}")


if __name__ == "__main__":
    app()
