"""
SCRIPTORIUM - Main CLI Application

Command-line interface over IR snapshots: structural validation, hashing,
versification remapping and loss budget checks.
"""
import json
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from core.errors import ScriptoriumError
from ir.hashing import compute_all_hashes, hash_corpus, verify_all_hashes
from ir.loss import LossBudget, LossClass
from ir.snapshot import load_corpus, load_loss_report, load_mapping_table, save_corpus, write_json
from ir.validation import validate, validate_no_unexpected_empty_text
from observability.logging import get_logger

app = typer.Typer(
    name="scriptorium",
    help="SCRIPTORIUM - Scripture IR tooling",
    add_completion=False
)

console = Console()
logger = get_logger("scriptorium.cli")


class OutputFormat(str, Enum):
    """Output format options."""
    JSON = "json"
    TABLE = "table"


def _fail(error: ScriptoriumError, output: OutputFormat = OutputFormat.TABLE) -> None:
    logger.debug("command_failed", error_code=error.error_code, message=error.message)
    if output == OutputFormat.JSON:
        console.print_json(json.dumps({"error": error.to_dict()}))
    else:
        console.print(f"[red]Error: {error.message}[/red]")
    raise typer.Exit(2)


@app.command("validate")
def validate_cmd(
    ir_file: Path = typer.Argument(..., help="IR snapshot (JSON)"),
    empty_text: bool = typer.Option(False, "--empty-text", help="Also flag unexpected empty text"),
    output: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
):
    """Validate the structure of an IR snapshot."""
    try:
        corpus = load_corpus(ir_file)
    except ScriptoriumError as e:
        _fail(e, output)

    errors = validate(corpus)
    if empty_text:
        errors.extend(validate_no_unexpected_empty_text(corpus))

    if output == OutputFormat.JSON:
        console.print_json(json.dumps({
            "valid": not errors,
            "errors": [{"path": error.path, "message": error.message} for error in errors],
        }))
        if errors:
            raise typer.Exit(1)
        return

    if not errors:
        console.print(f"[green]Valid: {corpus.id} ({len(corpus.documents)} documents)[/green]")
        return

    table = Table(title=f"Validation errors for {corpus.id or ir_file.name}")
    table.add_column("Path", style="cyan")
    table.add_column("Message", style="red")
    for error in errors:
        table.add_row(error.path, error.message)
    console.print(table)
    raise typer.Exit(1)


@app.command("hash")
def hash_cmd(
    ir_file: Path = typer.Argument(..., help="IR snapshot (JSON)"),
    verify: bool = typer.Option(False, "--verify", help="Verify stored content block hashes"),
    write: Optional[Path] = typer.Option(None, "--write", "-w", help="Recompute block hashes and save here"),
):
    """Print the canonical hash of an IR snapshot."""
    try:
        corpus = load_corpus(ir_file)
    except ScriptoriumError as e:
        _fail(e)

    if verify:
        mismatched = verify_all_hashes(corpus)
        if mismatched:
            for block_id in mismatched:
                console.print(f"[red]hash mismatch: {block_id}[/red]")
            raise typer.Exit(1)

    if write:
        compute_all_hashes(corpus)
        save_corpus(corpus, write)
        console.print(f"[green]Hashed snapshot saved to {write}[/green]")

    console.print(hash_corpus(corpus))


@app.command("remap")
def remap_cmd(
    ir_file: Path = typer.Argument(..., help="IR snapshot (JSON)"),
    table_file: Path = typer.Argument(..., help="Mapping table (JSON)"),
    output: Path = typer.Option(..., "--output", "-o", help="Where to write the remapped snapshot"),
    report: Optional[Path] = typer.Option(None, "--report", "-r", help="Save the loss report"),
):
    """Re-express an IR snapshot in another versification."""
    try:
        corpus = load_corpus(ir_file)
        table = load_mapping_table(table_file)
    except ScriptoriumError as e:
        _fail(e)

    remapped, loss_report = table.apply_to_corpus(corpus)
    save_corpus(remapped, output)

    if report:
        write_json(loss_report.to_dict(), report)

    color = "green" if not loss_report.has_loss() else "yellow"
    console.print(
        f"[{color}]{table.from_system} -> {table.to_system}: "
        f"{loss_report.loss_class.value}, {len(loss_report.lost_elements)} lost[/{color}]"
    )
    for element in loss_report.lost_elements:
        console.print(f"  - {element.path}: {element.reason}")
    logger.info("remap_written", output=str(output), loss_class=loss_report.loss_class.value)


@app.command("budget")
def budget_cmd(
    report_file: Path = typer.Argument(..., help="Loss report (JSON)"),
    max_class: str = typer.Option("L0", "--max", "-m", help="Maximum loss class (L0-L4)"),
    max_elements: int = typer.Option(0, "--max-elements", help="Maximum lost elements (0 = no cap)"),
    allow: List[str] = typer.Option([], "--allow", "-a", help="Element types that do not count"),
):
    """Check a loss report against a loss budget."""
    if not LossClass.is_valid(max_class):
        console.print(f"[red]Error: invalid loss class: {max_class}[/red]")
        raise typer.Exit(2)
    try:
        loss_report = load_loss_report(report_file)
    except ScriptoriumError as e:
        _fail(e)

    budget = LossBudget(
        max_loss_class=LossClass(max_class),
        max_lost_elements=max_elements,
        allowed_element_types=list(allow),
    )
    result = budget.check(loss_report)

    table = Table(title="Loss Budget")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Actual class", result.actual_class.value)
    table.add_row("Allowed class", result.allowed_class.value)
    table.add_row("Lost elements", str(result.lost_element_count))
    console.print(table)

    if result.within_budget:
        console.print("[green]Within budget[/green]")
        return
    for violation in result.violations:
        console.print(f"[red]  - {violation}[/red]")
    raise typer.Exit(1)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
