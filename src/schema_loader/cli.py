"""Command line interface for the schema loader."""

import logging
import sys
from json import dumps
from pathlib import Path
from sys import stdout
from typing import Literal

from cyclopts import App
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from loader import (
    LoaderError,
    LoaderOptions,
    Schema,
    load_schema,
    read_config,
    summarize_schema,
)
from loader.types import ClassSummary

app = App(help="Generate ORM classes from a database catalog")

type Format = Literal["table", "json"]

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[bold red]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print success message to stderr."""
    err_console.print(f"[bold green]✓[/] {message}")


def print_info(message: str) -> None:
    """Print info message to stderr."""
    err_console.print(f"[bold blue]i[/] {message}")


def setup_logging(*, debug: bool) -> None:
    """Route log records and warnings to stderr through rich."""
    logging.basicConfig(
        level=logging.INFO if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    logging.captureWarnings(capture=True)


def build_options(  # noqa: PLR0913
    dsn: str,
    config: Path | None,
    db_schema: str | None,
    constraint: str | None,
    exclude: str | None,
    *,
    drop_db_schema: bool,
    relationships: bool,
    debug: bool,
) -> LoaderOptions:
    """Merge options from a config file with command line options."""
    options: LoaderOptions = read_config(config) if config else {}
    options["dsn"] = dsn
    if db_schema:
        options["db_schema"] = db_schema
    if constraint:
        options["constraint"] = constraint
    if exclude:
        options["exclude"] = exclude
    if drop_db_schema:
        options["drop_db_schema"] = True
    if debug:
        options["debug"] = True
    options["relationships"] = relationships
    return options


def run_load(options: LoaderOptions) -> Schema:
    """Load the schema behind a spinner, exiting on loader errors."""
    setup_logging(debug=bool(options.get("debug")))
    print_info(f"Database: {options.get('dsn')}")
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=err_console,
        ) as progress:
            progress.add_task("Loading schema...", total=None)
            return load_schema(options)
    except LoaderError as e:
        print_error(str(e))
        sys.exit(1)


def format_tables_table(schema: Schema) -> None:
    """Format table names and monikers as a rich table."""
    table = Table(title="Loaded Tables")
    table.add_column("Table", style="bold cyan")
    table.add_column("Moniker", style="bold yellow")
    for name in schema.tables():
        table.add_row(name, schema.moniker(name))
    console.print(table)


def format_class_table(summary: ClassSummary) -> None:
    """Format one generated class as a rich table."""
    table = Table(title=f"{summary['moniker']} ({summary['table']})")
    table.add_column("Column", style="bold cyan")
    table.add_column("Key", style="bold yellow")
    for column in summary["columns"]:
        table.add_row(column, "PK" if column in summary["primary_key"] else "")
    for relationship in summary["relationships"]:
        columns = ", ".join(f"{k} = {v}" for k, v in relationship["columns"].items())
        table.add_row(
            f"{relationship['accessor']} -> {relationship['target']}",
            f"{relationship['kind']} ({columns})",
        )
    console.print(table)


@app.command
def tables(  # noqa: PLR0913
    dsn: str,
    *,
    config: Path | None = None,
    db_schema: str | None = None,
    constraint: str | None = None,
    exclude: str | None = None,
    drop_db_schema: bool = False,
    fmt: Format = "table",
    debug: bool = False,
) -> None:
    """List the tables that would be loaded and their monikers."""
    options = build_options(
        dsn,
        config,
        db_schema,
        constraint,
        exclude,
        drop_db_schema=drop_db_schema,
        relationships=False,
        debug=debug,
    )
    schema = run_load(options)

    if fmt == "json":
        monikers = {name: schema.moniker(name) for name in schema.tables()}
        stdout.write(dumps(monikers))
    elif fmt == "table":
        format_tables_table(schema)
    schema.dispose()

    print_success(f"Loaded {len(schema.tables())} tables")


@app.command
def load(  # noqa: PLR0913
    dsn: str,
    *,
    config: Path | None = None,
    db_schema: str | None = None,
    constraint: str | None = None,
    exclude: str | None = None,
    drop_db_schema: bool = False,
    relationships: bool = True,
    fmt: Format = "table",
    debug: bool = False,
) -> None:
    """Load a schema and show its classes, columns and relationships."""
    options = build_options(
        dsn,
        config,
        db_schema,
        constraint,
        exclude,
        drop_db_schema=drop_db_schema,
        relationships=relationships,
        debug=debug,
    )
    schema = run_load(options)
    summary = summarize_schema(schema)

    if fmt == "json":
        stdout.write(dumps(summary))
    elif fmt == "table":
        for class_summary in summary["classes"]:
            format_class_table(class_summary)
    schema.dispose()

    print_success(f"Loaded {len(summary['classes'])} classes")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
