"""tinybird-migrate CLI"""

from __future__ import annotations
import os
import logging
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table as RichTable

from .errors import WriteError
from .migrate import DEFAULT_OUTPUT, MigrateOptions, run_migrate
from .models import MigrationResult

# Set up logging and console
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(
    help="tinybird-migrate - Convert Tinybird datafiles into Python SDK definitions."
)


def env_default(name: str, default: str | None = None) -> str | None:
    """Get environment variable with TB_MIGRATE_ prefix."""
    return os.environ.get(f"TB_MIGRATE_{name}", default)


def env_flag(name: str, default: bool) -> bool:
    """Boolean environment variable with TB_MIGRATE_ prefix."""
    value = env_default(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _print_issues(result: MigrationResult) -> None:
    if result.errors:
        table = RichTable(title="Migration errors")
        table.add_column("File", style="cyan")
        table.add_column("Resource", style="green")
        table.add_column("Kind", style="yellow")
        table.add_column("Error", style="red")
        for error in result.errors:
            table.add_row(error.file_path, error.resource_name, error.resource_kind or "-", error.message)
        console.print(table)

    for warning in result.warnings:
        console.print(f"⚠️  {warning.file_path}: {warning.message}", style="yellow")


@app.command()
def migrate(
    patterns: Optional[List[str]] = typer.Argument(
        None, help="Datafiles, directories or glob patterns to migrate"
    ),
    cwd: str = typer.Option(
        env_default("CWD", "."), help="Project root used to resolve patterns; env TB_MIGRATE_CWD"
    ),
    out: str = typer.Option(
        env_default("OUT", DEFAULT_OUTPUT), help="Generated module path; env TB_MIGRATE_OUT"
    ),
    strict: bool = typer.Option(
        env_flag("STRICT", True), "--strict/--no-strict",
        help="Fail files with unsupported directives; env TB_MIGRATE_STRICT",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the generated module instead of writing it"),
    force: bool = typer.Option(
        env_flag("FORCE", False), "--force", help="Overwrite an existing output file; env TB_MIGRATE_FORCE"
    ),
    verbose: bool = typer.Option(False, help="Enable verbose logging"),
):
    """Migrate .datasource, .pipe and .connection files to a Python module."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    options = MigrateOptions(
        cwd=os.path.abspath(cwd),
        patterns=patterns or [],
        out=out,
        strict=strict,
        dry_run=dry_run,
        force=force,
    )

    try:
        result = run_migrate(options)
    except WriteError as e:
        console.print(f"❌ Error: {e}", style="red")
        raise typer.Exit(1)

    if result.dry_run and result.output_content:
        console.print("\n📝 Generated module:")
        console.print("=" * 60)
        console.print(result.output_content, markup=False, highlight=False)
        console.print("=" * 60)

    _print_issues(result)

    console.print(
        f"\n✓ Migrated {len(result.migrated)} resources "
        f"({len(result.migrated_names('connection'))} connections, "
        f"{len(result.migrated_names('datasource'))} datasources, "
        f"{len(result.migrated_names('pipe'))} pipes)"
    )
    if result.migrated and not result.dry_run:
        console.print(f"  - Output: {result.output_path}")

    if not result.success:
        console.print(f"❌ {len(result.errors)} errors", style="red")
        raise typer.Exit(1)


@app.command()
def version():
    """Show version information."""
    from . import __version__
    console.print(f"tinybird-migrate v{__version__}")


if __name__ == "__main__":
    app()
