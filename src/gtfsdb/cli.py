# src/gtfsdb/cli.py
"""gtfsdb Command Line Interface.

Entry point for the gtfsdb CLI tool. This is the only layer that turns
errors into exit codes and formatted messages.
"""

from __future__ import annotations

from pathlib import Path

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from gtfsdb import __version__
from gtfsdb.contracts import (
    InvalidInputError,
    RepairConvergenceError,
    SchemaConfigurationError,
    StoreError,
    ValidationMode,
    ValidationOutcome,
    Violation,
)
from gtfsdb.core.config import GtfsdbSettings, load_settings, render_settings

__all__ = [
    "app",
]

# Violations listed in an error panel before the rest are summarised
_PANEL_DETAIL_LIMIT = 20

app = typer.Typer(
    name="gtfsdb",
    help="gtfsdb: validate, repair and clip GTFS feeds stored in SQLite.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"gtfsdb version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """gtfsdb: validate, repair and clip GTFS feeds stored in SQLite."""
    # Configure logging before any subcommand runs
    from gtfsdb.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)


def _format_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]❌ {title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _load_settings_or_exit(settings: Path | None) -> GtfsdbSettings:
    """Load settings from a file, or return defaults when no file is given."""
    if settings is None:
        return GtfsdbSettings()

    settings_path = settings.expanduser()
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        details = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            details.append(f"{loc}: {error['msg']}")
        _format_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and allowed values.",
        )
        raise typer.Exit(1) from None


def _violation_details(violations: tuple[Violation, ...]) -> list[str]:
    details = [str(violation) for violation in violations[:_PANEL_DETAIL_LIMIT]]
    remaining = len(violations) - _PANEL_DETAIL_LIMIT
    if remaining > 0:
        details.append(f"... and {remaining} more")
    return details


@app.command()
def validate(
    database: Path = typer.Argument(..., help="Path to the feed database (SQLite)."),
    mode: ValidationMode | None = typer.Option(
        None,
        "--mode",
        "-m",
        case_sensitive=False,
        help="strict (fail on violations), repair (delete violating rows) or permissive (report only). "
        "Default: from settings, else strict.",
    ),
    max_passes: int | None = typer.Option(
        None,
        "--max-passes",
        min=1,
        help="Deletion rounds allowed in repair mode (default: from settings or 100).",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Check every foreign key of a feed database.

    Examples:

        # Fail if any foreign key is broken
        gtfsdb validate feed.db

        # Delete broken rows and everything that depended on them
        gtfsdb validate feed.db --mode repair
    """
    from gtfsdb.core.integrity import IntegrityValidator
    from gtfsdb.core.schema import GTFS_SCHEMA
    from gtfsdb.core.store import FeedStore

    config = _load_settings_or_exit(settings)
    effective_mode = mode if mode is not None else config.validation.mode
    effective_passes = max_passes if max_passes is not None else config.validation.max_repair_passes

    validator = IntegrityValidator(GTFS_SCHEMA, max_passes=effective_passes)
    try:
        with FeedStore.open(
            database,
            GTFS_SCHEMA,
            read_only=effective_mode is not ValidationMode.REPAIR,
            synchronous=config.store.synchronous if effective_mode is ValidationMode.REPAIR else None,
        ) as store:
            result = validator.validate(store, effective_mode)
    except InvalidInputError as e:
        _format_error(
            title="Invalid Input",
            message=f"{len(e.violations)} foreign key violation(s) in {database.name}",
            details=_violation_details(e.violations),
            hint="Re-run with --mode repair to delete violating rows, or --mode permissive to only report them.",
        )
        raise typer.Exit(1) from None
    except RepairConvergenceError as e:
        _format_error(
            title="Repair Did Not Converge",
            message=str(e),
            hint="Raise --max-passes, or check the schema for deletion cycles.",
        )
        raise typer.Exit(1) from None
    except StoreError as e:
        _format_error(
            title="Store Error",
            message=str(e),
            hint="Check that the path points to a readable SQLite feed database.",
        )
        raise typer.Exit(1) from None

    if result.outcome is ValidationOutcome.VALID:
        typer.echo(f"✅ {database.name} is valid ({result.passes} pass(es))")
        return

    for violation in result.violations:
        typer.secho(f"  {violation}", fg=typer.colors.YELLOW)
    if result.outcome is ValidationOutcome.REPAIRED:
        typer.echo(f"⚠️  Repaired {database.name}: {len(result.violations)} violation(s), {result.deleted} row(s) deleted in {result.passes} pass(es)")
        for entity, count in result.deleted_by_entity.items():
            typer.echo(f"  {entity}: {count}")
    else:
        typer.echo(f"⚠️  {len(result.violations)} violation(s) ignored in {database.name}")


@app.command()
def clip(
    database: Path = typer.Argument(..., help="Path to the input feed database (SQLite). Never modified."),
    bbox: str = typer.Option(
        ...,
        "--bbox",
        "-b",
        help="Region to keep as MIN_LON,MIN_LAT,MAX_LON,MAX_LAT.",
    ),
    out: Path | None = typer.Option(
        None,
        "--out",
        "-o",
        help="Output database (default: <input stem>_clipped.db next to the input).",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Write a copy of a feed keeping only what serves stops inside a bounding box.

    Examples:

        gtfsdb clip feed.db --bbox 13.0,52.3,13.8,52.7 --out berlin.db
    """
    from gtfsdb.core.clip import BoundingBox
    from gtfsdb.core.clip import clip as clip_feed

    config = _load_settings_or_exit(settings)
    try:
        region = BoundingBox.parse(bbox)
    except ValueError as e:
        _format_error(
            title="Invalid Bounding Box",
            message=str(e),
            hint="Use decimal degrees, e.g. --bbox 13.0,52.3,13.8,52.7",
        )
        raise typer.Exit(1) from None

    output = out if out is not None else database.with_name(f"{database.stem}_clipped.db")
    try:
        result = clip_feed(database, output, region, settings=config)
    except RepairConvergenceError as e:
        _format_error(title="Repair Did Not Converge", message=str(e))
        raise typer.Exit(1) from None
    except StoreError as e:
        _format_error(
            title="Store Error",
            message=str(e),
            hint="Check that the input is a readable SQLite feed database and the output location is writable.",
        )
        raise typer.Exit(1) from None
    except (KeyError, ValueError) as e:
        _format_error(title="Clip Failed", message=str(e))
        raise typer.Exit(1) from None

    typer.echo(f"✅ Wrote {output} ({result.total_deleted} row(s) removed)")
    for entity, count in result.deleted_by_entity().items():
        typer.echo(f"  {entity}: {count}")


@app.command()
def order(
    anchor: str = typer.Option(
        "stops",
        "--anchor",
        "-a",
        help="Entity filtered first.",
    ),
) -> None:
    """Show the order in which a prune visits GTFS entities."""
    from gtfsdb.core.schema import GTFS_SCHEMA

    try:
        components = GTFS_SCHEMA.deletion_order(anchor)
    except KeyError:
        _format_error(
            title="Unknown Entity",
            message=f"'{anchor}' is not a GTFS entity",
            details=list(GTFS_SCHEMA.entity_names),
        )
        raise typer.Exit(1) from None
    except SchemaConfigurationError as e:
        _format_error(title="Schema Error", message=str(e))
        raise typer.Exit(1) from None

    for index, component in enumerate(components, start=1):
        label = component[0] if len(component) == 1 else f"{{{', '.join(component)}}} (cycle)"
        typer.echo(f"{index:>3}. {label}")


@app.command("config")
def show_config(
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Print the effective settings as YAML."""
    config = _load_settings_or_exit(settings)
    typer.echo(render_settings(config), nl=False)


if __name__ == "__main__":
    app()
