"""Command: changetrail init-db - Create the audit tables."""

import typer
from rich.console import Console

from changetrail.commands.common import resolve_settings


console = Console()


def init_db(
    database_url: str | None = typer.Option(
        None, "--database-url", "-d", help="SQLAlchemy database URL (overrides settings)"
    ),
) -> None:
    """Create the audit_log and audit_log_changes tables.

    Existing tables are left untouched.
    """
    from sqlalchemy.exc import SQLAlchemyError

    from changetrail.core.database import create_engine_from_settings, create_schema

    settings = resolve_settings(database_url)
    engine = create_engine_from_settings(settings)
    try:
        create_schema(engine)
    except SQLAlchemyError as e:
        console.print(f"[red]Error:[/red] Failed to create tables: {e}")
        raise typer.Exit(1) from e
    finally:
        engine.dispose()

    console.print(f"[green]✓[/green] Audit tables ready at {engine.url.render_as_string()}")
