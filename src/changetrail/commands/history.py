"""Command: changetrail history - Show the audit history of an entity."""

import json

import typer
from rich.console import Console
from rich.table import Table

from changetrail.audit.schemas import Action, AuditRecord, AuditRecordResponse
from changetrail.commands.common import resolve_settings


console = Console()


def history(
    table_name: str = typer.Argument(..., help="Audited table name"),
    entity_id: str = typer.Argument(..., help="Identifier of the entity"),
    action: Action | None = typer.Option(
        None, "--action", "-a", help="Only show records of this action", case_sensitive=False
    ),
    acting_user: str | None = typer.Option(
        None, "--user", "-u", help="Only show records of this acting user"
    ),
    database_url: str | None = typer.Option(
        None, "--database-url", "-d", help="SQLAlchemy database URL (overrides settings)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print records as JSON"),
) -> None:
    """Show the audit history of an entity, most recent first."""
    from changetrail.audit.service import AuditLogService
    from changetrail.audit.store import SqlAlchemyAuditStore
    from changetrail.core.database import (
        create_engine_from_settings,
        create_schema,
        create_session_factory,
    )
    from changetrail.core.errors import AuditException

    settings = resolve_settings(database_url)
    engine = create_engine_from_settings(settings)
    try:
        create_schema(engine)
        service = AuditLogService(SqlAlchemyAuditStore(create_session_factory(engine)))
        records = service.find(
            table_name,
            entity_id,
            action=action,
            acting_user=acting_user,
            limit=settings.query_limit,
        )
    except AuditException as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e
    finally:
        engine.dispose()

    if as_json:
        payload = [
            AuditRecordResponse.from_record(r).model_dump(mode="json", by_alias=True)
            for r in records
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not records:
        console.print(f"[yellow]No audit records for {table_name} {entity_id}.[/yellow]")
        return

    console.print()
    for record in records:
        console.print(_record_table(record))
        console.print()


def _record_table(record: AuditRecord) -> Table:
    title = (
        f"#{record.id} {record.action.value} by {record.acting_user} "
        f"at {record.timestamp.isoformat(timespec='seconds')}"
    )
    table = Table(title=title, show_header=True)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Old value", style="red")
    table.add_column("New value", style="green")

    if not record.changes:
        table.add_row("[dim]no changes[/dim]", "", "")
    for change in record.changes:
        table.add_row(
            change.field_name,
            "" if change.old_value is None else change.old_value,
            "" if change.new_value is None else change.new_value,
        )
    return table
