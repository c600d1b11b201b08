"""Main changetrail CLI application."""

import typer
from rich.console import Console

from changetrail import __version__
from changetrail.commands import history, init_db, serve


console = Console()

app = typer.Typer(
    name="changetrail",
    help="Inspect and manage the audit trail.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register commands
app.command(name="init-db")(init_db.init_db)
app.command(name="history")(history.history)
app.command(name="serve")(serve.serve)


@app.callback(invoke_without_command=True)
def version_callback(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit."
    ),
) -> None:
    """changetrail CLI - Inspect and manage the audit trail."""
    if version:
        console.print(f"[bold cyan]changetrail[/bold cyan] version {__version__}")
        raise typer.Exit()


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
