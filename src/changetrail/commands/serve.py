"""Command: changetrail serve - Run the audit query API."""

import typer
from rich.console import Console


console = Console()


def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the audit log query endpoint with uvicorn."""
    import uvicorn

    console.print(f"[bold cyan]Serving audit log API[/bold cyan] on http://{host}:{port}")
    uvicorn.run(
        "changetrail.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )
