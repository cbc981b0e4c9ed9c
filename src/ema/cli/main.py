from typing import Annotated, Any

import httpx
import typer

from ema.config import get_settings

app = typer.Typer(
    name="ema",
    help="EMA - actor runtime with long-term memory",
)

snapshot_app = typer.Typer(help="Create or restore server snapshots")
app.add_typer(snapshot_app, name="snapshot")

PortOption = Annotated[str | None, typer.Option("--port", "-p", help="Local server port")]
AddrOption = Annotated[str | None, typer.Option("--addr", "-a", help="Server address, e.g. http://host:3000")]
NameOption = Annotated[str, typer.Option("--name", "-n", help="Snapshot name")]


def get_url(port: str | None, address: str | None) -> str:
    """Resolve the server base URL from ``--port`` / ``--addr``."""
    if address and port:
        raise typer.BadParameter("--addr and --port cannot be provided together")
    return (address or f"http://localhost:{port or '3000'}").rstrip("/")


def post(url: str, body: dict[str, Any]) -> Any:
    """POST JSON and return the decoded body (``None`` if it is not JSON).

    Exits with status 1 when the server cannot be reached.
    """
    try:
        response = httpx.post(url, json=body, timeout=30.0)
    except httpx.TransportError as e:
        typer.echo(f"Failed to communicate with the server at {url}: {e}", err=True)
        typer.echo('Hint: run "ema serve" to start a local server', err=True)
        raise typer.Exit(code=1)

    try:
        return response.json()
    except ValueError:
        return None


def create(port: PortOption = None, addr: AddrOption = None, name: NameOption = "default") -> None:
    """Create a snapshot of the server."""
    result = post(f"{get_url(port, addr)}/api/snapshot", {"name": name})
    if isinstance(result, dict) and result.get("fileName"):
        typer.echo(f"Snapshot created: {result['fileName']}")
    else:
        typer.echo("Failed to create snapshot", err=True)


def restore(port: PortOption = None, addr: AddrOption = None, name: NameOption = "default") -> None:
    """Restore a snapshot of the server."""
    result = post(f"{get_url(port, addr)}/api/snapshot/restore", {"name": name})
    if isinstance(result, dict) and result.get("message"):
        typer.echo(f"Snapshot restored: {result['message']}")
    else:
        typer.echo("Failed to restore snapshot", err=True)


snapshot_app.command("create")(create)
snapshot_app.command("c", hidden=True)(create)
snapshot_app.command("restore")(restore)
snapshot_app.command("r", hidden=True)(restore)


@app.command()
def serve(
    host: Annotated[str | None, typer.Option("--host", "-h")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p")] = None,
    reload: Annotated[bool, typer.Option("--reload")] = False,
) -> None:
    """Start the HTTP API server."""
    from ema.api.main import run_server

    run_server(host=host, port=port, reload=reload or None)


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()
    typer.echo("Current Configuration:")
    typer.echo(f"  Agent Name: {settings.agent.name}")
    typer.echo(f"  Model: {settings.agent.model}")
    typer.echo(f"  Max Concurrency: {settings.scheduler.max_concurrency}")
    typer.echo(f"  Rate Limit: {'Enabled' if settings.rate_limit.enabled else 'Disabled'}")
    typer.echo(f"  Memory Backend: {settings.memory.backend}")
    typer.echo(f"  Snapshot Directory: {settings.snapshot.directory}")


if __name__ == "__main__":
    app()
