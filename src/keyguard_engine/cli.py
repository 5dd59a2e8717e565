"""Typer CLI for Keyguard-Engine."""

from types import SimpleNamespace

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="keyguard", help="Keyguard-Engine: license key issuance and activation server")
console = Console()


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind host (default: KEYGUARD_HOST)"),
    port: int = typer.Option(None, help="Bind port (default: KEYGUARD_PORT)"),
):
    """Start the Keyguard-Engine API server."""
    import uvicorn
    from keyguard_engine.app import create_app
    from keyguard_engine.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting Keyguard-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def generators():
    """List the registered key generators."""
    from keyguard_engine.deps import get_registry

    registry = get_registry()
    sample = SimpleNamespace(id="", slug="", secret_key="")
    table = Table(title="Key generators")
    table.add_column("Identifier", style="bold")
    table.add_column("Version")
    table.add_column("Format")
    for identifier in registry.available():
        info = registry.info(identifier, sample)
        table.add_row(info["identifier"], info["version"], info["format"])
    console.print(table)


@app.command()
def inspect(
    key: str = typer.Argument(..., help="License key to inspect"),
    generator: str = typer.Option("signed-payload.v2", help="Generator identifier"),
    prefix: str = typer.Option(None, help="Key prefix the project uses"),
):
    """Decode a key's shape offline. The signature is not verified."""
    from keyguard_engine.common.exceptions import UnknownGenerator
    from keyguard_engine.deps import get_registry

    options = {"prefix": prefix} if prefix else {}
    try:
        gen = get_registry().make(
            generator, SimpleNamespace(id="", slug="", secret_key=""), options
        )
    except UnknownGenerator as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    decoded = gen.decode(key)
    if decoded is None:
        console.print(f"[bold red]UNRECOGNISED[/bold red] — not a {generator} key")
        raise typer.Exit(1)
    console.print(f"[bold green]{generator}[/bold green] — {gen.key_format}")
    console.print_json(data=decoded)


@app.command("encrypt-device-info")
def encrypt_device_info(
    secret: str = typer.Option(..., help="Project secret key"),
    method: str = typer.Option("aes-256-cbc", help="Encryption method of the project"),
):
    """Print this machine's encrypted device info, ready for an activate call."""
    from keyguard_engine.client import LicenseClient

    try:
        client = LicenseClient("http://localhost", secret, encryption_method=method)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    try:
        info = client.collect_device_info()
        console.print(f"[bold]deviceId[/bold] {info['deviceId']}")
        print(client.encrypt_device_info(info))
    finally:
        client.close()


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Keyguard-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
