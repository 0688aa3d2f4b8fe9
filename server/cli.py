from __future__ import annotations

import json
from typing import Optional

import typer
import uvicorn

from server.core.config import get_settings


cli = typer.Typer(name="popbar", help="Popbar CLI")
config_cli = typer.Typer(help="Configuration")

cli.add_typer(config_cli, name="config")


@cli.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
) -> None:
    """Start the chat completion API."""
    settings = get_settings()
    uvicorn.run("server.main:app", host=host or settings.host, port=port or settings.port)


@cli.command()
def overlay() -> None:
    """Launch the desktop overlay."""
    from desktop.popbar import run

    run()


@config_cli.command("show")
def config_show() -> None:
    """Print the effective settings (secrets masked)."""
    settings = get_settings()
    typer.echo(json.dumps(settings.masked(), ensure_ascii=False, indent=2))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
