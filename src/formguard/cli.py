from __future__ import annotations

import logging

import typer

from formguard.config import Settings
from formguard.storage import init_storage

cli = typer.Typer(add_completion=False)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_server(host: str | None, port: int | None) -> None:
    import uvicorn

    from formguard.app import create_app

    settings = Settings()
    configure_logging(settings)
    resolved_host = host or settings.host
    resolved_port = port if port is not None else settings.port
    uvicorn.run(create_app(settings), host=resolved_host, port=resolved_port)


@cli.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    host: str | None = typer.Option(None, help="Address to bind"),
    port: int | None = typer.Option(None, help="Port to bind"),
) -> None:
    ctx.obj = {"host": host, "port": port}
    if ctx.invoked_subcommand is None:
        run_server(host, port)


@cli.command()
def run(
    ctx: typer.Context,
    host: str | None = typer.Option(None, help="Address to bind"),
    port: int | None = typer.Option(None, help="Port to bind"),
) -> None:
    """Start the web server."""
    base = ctx.obj or {}
    resolved_host = host or base.get("host")
    resolved_port = port if port is not None else base.get("port")
    run_server(resolved_host, resolved_port)


@cli.command()
def init() -> None:
    """Create the configured storage (tables or document file)."""
    settings = Settings()
    configure_logging(settings)
    storage = init_storage(settings)
    storage.dispose()
    target = settings.json_path if settings.storage_backend == "json" else settings.sqlite_path
    typer.echo(f"Storage ready: {target}")


if __name__ == "__main__":
    cli()
