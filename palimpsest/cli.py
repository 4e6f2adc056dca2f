"""CLI commands for Palimpsest."""

import secrets
import sys
from pathlib import Path

import click


@click.group()
@click.version_option(package_name="palimpsest")
def cli():
    """Palimpsest - an auditable revision ledger for text content."""
    pass


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8080, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--workers", default=1, type=int, help="Number of worker processes")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def serve(host, port, reload, workers, log_level):
    """Run the Palimpsest server."""
    import asyncio
    import signal

    from hypercorn.asyncio import serve as hypercorn_serve
    from hypercorn.config import Config

    config = Config()
    config.bind = [f"{host}:{port}"]
    config.loglevel = log_level.upper()
    config.accesslog = "-"
    config.errorlog = "-"
    config.include_server_header = False

    if reload or workers > 1:
        # Reloading and multiple workers need hypercorn's process runner
        from hypercorn.run import run

        config.application_path = "palimpsest.asgi:app"
        config.use_reloader = reload
        config.workers = workers
        sys.exit(run(config))

    from palimpsest.asgi import app

    shutdown_event = asyncio.Event()

    async def _serve():
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown_event.set)
        await hypercorn_serve(app, config, shutdown_trigger=shutdown_event.wait)

    asyncio.run(_serve())


@cli.command()
@click.option("--length", default=32, type=int, help="Number of random bytes")
def secret(length):
    """Generate a value for SECRET_KEY."""
    click.echo(secrets.token_urlsafe(length))


def _run_alembic(project_root: Path, args: list[str]) -> None:
    """Build an Alembic Config programmatically and run the given command."""
    from alembic.config import Config, CommandLine

    package_dir = Path(__file__).parent

    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        alembic_ini = package_dir / "alembic.ini"
        if not alembic_ini.exists():
            click.echo("Error: Could not find alembic.ini", err=True)
            sys.exit(1)

    cfg = Config(str(alembic_ini))
    cfg.set_main_option("script_location", str(package_dir / "alembic"))

    cmd = CommandLine()
    options = cmd.parser.parse_args(args)
    if not hasattr(options, "cmd"):
        cmd.parser.error("too few arguments")
    else:
        cfg.cmd_opts = options
        fn, positional, kwarg = options.cmd
        fn(
            cfg,
            *[getattr(options, k, None) for k in positional],
            **{k: getattr(options, k, None) for k in kwarg},
        )


@cli.command(
    context_settings=dict(
        ignore_unknown_options=True,
        allow_extra_args=True,
    )
)
@click.pass_context
def db(ctx):
    """Run database migrations via Alembic.

    \b
    Examples:
        palimpsest db upgrade head     # Create or update the ledger tables
        palimpsest db downgrade -1     # Undo one migration
        palimpsest db current          # Show current revision
        palimpsest db history          # Show migration history
    """
    project_root = Path.cwd()

    if not ctx.args:
        click.echo(ctx.get_help())
        return

    _run_alembic(project_root, ctx.args)


if __name__ == "__main__":
    cli()
