"""
Command line interface for Stashgate.

Commands:
    stashgate install       Fetch the asset manifest into the static generation
    stashgate activate      Activate the installed version and delete stale generations
    stashgate generations   List generations in the store
    stashgate fetch URL     Serve one request through the gateway
    stashgate serve         Run the local interception server
"""

import asyncio
import functools
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from stashgate._version import __version__
from stashgate.config import GatewayConfig, load_config
from stashgate.core.models import RequestDescriptor, ResourceKind
from stashgate.exceptions import StashgateError
from stashgate.gateway.gateway import Gateway
from stashgate.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class CLIContext:
    config: GatewayConfig


pass_context = click.make_pass_decorator(CLIContext)


def handle_stashgate_error(func):
    """
    Decorator to handle StashgateError exceptions in CLI commands.

    Catches StashgateError exceptions and displays user-friendly error messages.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except StashgateError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    return wrapper


def build_gateway(config: GatewayConfig) -> Gateway:
    """Create the gateway used by CLI commands."""
    return Gateway(config)


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    required=False,
    help="Path to config.yaml (default: $STASHGATE_CONFIG)",
)
@click.option("--log-level", "-l", default=None, help="Override the configured log level")
@click.version_option(__version__, prog_name="stashgate")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]):
    """Stashgate request-interception caching gateway."""
    try:
        config = load_config(config_path)
    except StashgateError as e:
        raise click.ClickException(str(e)) from e

    setup_logging(
        level=log_level or config.logging.level,
        log_file=Path(config.logging.file).expanduser() if config.logging.file else None,
        json_format=config.logging.json_format,
    )
    ctx.obj = CLIContext(config=config)


@cli.command(name="install")
@pass_context
@handle_stashgate_error
def install(ctx: CLIContext):
    """
    Install the configured version.

    Fetches every asset of the manifest; nothing is stored unless all
    fetches succeed.
    """
    async def _run():
        async with build_gateway(ctx.config) as gateway:
            await gateway.install()
            keys = await gateway.storage.keys(gateway.names.static)
            return gateway.state, keys

    state, keys = asyncio.run(_run())

    click.echo(f"✓ Installed {ctx.config.app_name} {ctx.config.version} ({state.value})")
    for key in keys:
        click.echo(f"  {key}")


@cli.command(name="activate")
@pass_context
@handle_stashgate_error
def activate(ctx: CLIContext):
    """Activate the installed version and delete stale generations."""
    async def _run():
        async with build_gateway(ctx.config) as gateway:
            return await gateway.lifecycle.restore()

    result = asyncio.run(_run())
    if result is None:
        click.echo(
            f"Error: version {ctx.config.version} is not installed; run 'stashgate install' first",
            err=True,
        )
        sys.exit(1)

    click.echo(f"✓ Activated {ctx.config.app_name} {ctx.config.version}")
    for name in result.deleted:
        click.echo(f"  deleted {name}")
    for name in result.failed:
        click.echo(f"  failed to delete {name}", err=True)


@cli.command(name="generations")
@pass_context
@handle_stashgate_error
def generations(ctx: CLIContext):
    """List generations in the store."""
    async def _run():
        async with build_gateway(ctx.config) as gateway:
            rows = []
            for name in await gateway.storage.list_names():
                count = len(await gateway.storage.keys(name))
                rows.append((name, count, gateway.names.is_current(name)))
            return rows

    rows = asyncio.run(_run())
    if not rows:
        click.echo("No generations")
        return

    for name, count, current in rows:
        marker = "*" if current else " "
        click.echo(f"{marker} {name:48s} {count:6d} entries")


@cli.command(name="fetch")
@click.argument("url")
@click.option(
    "--kind",
    "-k",
    type=click.Choice([k.value for k in ResourceKind]),
    default=ResourceKind.OTHER.value,
    help="Resource kind of the request",
)
@click.option("--navigate", is_flag=True, help="Treat the request as a navigation")
@click.option("--show-body/--no-body", default=True, help="Print the response body")
@pass_context
@handle_stashgate_error
def fetch(ctx: CLIContext, url: str, kind: str, navigate: bool, show_body: bool):
    """Serve URL through the gateway and print the response."""
    request = RequestDescriptor(url=url, kind=ResourceKind(kind), navigation=navigate)

    async def _run():
        async with build_gateway(ctx.config) as gateway:
            await gateway.start()
            return await gateway.handle_fetch(request)

    response = asyncio.run(_run())

    click.echo(f"{response.status}")
    for name, value in response.headers.items():
        click.echo(f"{name}: {value}")
    if show_body:
        click.echo("")
        click.echo(response.text)


@cli.command(name="serve")
@click.option("--host", "-h", default="127.0.0.1", help="Address to listen on")
@click.option("--port", "-p", default=8080, type=int, help="Port to listen on")
@pass_context
@handle_stashgate_error
def serve(ctx: CLIContext, host: str, port: int):
    """Run the local interception server."""
    from stashgate.server import GatewayServer

    server = GatewayServer(build_gateway(ctx.config), host=host, port=port)
    click.echo(f"Serving {ctx.config.origin} through http://{host}:{port}")
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        click.echo("Stopped")


def main():
    cli()


if __name__ == "__main__":
    main()
