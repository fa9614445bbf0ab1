"""offlinekit CLI entry point - assembles all command groups."""
import logging
from pathlib import Path

import click

from offlinekit import __version__
from offlinekit.config.settings import StoreConfig

from .context import CliContext
from .offline_cmd import offline
from .output import print_error
from .records_cmd import records


@click.group()
@click.version_option(version=__version__)
@click.option('--user', '-u', envvar='OFFLINEKIT_USER', help='Signed-in identity')
@click.option('--data-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Local queue directory')
@click.option('--remote', help='Remote store base URL')
@click.option('--verbose', '-v', is_flag=True, help='Log at DEBUG level')
@click.pass_context
def cli(ctx: click.Context, user: str | None, data_dir: Path | None, remote: str | None, verbose: bool):
    """offlinekit: offline-resilient record storage."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    config = StoreConfig.from_env()
    if data_dir:
        config.data_dir = data_dir
    if remote:
        config.remote_url = remote

    errors = config.validate()
    if errors:
        for error in errors:
            print_error(error)
        raise SystemExit(2)

    ctx.obj = CliContext(config=config, user=user)


cli.add_command(records)
cli.add_command(offline)


if __name__ == "__main__":
    cli()
