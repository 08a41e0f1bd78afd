"""
tcplatency CLI - main entry point.
"""
import click

from .config import configure_logging
from .correlate import correlate


@click.group()
@click.option("--verbose", "-v", count=True, help="Log progress to stderr (-vv for debug)")
def cli(verbose: int):
    """tcplatency - one-way TCP latency from two packet captures (RFC 1242)."""
    configure_logging(verbose)


cli.add_command(correlate)

if __name__ == "__main__":
    cli()
