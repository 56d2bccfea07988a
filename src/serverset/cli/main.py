"""
Serverset CLI - Main entry point

Usage:
    serverset [--ensemble HOSTS] select <path> [<port>]
    serverset [--ensemble HOSTS] watch <path>
    serverset [--ensemble HOSTS] read <path> <digest.json>
    serverset [--ensemble HOSTS] get <path>
    serverset [--ensemble HOSTS] set <path> < content
"""

import logging
import random
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import click
import yaml
from kazoo.exceptions import KazooException

from serverset import __version__
from serverset.commands.publish import fetch, publish
from serverset.commands.reconciler import Reconciler
from serverset.commands.selector import Selector
from serverset.commands.watcher import Watcher, WatchState
from serverset.config import ServersetConfig, load_config, parse_ensemble
from serverset.ensemble.connection import Session, connect
from serverset.errors import ServersetError

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def setup_logging(level: str, fmt: Optional[str] = None) -> None:
    """Configure logging for the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=fmt or "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def fail(message: str) -> None:
    """Report a fatal error on stderr and exit non-zero."""
    click.echo(click.style(message, fg="red"), err=True)
    sys.exit(1)


@dataclass
class CliState:
    """Options shared by every subcommand."""

    config: ServersetConfig
    hosts: list


@contextmanager
def open_session(state: CliState) -> Iterator[Session]:
    """Connect to the ensemble, failing the command if that is impossible."""
    try:
        session = connect(
            state.hosts,
            session_timeout=state.config.ensemble.session_timeout,
            connect_timeout=state.config.ensemble.connect_timeout,
        )
    except ServersetError as e:
        fail(str(e))

    with session:
        try:
            yield session
        except ServersetError as e:
            fail(str(e))
        except KazooException as e:
            fail(f"ZooKeeper operation failed: {e!r}")


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--ensemble",
    envvar="SERVERSET_ENSEMBLE",
    help="The ZooKeeper ensemble to talk to, a comma separated list of host:port pairs",
)
@click.option("--config", type=click.Path(exists=True, dir_okay=False), help="Config file path")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level",
)
@click.pass_context
def cli(ctx, ensemble, config, log_level):
    """Observe and mutate ZooKeeper serversets."""
    try:
        cfg = load_config(Path(config) if config else None)
    except (TypeError, ValueError, OSError, yaml.YAMLError) as e:
        raise click.BadParameter(f"Invalid config: {e}", param_hint="--config")

    level = str(log_level or cfg.logging.level).upper()
    if level not in LOG_LEVELS:
        raise click.BadParameter(f"Invalid logging level: {level}", param_hint="--config")
    setup_logging(level, cfg.logging.format)

    try:
        hosts = parse_ensemble(ensemble or cfg.ensemble.hosts)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--ensemble")

    ctx.obj = CliState(config=cfg, hosts=hosts)


@cli.command("select")
@click.argument("path")
@click.argument("port", required=False)
@click.option("--seed", type=int, help="Random seed for reproducible selection")
@click.pass_obj
def select_command(state, path, port, seed):
    """Select a random serverset element and print host:port."""
    rng = random.Random(seed) if seed is not None else None
    with open_session(state) as session:
        endpoint = Selector(session, config=state.config.select, rng=rng).select(path, port)
    click.echo(str(endpoint))


@cli.command("watch")
@click.argument("path")
@click.pass_obj
def watch_command(state, path):
    """Watch a set until it has changed."""
    with open_session(state) as session:
        outcome = Watcher(session).run(path)

    if outcome.state is WatchState.CHANGED:
        click.echo(outcome.reason)
    elif not outcome.state.is_success:
        fail(outcome.reason)


@cli.command("read")
@click.argument("path")
@click.argument("digest_file", type=click.Path(dir_okay=False))
@click.pass_obj
def read_command(state, path, digest_file):
    """Read a set and atomically update an on-disk digest."""
    with open_session(state) as session:
        Reconciler(session).reconcile(path, Path(digest_file))


@cli.command("get")
@click.argument("path")
@click.pass_obj
def get_command(state, path):
    """Write the content of a path to stdout."""
    with open_session(state) as session:
        content = fetch(session, path)
    click.get_binary_stream("stdout").write(content)


@cli.command("set")
@click.argument("path")
@click.pass_obj
def set_command(state, path):
    """Set the content of a path from stdin."""
    try:
        content = click.get_binary_stream("stdin").read()
    except OSError as e:
        fail(f"Failed to read from stdin: {e}")

    with open_session(state) as session:
        publish(session, path, content)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
