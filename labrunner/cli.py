"""CLI for LabRunner - run tests through a remote orchestration server."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from labrunner import __version__
from labrunner.config import (
    ConfigError,
    build_config,
    load_user_config,
    parse_assignment,
    save_user_config,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool) -> None:
    """Send logs to stderr so progress markers keep stdout to themselves."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _parse_assignments(values: tuple[str, ...], param_hint: str) -> dict:
    parsed = {}
    for value in values:
        try:
            key, item = parse_assignment(value)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint=param_hint)
        parsed[key] = item
    return parsed


@click.group()
@click.version_option(version=__version__, prog_name="labrunner")
def main() -> None:
    """LabRunner - run browser tests on a remote orchestration server.

    Serves local test assets, relays the server's requests for them and
    prints results as they arrive.
    """
    pass


@main.command()
@click.option("--server-host", "-H", default=None, help="Orchestration server host")
@click.option("--server-port", "-P", type=int, default=None, help="Orchestration server port")
@click.option("--client-host", default=None, help="Host the asset server binds to")
@click.option("--client-port", type=int, default=None, help="Port the asset server binds to")
@click.option(
    "--client-root", "-r",
    default=None,
    type=click.Path(exists=True, file_okay=False, dir_okay=True, resolve_path=True),
    help="Directory of test assets to serve",
)
@click.option("--runner", "-u", default=None, help="Runner page path or URL")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging and failure details")
@click.option(
    "--set", "-s",
    "settings",
    multiple=True,
    metavar="KEY=VALUE",
    help="Extra runner-specific setting (repeatable)",
)
def run(
    server_host: str | None,
    server_port: int | None,
    client_host: str | None,
    client_port: int | None,
    client_root: str | None,
    runner: str | None,
    verbose: bool,
    settings: tuple[str, ...],
) -> None:
    """Run a test session and exit with its result.

    \b
    Example:
        labrunner run --client-root ./tests --runner tests/runner.html
        labrunner run -H 10.0.0.5 -P 9000 --set browsers='["chrome"]'
    """
    from labrunner.client import run_session

    overrides = _parse_assignments(settings, "--set")
    overrides.update({
        "serverHost": server_host,
        "serverPort": server_port,
        "clientHost": client_host,
        "clientPort": client_port,
        "clientRoot": client_root,
        "runner": runner,
        "verbose": True if verbose else None,
    })

    try:
        config = build_config(overrides, load_user_config())
    except ConfigError as e:
        raise click.ClickException(str(e))

    configure_logging(config.verbose)

    outcome = asyncio.run(run_session(config))
    if outcome is None:
        # Connection ended before the run finished
        sys.exit(1)
    sys.exit(outcome.exit_code)


@main.command("config")
@click.argument("assignments", nargs=-1, metavar="[KEY=VALUE]...")
def config_command(assignments: tuple[str, ...]) -> None:
    """Show or update the user configuration.

    An empty value removes the key.

    \b
    Example:
        labrunner config
        labrunner config serverHost=10.0.0.5 serverPort=9000
        labrunner config runner=
    """
    data = load_user_config()

    if not assignments:
        if not data:
            click.echo("No user configuration set.")
            return
        for key in sorted(data):
            click.echo(f"{key}={json.dumps(data[key])}")
        return

    for key, value in _parse_assignments(assignments, "KEY=VALUE").items():
        if value == "":
            data.pop(key, None)
        else:
            data[key] = value

    try:
        build_config({}, data)
    except ConfigError as e:
        raise click.ClickException(str(e))

    path = save_user_config(data)
    click.echo(f"Saved configuration to {path}")


if __name__ == "__main__":
    main()
