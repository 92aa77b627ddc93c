"""End-of-run summary printed when the server reports ``endAll``."""

from __future__ import annotations

import logging
from typing import Any

import click

logger = logging.getLogger(__name__)


def _report_runner(name: str, result: Any, verbose: bool) -> bool:
    """Print one runner's summary and return whether it passed."""
    if not isinstance(result, dict):
        click.echo(click.style(f"{name}: unexpected result <{result!r}>", fg="red"))
        return False

    error = result.get("error")
    stats = result.get("stats") or {}
    failures = result.get("failures") or []

    passes = int(stats.get("passes", 0))
    failed = int(stats.get("failures", len(failures)))
    pending = int(stats.get("pending", 0))
    duration = stats.get("duration")

    passed = not error and failed == 0
    line = f"{name}: {passes} passed, {failed} failed, {pending} pending"
    if duration is not None:
        line += f" ({duration} ms)"
    click.echo(click.style(line, fg="green" if passed else "red"))

    if error:
        click.echo(click.style(f"  error: {error}", fg="red"))

    for failure in failures:
        if not isinstance(failure, dict):
            click.echo(f"  × {failure}")
            continue
        click.echo(f"  × {failure.get('title', '?')}")
        if verbose and failure.get("message"):
            click.echo(f"    {failure['message']}")

    return passed


def report_results(info: Any, verbose: bool = False) -> bool:
    """Print the final results and decide whether the run succeeded.

    ``info`` maps a runner name (usually a browser) to a result holding
    ``stats`` (passes/failures/pending/duration), ``failures`` and an
    optional ``error``.

    Returns:
        True when at least one result arrived and none failed.
    """
    click.echo()

    if not info:
        click.echo(click.style("No test results received.", fg="yellow"))
        return False

    if not isinstance(info, dict):
        logger.warning("Unexpected results payload <%r>", info)
        return False

    success = True
    for name, result in info.items():
        if not _report_runner(str(name), result, verbose):
            success = False
    return success
